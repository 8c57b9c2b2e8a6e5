"""Visualization helpers for reconstructed tracks."""
from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from pathlib import Path

from .domain import Track


@dataclass(frozen=True)
class PlotConfig:
    """Configuration for track plot generation."""

    title: str | None = None
    figsize: tuple[float, float] = (10.0, 6.0)
    dpi: float | None = None
    tight_layout: bool = True
    show: bool = False


class TrackAnalyzer:
    """Plot the X/Y/Z coordinates of a track over its timepoints."""

    def __init__(self, config: PlotConfig | None = None) -> None:
        self.config = config or PlotConfig()

    def plot(self, track: Track, output_path: str | Path | None = None) -> Path:
        if len(track) == 0:
            raise ValueError("Cannot plot an empty track")
        cfg = self.config

        try:
            matplotlib = import_module("matplotlib")
            if not cfg.show:
                matplotlib.use("Agg")
            plt = import_module("matplotlib.pyplot")
        except ModuleNotFoundError as exc:  # pragma: no cover - dependency is optional in CI
            raise ModuleNotFoundError(
                "matplotlib is required for plotting; install via `pip install matplotlib`."
            ) from exc

        times = track.timepoints()
        positions = track.positions()

        fig, axes = plt.subplots(3, 1, figsize=cfg.figsize, dpi=cfg.dpi, sharex=True)
        for ax, column, label in zip(axes, range(3), ("x", "y", "z")):
            ax.plot(times, positions[:, column], marker="o", label=label)
            ax.set_ylabel(label)
            ax.legend()
        axes[-1].set_xlabel("timepoint")
        if cfg.title:
            axes[0].set_title(cfg.title)

        if cfg.tight_layout:
            plt.tight_layout()

        output_path = Path(output_path or "track_plot.png")
        fig.savefig(output_path)
        if cfg.show:  # pragma: no cover - UI-driven choice
            plt.show()
        plt.close(fig)
        return output_path


__all__ = ["TrackAnalyzer", "PlotConfig"]
