# setup.py
from pathlib import Path
from setuptools import setup, find_packages

README = Path(__file__).with_name("README.md").read_text(encoding="utf-8")

setup(
    name="hedgehog-analysis",
    version="0.1.0",
    description="Gaze-ray track reconstruction for attentive/bionic tracking hedgehogs",
    long_description=README,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(exclude=("tests",)),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.21",
        "pandas>=1.3",
    ],
    extras_require={
        "plot": ["matplotlib>=3.5"],
        "parallel": ["joblib>=1.1"],
        "ctc": ["tifffile>=2021.1"],
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": ["hedgehog-analysis=hedgehog.cli:main"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
