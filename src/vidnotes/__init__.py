"""Vidnotes: import a creator's video catalog into a personal notes service."""

__version__ = "0.1.0"

__all__ = ["__version__"]
