"""Automatic point-in-time snapshots of modified workspace files."""

__version__ = "0.1.0"

__all__ = ["__version__"]
