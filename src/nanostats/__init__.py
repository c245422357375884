"""nanostats - system memory and top-process monitor."""

__version__ = "0.1.0"
