"""Daily win journal service."""

__version__ = "0.1.0"
