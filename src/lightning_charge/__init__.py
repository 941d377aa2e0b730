"""Lightning payment lifecycle and notification engine."""

__version__ = "0.1.0"
