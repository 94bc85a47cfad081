"""Local judge for competitive programming solutions."""

__version__ = "0.1.0"
