"""Local reminder list manager with versioned JSON persistence."""

__version__ = "0.1.0"
