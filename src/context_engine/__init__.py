"""Context Engine - versioned coding session persistence."""

__version__ = "0.1.0"
