"""Transit pattern reconciliation service."""

__version__ = "0.1.0"
