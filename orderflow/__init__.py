"""Multi-step order flow engine with immutable context snapshots."""

__version__ = "1.0.0"
