"""Refresh pacer: distributed token bucket and rule-based refresh scheduling."""

__version__ = "0.1.0"
