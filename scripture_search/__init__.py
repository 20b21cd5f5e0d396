"""Semantic and keyword search over Scripture verses and related content."""

__version__ = "0.1.0"
