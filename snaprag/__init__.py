"""Hybrid semantic and tag retrieval over personal media content."""

__version__ = "0.1.0"
