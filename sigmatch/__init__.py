"""Embedding-based signature verification service."""

__version__ = "0.1.0"
