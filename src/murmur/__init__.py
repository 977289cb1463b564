"""Murmur: short posts, likes and a searchable feed."""

__version__ = "0.1.0"
