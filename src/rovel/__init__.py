"""Rovel - manga/novel content server with ad-gated chapter unlocks."""

__version__ = "0.1.0"
