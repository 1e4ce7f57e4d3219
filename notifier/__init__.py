"""Notification API with AI-generated digests."""

__version__ = "1.0.0"
