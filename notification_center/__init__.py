"""Real-time notification delivery client for the community dashboard."""

__version__ = "0.1.0"
