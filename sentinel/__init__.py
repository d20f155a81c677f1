"""Sentinel - chat-driven AI operator for remote hosts."""

__version__ = "0.3.0"
