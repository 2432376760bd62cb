"""Collect a user's GitHub activity from the event timeline and report on it."""

__version__ = "0.1.0"
