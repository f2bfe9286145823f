"""Persistent storage for the optimizer cache."""
