"""Paw Diary draft persistence and optimistic sync engine."""

__version__ = "0.1.0"
