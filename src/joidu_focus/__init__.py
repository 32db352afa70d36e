"""Joidu Focus - resumable focus sessions for the terminal."""

__version__ = "0.1.0"
