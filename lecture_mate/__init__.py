"""Lecture Mate - live lecture transcription with highlight detection."""

__version__ = "0.1.0"
