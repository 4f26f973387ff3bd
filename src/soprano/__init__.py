"""Soprano: voice-guided conversational form completion."""

__version__ = "0.1.0"
