"""Sleep Log - sleep session tracking and classification."""

__version__ = "0.3.0"
