"""Real-time speech transcription gateway."""

__version__ = "0.1.0"
