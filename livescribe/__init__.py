"""Live audio transcription with silence-based chunking and speaker-tagged transcripts."""

__version__ = "0.1.0"
