"""Phonetic (IPA) transcription of field recordings."""

__version__ = "1.0.0"
