"""Longscribe - chunked LLM transcription of long recordings."""

__version__ = "0.3.0"
