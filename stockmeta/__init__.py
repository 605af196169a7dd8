"""Batch generation of Adobe Stock metadata with Gemini."""

__version__ = "0.1.0"
