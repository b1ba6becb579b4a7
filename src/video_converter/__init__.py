"""Paste a video link, get a playable file back."""

__version__ = "0.1.0"
