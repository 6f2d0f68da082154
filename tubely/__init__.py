"""Tubely: video upload, fast-start preparation and signed delivery."""

__version__ = "0.1.0"
