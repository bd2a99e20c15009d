"""Automatic narrated slideshow generation from prose."""

__version__ = "0.1.0"
