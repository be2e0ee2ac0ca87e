"""Shorten URLs, redirect visitors and count their clicks."""

__version__ = "1.0.0"
