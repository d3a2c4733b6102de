"""Courier delivery partner platform."""

__version__ = "0.1.0"
