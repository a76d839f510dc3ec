"""Centralized version string for Subrelay."""

__version__ = "1.0.0"
