"""Tiered plant disease diagnosis service."""

__version__ = "1.0.0"
