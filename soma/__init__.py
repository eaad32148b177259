"""Soma playlist transfer service."""

__version__ = "1.0.0"
