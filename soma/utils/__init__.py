"""Utility helpers for the transfer service."""
