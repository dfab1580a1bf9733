"""Shared router utilities."""
