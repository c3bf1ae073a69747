"""Abortion access route explorer (Dash)."""

__version__ = "0.1.0"
