"""Courtside: shared court queue and match coordinator."""

__version__ = "0.1.0"
