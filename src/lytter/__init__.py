"""Lytter - DR live radio in the terminal."""

__version__ = "0.3.0"
