"""Stateful recommendation-and-context core for a table-side dining assistant."""

__version__ = "1.0.0"
