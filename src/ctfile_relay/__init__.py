"""Stateless HTTP relay for CTFile share links."""

__version__ = "0.1.0"
