"""Shared domain package for the ticket checkout service."""

__version__ = "0.1.0"
