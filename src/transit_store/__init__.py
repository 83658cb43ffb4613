"""Offline GTFS schedule store with a structured query interface."""

__version__ = "0.1.0"
