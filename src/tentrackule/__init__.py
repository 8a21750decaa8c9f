"""Tentrackule - Match result alerts for tracked Riot accounts."""

__version__ = "0.1.0"
