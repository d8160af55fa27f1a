"""Ephemeral file sharing service: short-lived links with optional PIN, expiry and download cap."""

__version__ = "1.0.0"
