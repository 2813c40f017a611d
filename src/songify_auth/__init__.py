"""Songify auth backend: Spotify OAuth sessions in httpOnly cookies."""

__version__ = "0.1.0"
