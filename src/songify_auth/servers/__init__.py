"""HTTP surface of the auth backend."""

from .main import create_app

__all__ = ["create_app"]
