"""HTTP surface for the citation network engine."""

from .app import create_app

__all__ = ["create_app"]
