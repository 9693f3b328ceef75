"""Command-line interface for sitro."""

from .main import app


__all__ = ["app"]
