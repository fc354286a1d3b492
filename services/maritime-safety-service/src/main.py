"""Compatibility entrypoint for maritime safety service."""

try:
    from .maritime_safety.main import app
except ImportError:  # pragma: no cover
    from maritime_safety.main import app

__all__ = ["app"]
