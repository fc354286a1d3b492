"""Compatibility entrypoint for sensor anomaly service."""

try:
    from .sensor_anomaly.main import app
except ImportError:  # pragma: no cover
    from sensor_anomaly.main import app

__all__ = ["app"]
