"""Core: configuration, lifespan, exception handlers and rate limiting."""

from donorflow.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
