"""Logging helpers."""

from donorflow.shared.telemetry.logging import setup_logging

__all__ = ["setup_logging"]
