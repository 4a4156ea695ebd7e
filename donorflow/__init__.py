"""donorflow: task dependency and cascade-unblocking service for donation workflows."""

__version__ = "1.0.0"
