"""Shared utilities: logging setup, UTC time helpers, id generation.

Cross-cutting helpers with no domain knowledge. Safe to import from every layer.
"""
