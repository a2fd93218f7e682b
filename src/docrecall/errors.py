"""Exceptions shared across DocRecall components."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a component is constructed or reconfigured with invalid options."""


class EmbeddingUnavailableError(RuntimeError):
    """Raised by an embedding provider that could not load its model."""
