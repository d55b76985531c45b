"""Custom exceptions for the composite weak map."""

from __future__ import annotations


class CompositeMapError(Exception):
    """Base exception for composite weak map failures."""


class InvalidArgumentError(CompositeMapError, ValueError):
    """Raised when a partial key sequence is rejected before any mutation."""


class InvalidPartialKeyError(InvalidArgumentError, TypeError):
    """Raised when a partial key cannot be weakly referenced."""
