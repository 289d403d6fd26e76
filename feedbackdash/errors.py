"""
Exception types shared across the package.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """
    Raised when a caller leaves a required choice open (e.g. count vs. percent)
    or passes a value outside the allowed set.
    """


class SnapshotError(ValueError):
    """
    Raised when a snapshot file exists but cannot be decoded.
    """


class FetchConfigError(ValueError):
    """
    Raised when the backend URL or API key is missing.
    """
