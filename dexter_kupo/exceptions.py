"""
Exception hierarchy for the Cardano DEX reader.

Provides specific exception types for each failure layer so callers can tell a
single malformed output (skip it) from an unreachable indexer (fail the query).
"""

from typing import Any, Dict, Optional


class DexterError(Exception):
    """Base exception for all DEX reader errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(DexterError):
    """Raised when there are configuration-related issues."""

    pass


class DatumError(DexterError):
    """Base for errors scoped to a single output; never fatal to a batch."""

    pass


class DecodeError(DatumError):
    """Raised when hex, CBOR, a unit identifier or a quantity is malformed."""

    pass


class ShapeError(DatumError):
    """Raised when a decoded tree has the wrong node kind at a position."""

    def __init__(
        self,
        message: str,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.expected = expected
        self.actual = actual


class NotFoundError(DexterError):
    """Raised when a key queried on the indexer has no entry."""

    pass


class DatumNotFoundError(NotFoundError, DatumError):
    """Raised when an output references a datum hash the indexer does not know."""

    def __init__(
        self,
        message: str,
        datum_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.datum_hash = datum_hash


class NetworkError(DexterError):
    """Raised when network or connectivity issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class TransientIndexerError(NetworkError):
    """Raised on rate limiting or connection failures; safe to retry."""

    pass


class MalformedExternalApiResponse(DexterError):
    """Raised when an external DEX API returns JSON of an unexpected shape."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source


class CacheError(DexterError):
    """Raised when a cache file cannot be read, parsed or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.path = path
