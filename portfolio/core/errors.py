"""Error taxonomy shared by stores, the listing synchronizer and the API layer.

Every error carries the HTTP status it maps to and a human-readable message;
`main.py` renders them as ``{"success": false, "message": ...}``.
"""

from typing import Any, Dict, Optional


class PortfolioError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PortfolioError):
    """Bad input; raised before any side effect."""

    status_code = 400


class NotFoundError(PortfolioError):
    """Object or listing entry does not exist."""

    status_code = 404


class ConflictError(PortfolioError):
    """Optimistic-concurrency token mismatch; safe to retry after re-reading."""

    status_code = 409


class StoreError(PortfolioError):
    """Backing medium unreachable, or a write/delete was rejected."""

    status_code = 502


class ListingFormatError(PortfolioError):
    """A stored listing document could not be parsed or patched."""

    status_code = 500
