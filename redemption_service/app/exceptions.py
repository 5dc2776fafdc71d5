from __future__ import annotations


class RedemptionError(Exception):
    """Base exception for all redemption-service errors."""


class BadRequestError(RedemptionError):
    """Missing or malformed request fields (detected before any store call)."""


class ConcurrencyConflictError(RedemptionError):
    """A versioned write or a unique insert lost against a concurrent writer.

    Retried internally by the redemption flow; surfaces only after the retry
    budget is exhausted.
    """
