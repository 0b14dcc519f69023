# Overview: Error taxonomy raised by the stock ledger services and mapped to HTTP responses.

from __future__ import annotations


class LedgerError(Exception):
    """
    Base class for every failure the ledger surfaces to its caller.

    Carries a human-readable message plus a `details` dict with the
    structured context (ids, requested vs. available quantities) the caller
    needs to decide whether to retry or correct the request.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "type": type(self).__name__, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem: missing field, non-positive quantity, bad status."""


class NotFound(LedgerError, LookupError):
    """A referenced product, store, document or stock record does not exist."""
    status_code = 404


class ProductNotFound(NotFound):
    pass


class StockNotFound(NotFound):
    pass


class DocumentNotFound(NotFound):
    pass


class InsufficientStock(LedgerError):
    """Requested outbound quantity exceeds what the stock record holds."""
    status_code = 409


class ReturnQuantityExceedsOriginal(LedgerError):
    status_code = 409


class ItemNotInOriginalDocument(LedgerError):
    status_code = 409


class InvalidStatusTransition(LedgerError):
    """Adjustment/transfer status change not allowed from the current status."""
    status_code = 409


class ConcurrencyConflict(LedgerError):
    """Another transaction changed the same rows first; the caller may retry."""
    status_code = 409


class PersistenceError(LedgerError):
    """The backing store failed mid-transaction; everything was rolled back."""
    status_code = 503
