# Overview: Error taxonomy shared by the pricing, settlement and EMI services.

from __future__ import annotations


class EngineError(Exception):
    """Base for errors raised by the invoicing engine."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": dict(self.details)}


class ValidationError(EngineError):
    """Malformed or missing input. Safe to report verbatim."""


class InsufficientStockError(EngineError):
    """Requested quantity exceeds what the catalog holds."""
    status_code = 409

    def __init__(self, *, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}: available {available}, requested {requested}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available
        self.requested = requested


class ImeiMismatchError(EngineError):
    """Supplied serial count does not match quantity x SIM slots."""
    status_code = 409

    def __init__(self, *, product_id: int, product_name: str, expected: int, received: int):
        super().__init__(
            f"IMEI mismatch for {product_name}: expected {expected}, received {received}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "expected": expected,
                "received": received,
            },
        )
        self.expected = expected
        self.received = received


class NotFoundError(EngineError):
    status_code = 404


class PersistenceError(EngineError):
    """Store-layer failure. Callers may retry the whole operation."""
    status_code = 503

    def __init__(self, message: str, details: dict | None = None, retryable: bool = True):
        super().__init__(message, details)
        self.retryable = retryable
