# Overview: Service-layer error taxonomy shared by routes and CLI commands.

from __future__ import annotations


class ShopkeepError(Exception):
    """Base class for service errors that carry structured details."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), **self.details}


class NotFoundError(ShopkeepError):
    """Referenced product, inventory record, sale or alert does not exist."""


class InsufficientStockError(ShopkeepError):
    """Requested quantity exceeds what is on hand."""

    def __init__(self, available: int, requested: int, message: str = "Insufficient inventory"):
        super().__init__(message, details={"available": available, "requested": requested})
        self.available = available
        self.requested = requested


class PersistenceFailure(ShopkeepError):
    """
    Commit or flush failed. Surfaced to clients as an opaque internal error;
    the transaction has already been rolled back.
    """


class AlertEngineFailure(ShopkeepError):
    """Post-commit alert evaluation failed. Logged, never propagated to sale callers."""


class ImmutabilityViolationError(ShopkeepError):
    """An append-only record (sale, stock movement) was updated or deleted."""
