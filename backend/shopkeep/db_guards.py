# Overview: ORM listeners that keep sales and stock movements append-only.

"""
Sales and stock movements are the audit trail for inventory. Once inserted
they are never updated or deleted; corrections are new movements.

The listeners fire before SQL reaches the database, so a violating flush
aborts with ImmutabilityViolationError and nothing is written. Bulk
query.update()/query.delete() bypass the ORM and are not covered; the
service layer never issues them against these tables.
"""

from sqlalchemy import event
from sqlalchemy.orm import object_session

from .errors import ImmutabilityViolationError
from .models import Sale, StockMovement

_GUARDED = (Sale, StockMovement)


def _reject_update(mapper, connection, target):
    # before_update also fires for instances dirtied only through relationship
    # collections; only column changes are violations.
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutabilityViolationError(
        f"{type(target).__name__} {target.id} is append-only and cannot be modified",
        details={"entity": type(target).__name__, "id": target.id},
    )


def _reject_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        f"{type(target).__name__} {target.id} is append-only and cannot be deleted",
        details={"entity": type(target).__name__, "id": target.id},
    )


def register_immutability_guards() -> None:
    """Install the listeners. Safe to call once per create_app()."""
    for model in _GUARDED:
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)

