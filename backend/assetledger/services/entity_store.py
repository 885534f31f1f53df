# Overview: Primary-key access, constraint-to-error translation and the indexed lookups the ledger relies on.

"""
Entity store helpers.

Every lookup here is backed by an index declared on the model. Writes stay
in the caller's session; flush_or_conflict() surfaces unique and foreign-key
violations as ConflictError so nothing below the service layer leaks raw
IntegrityError.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from assetledger.errors import ConflictError, NotFoundError
from assetledger.extensions import db
from assetledger.models import ItemInstance, ItemRequest, ItemTransaction
from assetledger.validation import MAX_INT


def get_or_raise(model, row_id: int | None, label: str | None = None):
    """Primary-key get that raises NotFoundError instead of returning None."""
    label = label or model.__name__
    if row_id is None:
        raise NotFoundError(f"{label} not found")
    if isinstance(row_id, int) and not 0 < row_id <= MAX_INT:
        raise NotFoundError(f"{label} {row_id} not found")
    row = db.session.get(model, row_id)
    if row is None:
        raise NotFoundError(f"{label} {row_id} not found")
    return row


def flush_or_conflict(message: str = "Constraint violation") -> None:
    """Flush pending writes, converting constraint violations to ConflictError."""
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"{message}: {exc.orig}") from exc


# --- item_instances ---

def instance_by_barcode(barcode: str) -> ItemInstance | None:
    return db.session.query(ItemInstance).filter_by(barcode=barcode).first()


def instances_by_inventory(inventory_id: int, status: str | None = None):
    query = db.session.query(ItemInstance).filter(ItemInstance.inventory_id == inventory_id)
    if status is not None:
        query = query.filter(ItemInstance.status == status)
    return query.order_by(ItemInstance.id.asc())


# --- item_transactions ---

def _ordered(query):
    return query.order_by(ItemTransaction.transaction_date.asc(), ItemTransaction.id.asc())


def transactions_for_instance(instance_id: int):
    return _ordered(
        db.session.query(ItemTransaction).filter(ItemTransaction.item_instance_id == instance_id)
    )


def transactions_to_office(office_id: int, status: str | None = None):
    query = db.session.query(ItemTransaction).filter(ItemTransaction.to_office_id == office_id)
    if status is not None:
        query = query.filter(ItemTransaction.status == status)
    return _ordered(query)


def transactions_touching_office(office_id: int):
    """Rows where the office is either end; a row with both ends here appears once."""
    return _ordered(
        db.session.query(ItemTransaction).filter(
            db.or_(
                ItemTransaction.from_office_id == office_id,
                ItemTransaction.to_office_id == office_id,
            )
        )
    )


# --- item_requests ---

def requests_by_requesting_office(office_id: int):
    return (
        db.session.query(ItemRequest)
        .filter(ItemRequest.requesting_office_id == office_id)
        .order_by(ItemRequest.requested_date.desc(), ItemRequest.id.desc())
    )


def requests_by_parent_office(office_id: int, status: str | None = None):
    query = db.session.query(ItemRequest).filter(ItemRequest.parent_office_id == office_id)
    if status is not None:
        query = query.filter(ItemRequest.status == status)
    return query.order_by(ItemRequest.requested_date.desc(), ItemRequest.id.desc())
