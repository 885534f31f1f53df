# Overview: Two-phase transfer of instances from a parent office to a direct child: reserve, then confirm or reject.

r"""
Distribution (transfer engine).

Moving N units of an item from office A to office B writes N independent
ItemTransaction rows, one per instance:

    AVAILABLE @A --reserve--> IN_USE @A (PENDING) --confirm--> AVAILABLE @B (CONFIRMED)
                                                  \--reject---> AVAILABLE @A (REJECTED)

LOCKING: reserve() selects its candidate rows with SELECT ... FOR UPDATE and
then flips each one with a conditional AVAILABLE -> IN_USE update. A flip
that matches zero rows aborts the whole reservation with ConflictError. The
partial unique index uq_item_transactions_one_pending backs the
one-open-reservation-per-instance rule at the database level.

confirm() and reject() flip the transaction with a conditional
PENDING -> CONFIRMED/REJECTED update; zero rows means someone else already
resolved it (InvalidStateError).

Custody only moves on confirm. Each row is confirmed on its own, so a
receiver may accept part of a multi-unit reservation.
"""
from __future__ import annotations

import logging

from assetledger.errors import ConflictError, InsufficientStockError, InvalidStateError, ValidationError
from assetledger.extensions import db
from assetledger.models import Item, ItemInstance, ItemTransaction, Office
from assetledger.models.instances import INSTANCE_STATUS_AVAILABLE, INSTANCE_STATUS_IN_USE
from assetledger.models.transactions import (
    MOVEMENT_TYPES,
    TXN_STATUS_CONFIRMED,
    TXN_STATUS_PENDING,
    TXN_STATUS_REJECTED,
    TXN_TYPE_DISTRIBUTION,
)
from assetledger.services.access_service import (
    OfficeContext,
    require_admin_of,
    require_same_office_or_admin,
)
from assetledger.services.concurrency import lock_for_update, run_with_retry, transition_status
from assetledger.services.entity_store import (
    flush_or_conflict,
    get_or_raise,
    instances_by_inventory,
    transactions_for_instance,
    transactions_to_office,
    transactions_touching_office,
)
from assetledger.time_utils import utcnow
from assetledger.validation import positive_int

logger = logging.getLogger(__name__)


def _reserve_instances(
    ctx: OfficeContext,
    from_office_id: int,
    to_office_id: int,
    item_id: int,
    quantity: int,
    remarks: str | None = None,
) -> list[ItemTransaction]:
    """
    Reservation body without its own retry loop.

    Request fulfilment calls this directly so the reservation and the
    request update share one database transaction.
    """
    from_office = get_or_raise(Office, from_office_id, "Office")
    to_office = get_or_raise(Office, to_office_id, "Target office")
    item = get_or_raise(Item, item_id, "Item")

    require_admin_of(ctx, from_office.id)

    quantity = positive_int(quantity, "Quantity")

    if to_office.parent_id != from_office.id:
        raise ValidationError(
            f"Office {to_office.code} is not a direct child of {from_office.code}; "
            "distributions only flow to direct child offices"
        )

    if from_office.inventory is None:
        raise ConflictError(f"Office {from_office.code} has no inventory")

    candidates = lock_for_update(
        instances_by_inventory(from_office.inventory.id, INSTANCE_STATUS_AVAILABLE)
        .filter(ItemInstance.item_id == item.id)
        .limit(quantity)
    ).all()

    if len(candidates) < quantity:
        logger.warning(
            "Insufficient %s at %s: requested %d, available %d",
            item.name, from_office.code, quantity, len(candidates),
        )
        raise InsufficientStockError(requested=quantity, available=len(candidates))

    transactions = []
    for instance in candidates:
        if not transition_status(
            ItemInstance, instance.id, INSTANCE_STATUS_AVAILABLE, {"status": INSTANCE_STATUS_IN_USE}
        ):
            raise ConflictError(f"Instance {instance.barcode} was reserved concurrently")

        txn = ItemTransaction(
            item_instance_id=instance.id,
            from_office_id=from_office.id,
            to_office_id=to_office.id,
            user_id=ctx.user_id,
            transaction_type=TXN_TYPE_DISTRIBUTION,
            status=TXN_STATUS_PENDING,
            quantity=1,
            remarks=remarks,
            transaction_date=utcnow(),
        )
        db.session.add(txn)
        transactions.append(txn)

    flush_or_conflict("Instance already has a pending transfer")

    logger.info(
        "Reserved %d x %s from %s to %s (transactions %s)",
        quantity, item.name, from_office.code, to_office.code, [t.id for t in transactions],
    )
    return transactions


def reserve(
    ctx: OfficeContext,
    from_office_id: int,
    to_office_id: int,
    item_id: int,
    quantity: int,
    remarks: str | None = None,
) -> list[ItemTransaction]:
    """
    Reserve quantity AVAILABLE units of item_id at from_office for to_office.

    Units are picked by ascending instance id. Either every unit is reserved
    or nothing is written.

    Raises:
        ForbiddenError: caller is not Admin of from_office
        ValidationError: quantity <= 0 or to_office is not a direct child
        InsufficientStockError: fewer than quantity units are AVAILABLE
        ConflictError: a candidate was reserved by a concurrent call
    """
    return run_with_retry(
        lambda: _reserve_instances(ctx, from_office_id, to_office_id, item_id, quantity, remarks)
    )


def _pending_transaction(ctx: OfficeContext, transaction_id: int) -> ItemTransaction:
    txn = get_or_raise(ItemTransaction, transaction_id, "Transaction")
    require_admin_of(ctx, txn.to_office_id)
    if txn.transaction_type not in MOVEMENT_TYPES:
        raise InvalidStateError(f"{txn.transaction_type} transactions cannot be confirmed or rejected")
    if txn.status != TXN_STATUS_PENDING:
        raise InvalidStateError(f"Transaction is {txn.status}, not PENDING")
    return txn


def confirm(ctx: OfficeContext, transaction_id: int) -> ItemTransaction:
    """Receiver accepts: custody of the instance moves to the receiving office."""
    def _op():
        txn = _pending_transaction(ctx, transaction_id)
        to_office = txn.to_office
        if to_office.inventory is None:
            raise ConflictError(f"Office {to_office.code} has no inventory")

        lock_for_update(db.session.query(ItemInstance).filter_by(id=txn.item_instance_id)).first()

        if not transition_status(ItemTransaction, txn.id, TXN_STATUS_PENDING, {
            "status": TXN_STATUS_CONFIRMED,
            "confirmed_by_user_id": ctx.user_id,
            "confirmed_date": utcnow(),
        }):
            raise InvalidStateError("Transaction was already resolved")

        if not transition_status(ItemInstance, txn.item_instance_id, INSTANCE_STATUS_IN_USE, {
            "status": INSTANCE_STATUS_AVAILABLE,
            "inventory_id": to_office.inventory.id,
            "owner_office_id": to_office.id,
        }):
            raise InvalidStateError("Reserved instance is no longer IN_USE")

        db.session.flush()
        logger.info(
            "Transaction %s confirmed by user %s: instance %s now at %s",
            txn.id, ctx.user_id, txn.item_instance_id, to_office.code,
        )
        return txn

    return run_with_retry(_op)


def reject(ctx: OfficeContext, transaction_id: int, reason: str | None = None) -> ItemTransaction:
    """Receiver refuses: the instance is AVAILABLE again at the sender."""
    def _op():
        txn = _pending_transaction(ctx, transaction_id)

        lock_for_update(db.session.query(ItemInstance).filter_by(id=txn.item_instance_id)).first()

        if not transition_status(ItemTransaction, txn.id, TXN_STATUS_PENDING, {
            "status": TXN_STATUS_REJECTED,
            "remarks": f"{txn.remarks or ''} | REJECTED: {reason or ''}",
            "confirmed_by_user_id": ctx.user_id,
            "confirmed_date": utcnow(),
        }):
            raise InvalidStateError("Transaction was already resolved")

        if not transition_status(ItemInstance, txn.item_instance_id, INSTANCE_STATUS_IN_USE, {
            "status": INSTANCE_STATUS_AVAILABLE,
        }):
            raise InvalidStateError("Reserved instance is no longer IN_USE")

        db.session.flush()
        logger.info("Transaction %s rejected by user %s: %s", txn.id, ctx.user_id, reason)
        return txn

    return run_with_retry(_op)


def pending_for(ctx: OfficeContext, office_id: int) -> list[ItemTransaction]:
    """PENDING rows waiting on office_id to confirm or reject."""
    require_same_office_or_admin(ctx, office_id)
    get_or_raise(Office, office_id, "Office")
    return transactions_to_office(office_id, TXN_STATUS_PENDING).all()


def history(ctx: OfficeContext, office_id: int) -> list[ItemTransaction]:
    require_same_office_or_admin(ctx, office_id)
    get_or_raise(Office, office_id, "Office")
    return transactions_touching_office(office_id).all()


def _can_see_instance(ctx: OfficeContext, instance: ItemInstance, rows: list[ItemTransaction]) -> bool:
    if ctx.is_admin or instance.owner_office_id == ctx.office_id:
        return True
    return any(ctx.office_id in (row.from_office_id, row.to_office_id) for row in rows)


def for_instance(ctx: OfficeContext, instance_id: int) -> list[ItemTransaction]:
    """Every ledger row for one instance, oldest first."""
    instance = get_or_raise(ItemInstance, instance_id, "Item instance")
    rows = transactions_for_instance(instance.id).all()
    if not _can_see_instance(ctx, instance, rows):
        require_same_office_or_admin(ctx, instance.owner_office_id)
    return rows


def get_transaction(ctx: OfficeContext, transaction_id: int) -> ItemTransaction:
    txn = get_or_raise(ItemTransaction, transaction_id, "Transaction")
    if not ctx.is_admin and ctx.office_id not in (txn.from_office_id, txn.to_office_id):
        require_same_office_or_admin(ctx, txn.to_office_id)
    return txn
