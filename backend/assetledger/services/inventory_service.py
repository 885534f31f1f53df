# Overview: Read views over an office's inventory plus manual instance status changes.

from __future__ import annotations

import logging
from collections import Counter

from assetledger.errors import InvalidStateError, ValidationError
from assetledger.extensions import db
from assetledger.models import ItemInstance, ItemTransaction, Office
from assetledger.models.instances import (
    INSTANCE_STATUS_AVAILABLE,
    INSTANCE_STATUS_DAMAGED,
    INSTANCE_STATUS_DISPOSED,
    INSTANCE_STATUS_IN_USE,
    INSTANCE_STATUS_LOST,
    INSTANCE_STATUS_UNDER_REPAIR,
)
from assetledger.models.transactions import TXN_STATUS_CONFIRMED
from assetledger.services.access_service import (
    OfficeContext,
    require_admin_of,
    require_same_office_or_admin,
)
from assetledger.services.concurrency import run_with_retry, transition_status
from assetledger.services.entity_store import get_or_raise, instances_by_inventory
from assetledger.time_utils import utcnow

logger = logging.getLogger(__name__)

# Targets an admin may set by hand; IN_USE is reserved for pending transfers
MANUAL_STATUS_TARGETS = (
    INSTANCE_STATUS_AVAILABLE,
    INSTANCE_STATUS_UNDER_REPAIR,
    INSTANCE_STATUS_DAMAGED,
    INSTANCE_STATUS_LOST,
    INSTANCE_STATUS_DISPOSED,
)

# Manual targets that are recorded in the movement ledger
LEDGERED_STATUSES = (INSTANCE_STATUS_DAMAGED, INSTANCE_STATUS_LOST, INSTANCE_STATUS_DISPOSED)


def _office_inventory_id(office_id: int) -> int:
    office = get_or_raise(Office, office_id, "Office")
    if office.inventory is None:
        raise ValidationError(f"Office {office.code} has no inventory")
    return office.inventory.id


def list_by_office(ctx: OfficeContext, office_id: int) -> list[ItemInstance]:
    """Instances currently held in the office's inventory (reserved ones included)."""
    require_same_office_or_admin(ctx, office_id)
    return instances_by_inventory(_office_inventory_id(office_id)).all()


def summarize(ctx: OfficeContext, office_id: int) -> dict:
    """
    Aggregate an office's inventory by item and by status.

    Returns {officeId, totalItems, itemsGroupedByItemName, overallStatusBreakdown};
    groups are ordered by item name.
    """
    instances = list_by_office(ctx, office_id)

    overall = Counter()
    groups: dict[int, dict] = {}
    for instance in instances:
        overall[instance.status] += 1
        group = groups.get(instance.item_id)
        if group is None:
            group = groups[instance.item_id] = {
                "itemId": instance.item_id,
                "itemName": instance.item.name,
                "quantity": 0,
                "statusBreakdown": Counter(),
            }
        group["quantity"] += 1
        group["statusBreakdown"][instance.status] += 1

    grouped = sorted(groups.values(), key=lambda g: (g["itemName"], g["itemId"]))
    for group in grouped:
        group["statusBreakdown"] = dict(group["statusBreakdown"])

    return {
        "officeId": office_id,
        "totalItems": len(instances),
        "itemsGroupedByItemName": grouped,
        "overallStatusBreakdown": dict(overall),
    }


def get_instance(ctx: OfficeContext, instance_id: int) -> ItemInstance:
    instance = get_or_raise(ItemInstance, instance_id, "Item instance")
    require_same_office_or_admin(ctx, instance.owner_office_id)
    return instance


def change_instance_status(
    ctx: OfficeContext,
    instance_id: int,
    new_status: str,
    remarks: str | None = None,
) -> ItemInstance:
    """
    Manually move an instance between non-transfer states.

    Refused while a transfer holds the instance (IN_USE) and once it is
    DISPOSED. DAMAGED, LOST and DISPOSED append a CONFIRMED ledger row.
    """
    def _op():
        instance = get_or_raise(ItemInstance, instance_id, "Item instance")
        require_admin_of(ctx, instance.owner_office_id)

        if new_status not in MANUAL_STATUS_TARGETS:
            raise ValidationError(
                f"Status must be one of: {', '.join(MANUAL_STATUS_TARGETS)}"
            )

        current = instance.status
        if current == INSTANCE_STATUS_IN_USE:
            raise InvalidStateError("Instance is reserved by a pending transfer")
        if current == INSTANCE_STATUS_DISPOSED:
            raise InvalidStateError("Instance has been disposed")
        if current == new_status:
            raise InvalidStateError(f"Instance is already {new_status}")

        values = {"status": new_status}
        if remarks:
            values["remarks"] = remarks
        if not transition_status(ItemInstance, instance.id, current, values):
            raise InvalidStateError("Instance status changed concurrently")

        if new_status in LEDGERED_STATUSES:
            now = utcnow()
            db.session.add(ItemTransaction(
                item_instance_id=instance.id,
                from_office_id=instance.owner_office_id,
                to_office_id=instance.owner_office_id,
                user_id=ctx.user_id,
                transaction_type=new_status,
                status=TXN_STATUS_CONFIRMED,
                quantity=1,
                remarks=remarks,
                confirmed_by_user_id=ctx.user_id,
                confirmed_date=now,
                transaction_date=now,
            ))
        db.session.flush()

        logger.info(
            "Instance %s status %s -> %s by user %s", instance.barcode, current, new_status, ctx.user_id
        )
        return instance

    return run_with_retry(_op)
