# Overview: Records multi-line purchases and materialises one barcoded instance per purchased unit.

"""
Purchase intake.

record_purchase() writes, in one database transaction:
- the Purchase header and its ordered PurchaseItem lines
- quantity ItemInstance rows per line, AVAILABLE in the buyer's inventory,
  each linked to its line through purchase_item_id
- one CONFIRMED PURCHASE ItemTransaction per instance (no from office)

Any failure rolls the whole purchase back; no partial set of instances is
ever visible.
"""
from __future__ import annotations

import logging
from datetime import datetime

from assetledger.errors import ConflictError, ValidationError
from assetledger.extensions import db
from assetledger.models import Item, ItemInstance, ItemTransaction, Office, Purchase, PurchaseItem
from assetledger.models.instances import INSTANCE_STATUS_AVAILABLE
from assetledger.models.transactions import TXN_STATUS_CONFIRMED, TXN_TYPE_PURCHASE
from assetledger.services.access_service import (
    OfficeContext,
    require_admin_of,
    require_same_office,
    require_same_office_or_admin,
)
from assetledger.services.barcode_service import generate_barcodes
from assetledger.services.concurrency import run_with_retry
from assetledger.services.entity_store import flush_or_conflict, get_or_raise
from assetledger.time_utils import utcnow
from assetledger.validation import MAX_PRICE_CENTS, positive_int

logger = logging.getLogger(__name__)


def _validate_line(line: dict) -> tuple[int, int, int]:
    item_id = line.get("item_id")
    quantity = line.get("quantity")
    unit_price_cents = line.get("unit_price_cents", 0)

    if item_id is None:
        raise ValidationError("Each line requires item_id")
    quantity = positive_int(quantity, "Quantity")
    if not isinstance(unit_price_cents, int) or isinstance(unit_price_cents, bool) or unit_price_cents < 0:
        raise ValidationError("unit_price_cents must be an integer >= 0")
    if unit_price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"unit_price_cents cannot exceed {MAX_PRICE_CENTS}")
    return item_id, quantity, unit_price_cents


def record_purchase(
    ctx: OfficeContext,
    office_id: int,
    lines: list[dict],
    supplier: str | None = None,
    invoice_number: str | None = None,
    remarks: str | None = None,
    receipt_url: str | None = None,
    purchased_date: datetime | None = None,
) -> Purchase:
    """
    Record a purchase for office_id (caller must be Admin of that office).

    Each line is {"item_id", "quantity", "unit_price_cents"} with optional
    "warranty_expiry" (datetime) and "serial_numbers" (list, one per unit).

    Raises:
        NotFoundError: unknown office or item
        ForbiddenError: caller is not Admin of the buyer office
        ValidationError: no lines, quantity <= 0 or negative price
        ConflictError: buyer office has no inventory, or a barcode collided
    """
    def _op():
        office = get_or_raise(Office, office_id, "Office")
        require_admin_of(ctx, office.id)

        if office.inventory is None:
            raise ConflictError(f"Office {office.code} has no inventory")

        if not lines:
            raise ValidationError("A purchase needs at least one line")

        validated = [(_validate_line(line), line) for line in lines]
        items = {
            item_id: get_or_raise(Item, item_id, "Item")
            for (item_id, _qty, _price), _line in validated
        }

        purchase = Purchase(
            office_id=office.id,
            purchased_by_user_id=ctx.user_id,
            supplier=supplier,
            invoice_number=invoice_number,
            remarks=remarks,
            receipt_url=receipt_url,
            purchased_date=purchased_date or utcnow(),
        )
        db.session.add(purchase)
        db.session.flush()

        instance_count = 0
        for (item_id, quantity, unit_price_cents), raw in validated:
            item = items[item_id]
            serial_numbers = raw.get("serial_numbers") or []
            if serial_numbers and len(serial_numbers) != quantity:
                raise ValidationError("serial_numbers must list one value per unit")

            purchase_line = PurchaseItem(
                purchase_id=purchase.id,
                item_id=item.id,
                quantity=quantity,
                unit_price_cents=unit_price_cents,
            )
            db.session.add(purchase_line)
            db.session.flush()

            barcodes = generate_barcodes(item.name, office.code, quantity)
            for index, barcode in enumerate(barcodes):
                instance = ItemInstance(
                    item_id=item.id,
                    barcode=barcode,
                    inventory_id=office.inventory.id,
                    owner_office_id=office.id,
                    status=INSTANCE_STATUS_AVAILABLE,
                    serial_number=serial_numbers[index] if serial_numbers else None,
                    purchase_item_id=purchase_line.id,
                    purchase_date=purchase.purchased_date,
                    purchase_price_cents=unit_price_cents,
                    warranty_expiry=raw.get("warranty_expiry"),
                )
                db.session.add(instance)
                db.session.flush()

                db.session.add(ItemTransaction(
                    item_instance_id=instance.id,
                    from_office_id=None,
                    to_office_id=office.id,
                    user_id=ctx.user_id,
                    transaction_type=TXN_TYPE_PURCHASE,
                    status=TXN_STATUS_CONFIRMED,
                    quantity=1,
                    remarks=f"Purchase #{purchase.id}",
                    confirmed_by_user_id=ctx.user_id,
                    confirmed_date=purchase.purchased_date,
                    transaction_date=purchase.purchased_date,
                ))
                instance_count += 1

        flush_or_conflict("Could not record purchase")
        db.session.refresh(purchase)

        logger.info(
            "Recorded purchase %s for office %s: %d line(s), %d instance(s)",
            purchase.id, office.code, len(validated), instance_count,
        )
        return purchase

    return run_with_retry(_op)


def list_purchases(ctx: OfficeContext, office_id: int) -> list[Purchase]:
    require_same_office_or_admin(ctx, office_id)
    get_or_raise(Office, office_id, "Office")
    return (
        db.session.query(Purchase)
        .filter(Purchase.office_id == office_id)
        .order_by(Purchase.purchased_date.desc(), Purchase.id.desc())
        .all()
    )


def get_purchase(ctx: OfficeContext, purchase_id: int) -> Purchase:
    purchase = get_or_raise(Purchase, purchase_id, "Purchase")
    require_same_office(ctx, purchase.office_id)
    return purchase
