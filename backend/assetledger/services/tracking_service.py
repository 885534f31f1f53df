# Overview: Read-only end-to-end history of an instance, looked up by barcode without authentication.

"""
Tracking.

track(barcode) joins an instance with its originating purchase line and its
ledger rows (oldest first) into a single projection. officeJourney lists
"Purchased by: <office>", then "<from> → <to> (<date>)" for each CONFIRMED
movement, then "Current: <owner>".

The purchase is found through purchase_item_id; older instances without one
fall back to matching (item, office, purchased_date).
"""
from __future__ import annotations

import logging

from assetledger.errors import LedgerError, NotFoundError
from assetledger.extensions import db
from assetledger.models import ItemInstance, ItemTransaction, Purchase, PurchaseItem
from assetledger.models.transactions import (
    MOVEMENT_TYPES,
    TXN_STATUS_CONFIRMED,
    TXN_STATUS_PENDING,
    TXN_STATUS_REJECTED,
    TXN_TYPE_PURCHASE,
)
from assetledger.services.entity_store import instance_by_barcode, transactions_for_instance
from assetledger.time_utils import to_utc_z

logger = logging.getLogger(__name__)


def _find_purchase_line(instance: ItemInstance) -> PurchaseItem | None:
    if instance.purchase_item is not None:
        return instance.purchase_item
    if instance.purchase_date is None:
        return None
    query = (
        db.session.query(PurchaseItem)
        .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
        .filter(
            PurchaseItem.item_id == instance.item_id,
            Purchase.purchased_date == instance.purchase_date,
        )
    )
    # The buying office is the receiver of the PURCHASE ledger row
    buyer_office_id = (
        db.session.query(ItemTransaction.to_office_id)
        .filter_by(item_instance_id=instance.id, transaction_type=TXN_TYPE_PURCHASE)
        .scalar()
    )
    if buyer_office_id is not None:
        query = query.filter(Purchase.office_id == buyer_office_id)
    return query.order_by(PurchaseItem.id.asc()).first()


def _user_name(user) -> str | None:
    if user is None:
        return None
    return user.full_name or user.username


def _purchase_info(line: PurchaseItem) -> dict:
    purchase = line.purchase
    return {
        "purchaseId": purchase.id,
        "purchaseItemId": line.id,
        "quantity": line.quantity,
        "unitPriceCents": line.unit_price_cents,
        "totalCostCents": line.total_price_cents,
        "supplier": purchase.supplier,
        "invoiceNumber": purchase.invoice_number,
        "purchasedBy": _user_name(purchase.purchased_by),
        "purchasedByUsername": purchase.purchased_by.username if purchase.purchased_by else None,
        "purchasedForOffice": purchase.office.name,
        "purchasedForOfficeCode": purchase.office.code,
        "purchaseDate": to_utc_z(purchase.purchased_date),
        "remarks": purchase.remarks,
    }


def _movement(txn: ItemTransaction) -> dict:
    movement = {
        "transactionId": txn.id,
        "transactionType": txn.transaction_type,
        "status": txn.status,
        "date": to_utc_z(txn.transaction_date),
    }
    if txn.from_office is not None:
        movement["fromOffice"] = txn.from_office.name
        movement["fromOfficeCode"] = txn.from_office.code
    if txn.to_office is not None:
        movement["toOffice"] = txn.to_office.name
        movement["toOfficeCode"] = txn.to_office.code
    movement["initiatedBy"] = _user_name(txn.user)
    movement["initiatedByUsername"] = txn.user.username if txn.user else None
    if txn.confirmed_by is not None:
        movement["confirmedBy"] = _user_name(txn.confirmed_by)
        movement["confirmedByUsername"] = txn.confirmed_by.username
        movement["confirmedDate"] = to_utc_z(txn.confirmed_date)
    movement["quantity"] = txn.quantity
    movement["remarks"] = txn.remarks
    return movement


def _summary(transactions: list[ItemTransaction]) -> dict:
    transfers = [t for t in transactions if t.transaction_type in MOVEMENT_TYPES]
    return {
        "totalTransfers": len(transfers),
        "confirmedTransfers": sum(1 for t in transfers if t.status == TXN_STATUS_CONFIRMED),
        "rejectedTransfers": sum(1 for t in transfers if t.status == TXN_STATUS_REJECTED),
        "pendingTransfers": sum(1 for t in transfers if t.status == TXN_STATUS_PENDING),
    }


def _journey(instance: ItemInstance, line: PurchaseItem | None, transactions: list[ItemTransaction]) -> list[str]:
    journey = []
    if line is not None:
        journey.append(f"Purchased by: {line.purchase.office.name}")
    for txn in transactions:
        if (
            txn.status == TXN_STATUS_CONFIRMED
            and txn.transaction_type in MOVEMENT_TYPES
            and txn.from_office is not None
            and txn.to_office is not None
        ):
            journey.append(
                f"{txn.from_office.code} → {txn.to_office.code} ({to_utc_z(txn.transaction_date)})"
            )
    journey.append(f"Current: {instance.owner_office.name}")
    return journey


def track(barcode: str) -> dict:
    instance = instance_by_barcode(barcode)
    if instance is None:
        raise NotFoundError(f"Item not found with barcode: {barcode}")

    item = instance.item
    line = _find_purchase_line(instance)
    transactions = transactions_for_instance(instance.id).all()

    info = {
        "barcode": instance.barcode,
        "itemId": item.id,
        "itemName": item.name,
        "itemDescription": item.description,
        "category": item.category.name if item.category else None,
        "serialNumber": instance.serial_number,
        "currentStatus": instance.status,
        "currentOwnerOffice": instance.owner_office.name,
        "currentOwnerOfficeCode": instance.owner_office.code,
        "purchaseDate": to_utc_z(instance.purchase_date),
        "warrantyExpiry": to_utc_z(instance.warranty_expiry),
        "remarks": instance.remarks,
        "createdAt": to_utc_z(instance.created_at),
        "purchaseInformation": _purchase_info(line) if line is not None else None,
    }
    movements = [_movement(txn) for txn in transactions]
    info["totalMovements"] = len(movements)
    info["movementHistory"] = movements
    info["movementSummary"] = _summary(transactions)
    info["officeJourney"] = _journey(instance, line, transactions)
    return info


def track_many(barcodes: list[str]) -> list[dict]:
    """One entry per barcode; a failing lookup becomes {"barcode", "error"} instead of failing the batch."""
    results = []
    for barcode in barcodes:
        try:
            results.append(track(barcode))
        except LedgerError as exc:
            logger.warning("Tracking failed for %s: %s", barcode, exc.message)
            results.append({"barcode": barcode, "error": exc.message})
    return results
