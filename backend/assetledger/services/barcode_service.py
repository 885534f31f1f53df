# Overview: Barcode generation for new instances and the label payload handed to external renderers.

"""
Barcodes.

Format: <UPPER3>-<OFFICE_CODE>-<EPOCH_MS>-<INDEX>

    UPPER3       first three non-blank characters of the item name, uppercased,
                 padded with X when the name is shorter
    OFFICE_CODE  code of the buying office
    EPOCH_MS     wall-clock milliseconds from a process-wide monotonic clock
    INDEX        0-based position within the purchase line

Two calls never share an EPOCH_MS, so lines bought in the same millisecond
still get distinct codes. The unique index on item_instances.barcode is the
final guard across processes.

Rendering (Code128, QR, label sheets) happens outside this package; a
renderer implements LabelRenderer and consumes label_payload() dicts.
"""
from __future__ import annotations

import threading
from typing import Protocol

from assetledger.models import ItemInstance
from assetledger.services.access_service import OfficeContext, require_same_office_or_admin
from assetledger.services.entity_store import get_or_raise
from assetledger.time_utils import epoch_millis, to_utc_z

_clock_lock = threading.Lock()
_last_millis = 0


class LabelRenderer(Protocol):
    def render(self, payloads: list[dict]) -> bytes:
        ...


def next_epoch_millis() -> int:
    """Current epoch milliseconds, strictly greater than any earlier return value."""
    global _last_millis
    with _clock_lock:
        now = epoch_millis()
        if now <= _last_millis:
            now = _last_millis + 1
        _last_millis = now
        return now


def item_prefix(item_name: str) -> str:
    """
    First three non-blank characters of the item name, upper-cased and padded
    with X ("A Pen" -> "APE", "TV" -> "TVX").

    Whitespace is dropped before slicing so a barcode never contains a space.
    """
    letters = "".join((item_name or "").split())
    return letters[:3].upper().ljust(3, "X")


def generate_barcodes(item_name: str, office_code: str, count: int) -> list[str]:
    stamp = next_epoch_millis()
    prefix = item_prefix(item_name)
    return [f"{prefix}-{office_code}-{stamp}-{index}" for index in range(count)]


def label_payload(instance: ItemInstance) -> dict:
    office = instance.owner_office
    return {
        "barcode": instance.barcode,
        "itemName": instance.item.name if instance.item else None,
        "officeCode": office.code if office else None,
        "officeName": office.name if office else None,
        "purchaseDate": to_utc_z(instance.purchase_date),
        "serialNumber": instance.serial_number,
    }


def label_payloads(ctx: OfficeContext, instance_ids: list[int]) -> list[dict]:
    payloads = []
    for instance_id in instance_ids:
        instance = get_or_raise(ItemInstance, instance_id, "Item instance")
        require_same_office_or_admin(ctx, instance.owner_office_id)
        payloads.append(label_payload(instance))
    return payloads
