from __future__ import annotations

from assetledger.extensions import db
from assetledger.time_utils import to_utc_z, utcnow

INSTANCE_STATUS_AVAILABLE = "AVAILABLE"
INSTANCE_STATUS_IN_USE = "IN_USE"
INSTANCE_STATUS_UNDER_REPAIR = "UNDER_REPAIR"
INSTANCE_STATUS_DAMAGED = "DAMAGED"
INSTANCE_STATUS_LOST = "LOST"
INSTANCE_STATUS_DISPOSED = "DISPOSED"

INSTANCE_STATUSES = (
    INSTANCE_STATUS_AVAILABLE,
    INSTANCE_STATUS_IN_USE,
    INSTANCE_STATUS_UNDER_REPAIR,
    INSTANCE_STATUS_DAMAGED,
    INSTANCE_STATUS_LOST,
    INSTANCE_STATUS_DISPOSED,
)


class ItemInstance(db.Model):
    """
    One physical, barcoded unit of an Item.

    CUSTODY: inventory_id and owner_office_id always point at the same
    office, except that an instance reserved by a pending transfer (IN_USE)
    stays with the sender until the receiver confirms.

    PROVENANCE: purchase_item_id links the unit to the purchase line that
    created it. Instances are only created by purchases and never deleted;
    DISPOSED is their terminal state.
    """
    __tablename__ = "item_instances"
    __table_args__ = (
        db.Index("ix_item_instances_inventory_status", "inventory_id", "status"),
        db.Index("ix_item_instances_item_owner", "item_id", "owner_office_id"),
        db.CheckConstraint(
            "status IN ('AVAILABLE', 'IN_USE', 'UNDER_REPAIR', 'DAMAGED', 'LOST', 'DISPOSED')",
            name="ck_item_instances_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    barcode = db.Column(db.String(128), nullable=False, unique=True, index=True)

    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    owner_office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=INSTANCE_STATUS_AVAILABLE, index=True)

    serial_number = db.Column(db.String(128), nullable=True)
    purchase_item_id = db.Column(db.Integer, db.ForeignKey("purchase_items.id"), nullable=True, index=True)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)
    purchase_price_cents = db.Column(db.Integer, nullable=True)
    warranty_expiry = db.Column(db.DateTime(timezone=True), nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    item = db.relationship("Item")
    inventory = db.relationship("Inventory")
    owner_office = db.relationship("Office")
    purchase_item = db.relationship("PurchaseItem", backref=db.backref("instances", lazy=True))

    def __repr__(self) -> str:
        return f"<ItemInstance id={self.id} barcode={self.barcode!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "barcode": self.barcode,
            "inventory_id": self.inventory_id,
            "owner_office_id": self.owner_office_id,
            "status": self.status,
            "serial_number": self.serial_number,
            "purchase_item_id": self.purchase_item_id,
            "purchase_date": to_utc_z(self.purchase_date),
            "purchase_price_cents": self.purchase_price_cents,
            "warranty_expiry": to_utc_z(self.warranty_expiry),
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }
