from __future__ import annotations

from assetledger.extensions import db
from assetledger.time_utils import to_utc_z, utcnow


class Purchase(db.Model):
    """
    Receipt header for a multi-line purchase made by one office.

    Lines (PurchaseItem) are ordered by id. Recording a purchase materializes
    one ItemInstance per purchased unit into the buyer office's inventory.
    Money is stored in integer cents.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_office_date", "office_id", "purchased_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=False, index=True)
    purchased_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    supplier = db.Column(db.String(255), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    receipt_url = db.Column(db.String(500), nullable=True)

    purchased_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    office = db.relationship("Office")
    purchased_by = db.relationship("User")
    items = db.relationship(
        "PurchaseItem",
        back_populates="purchase",
        order_by="PurchaseItem.id",
        cascade="all, delete-orphan",
    )

    @property
    def total_amount_cents(self) -> int:
        return sum(line.total_price_cents for line in self.items)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "office_id": self.office_id,
            "office_name": self.office.name if self.office else None,
            "purchased_by_user_id": self.purchased_by_user_id,
            "purchased_by_username": self.purchased_by.username if self.purchased_by else None,
            "supplier": self.supplier,
            "invoice_number": self.invoice_number,
            "remarks": self.remarks,
            "receipt_url": self.receipt_url,
            "purchased_date": to_utc_z(self.purchased_date),
            "total_amount_cents": self.total_amount_cents,
            "total_items": self.total_items,
            "items": [line.to_dict() for line in self.items],
        }


class PurchaseItem(db.Model):
    """One line of a purchase: quantity units of an item at a unit price."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_purchase_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    purchase = db.relationship("Purchase", back_populates="items")
    item = db.relationship("Item")

    @property
    def total_price_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        instances = sorted(self.instances, key=lambda inst: inst.id)
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "instance_ids": [inst.id for inst in instances],
            "barcodes": [inst.barcode for inst in instances],
        }
