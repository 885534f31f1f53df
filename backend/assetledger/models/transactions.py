from __future__ import annotations

from assetledger.extensions import db
from assetledger.time_utils import to_utc_z, utcnow

TXN_TYPE_PURCHASE = "PURCHASE"
TXN_TYPE_DISTRIBUTION = "DISTRIBUTION"
TXN_TYPE_TRANSFER = "TRANSFER"
TXN_TYPE_RETURN = "RETURN"
TXN_TYPE_DAMAGED = "DAMAGED"
TXN_TYPE_LOST = "LOST"
TXN_TYPE_DISPOSED = "DISPOSED"

TXN_TYPES = (
    TXN_TYPE_PURCHASE,
    TXN_TYPE_DISTRIBUTION,
    TXN_TYPE_TRANSFER,
    TXN_TYPE_RETURN,
    TXN_TYPE_DAMAGED,
    TXN_TYPE_LOST,
    TXN_TYPE_DISPOSED,
)

# Types that move custody between offices
MOVEMENT_TYPES = (TXN_TYPE_DISTRIBUTION, TXN_TYPE_TRANSFER)

TXN_STATUS_PENDING = "PENDING"
TXN_STATUS_CONFIRMED = "CONFIRMED"
TXN_STATUS_REJECTED = "REJECTED"
TXN_STATUS_CANCELLED = "CANCELLED"

TXN_STATUSES = (
    TXN_STATUS_PENDING,
    TXN_STATUS_CONFIRMED,
    TXN_STATUS_REJECTED,
    TXN_STATUS_CANCELLED,
)


class ItemTransaction(db.Model):
    """
    Append-only movement ledger entry for exactly one instance.

    LIFECYCLE:
    1. PENDING: reservation opened, instance flipped to IN_USE
    2. CONFIRMED: receiver accepted, custody moved
    3. REJECTED: receiver refused, instance back to AVAILABLE at sender
    4. CANCELLED: withdrawn

    status leaves PENDING exactly once and is then frozen. Moving N units
    writes N rows. At most one PENDING row may exist per instance
    (uq_item_transactions_one_pending).
    """
    __tablename__ = "item_transactions"
    __table_args__ = (
        db.Index("ix_item_transactions_to_status", "to_office_id", "status"),
        db.Index(
            "uq_item_transactions_one_pending",
            "item_instance_id",
            unique=True,
            sqlite_where=db.text("status = 'PENDING'"),
            postgresql_where=db.text("status = 'PENDING'"),
        ),
        db.CheckConstraint("quantity = 1", name="ck_item_transactions_single_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_instance_id = db.Column(db.Integer, db.ForeignKey("item_instances.id"), nullable=False, index=True)

    # PURCHASE rows have no sending office
    from_office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=True, index=True)
    to_office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=TXN_STATUS_PENDING, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    remarks = db.Column(db.Text, nullable=True)

    confirmed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    confirmed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    item_instance = db.relationship("ItemInstance", backref=db.backref("transactions", lazy=True))
    from_office = db.relationship("Office", foreign_keys=[from_office_id])
    to_office = db.relationship("Office", foreign_keys=[to_office_id])
    user = db.relationship("User", foreign_keys=[user_id])
    confirmed_by = db.relationship("User", foreign_keys=[confirmed_by_user_id])

    def __repr__(self) -> str:
        return (
            f"<ItemTransaction id={self.id} instance={self.item_instance_id} "
            f"type={self.transaction_type} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_instance_id": self.item_instance_id,
            "barcode": self.item_instance.barcode if self.item_instance else None,
            "item_id": self.item_instance.item_id if self.item_instance else None,
            "from_office_id": self.from_office_id,
            "to_office_id": self.to_office_id,
            "user_id": self.user_id,
            "transaction_type": self.transaction_type,
            "status": self.status,
            "quantity": self.quantity,
            "remarks": self.remarks,
            "confirmed_by_user_id": self.confirmed_by_user_id,
            "confirmed_date": to_utc_z(self.confirmed_date),
            "transaction_date": to_utc_z(self.transaction_date),
        }
