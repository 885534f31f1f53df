from __future__ import annotations

from assetledger.extensions import db
from assetledger.time_utils import to_utc_z, utcnow

REQUEST_STATUS_PENDING = "PENDING"
REQUEST_STATUS_APPROVED = "APPROVED"
REQUEST_STATUS_REJECTED = "REJECTED"
REQUEST_STATUS_PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
REQUEST_STATUS_FULFILLED = "FULFILLED"
REQUEST_STATUS_CANCELLED = "CANCELLED"

REQUEST_STATUSES = (
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_PARTIALLY_FULFILLED,
    REQUEST_STATUS_FULFILLED,
    REQUEST_STATUS_CANCELLED,
)


class ItemRequest(db.Model):
    """
    A child office asking a parent office for a quantity of an item.

    LIFECYCLE:
    1. PENDING: created by the requesting office
    2. APPROVED: parent admin fixed approved_quantity
    3. PARTIALLY_FULFILLED: some units reserved towards the request
    4. FULFILLED: fulfilled_quantity reached approved_quantity
    5. REJECTED / CANCELLED: closed without (further) fulfilment

    BOUNDS: 0 <= fulfilled_quantity <= approved_quantity <= requested_quantity.
    """
    __tablename__ = "item_requests"
    __table_args__ = (
        db.Index("ix_item_requests_parent_status", "parent_office_id", "status"),
        db.CheckConstraint("requested_quantity > 0", name="ck_item_requests_requested_positive"),
        db.CheckConstraint(
            "approved_quantity IS NULL OR (approved_quantity > 0 AND approved_quantity <= requested_quantity)",
            name="ck_item_requests_approved_bounds",
        ),
        db.CheckConstraint(
            "fulfilled_quantity >= 0 AND (approved_quantity IS NULL OR fulfilled_quantity <= approved_quantity)",
            name="ck_item_requests_fulfilled_bounds",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    requesting_office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=False, index=True)
    parent_office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=False, index=True)

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    requested_quantity = db.Column(db.Integer, nullable=False)
    approved_quantity = db.Column(db.Integer, nullable=True)
    fulfilled_quantity = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(24), nullable=False, default=REQUEST_STATUS_PENDING, index=True)
    reason = db.Column(db.Text, nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    requested_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    approved_date = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    fulfilled_date = db.Column(db.DateTime(timezone=True), nullable=True)

    item = db.relationship("Item")
    requesting_office = db.relationship("Office", foreign_keys=[requesting_office_id])
    parent_office = db.relationship("Office", foreign_keys=[parent_office_id])
    requested_by = db.relationship("User", foreign_keys=[requested_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    @property
    def remaining_quantity(self) -> int:
        if self.approved_quantity is None:
            return 0
        return self.approved_quantity - (self.fulfilled_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "requesting_office_id": self.requesting_office_id,
            "parent_office_id": self.parent_office_id,
            "requested_by_user_id": self.requested_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "requested_quantity": self.requested_quantity,
            "approved_quantity": self.approved_quantity,
            "fulfilled_quantity": self.fulfilled_quantity,
            "status": self.status,
            "reason": self.reason,
            "remarks": self.remarks,
            "requested_date": to_utc_z(self.requested_date),
            "approved_date": to_utc_z(self.approved_date),
            "rejected_date": to_utc_z(self.rejected_date),
            "fulfilled_date": to_utc_z(self.fulfilled_date),
        }
