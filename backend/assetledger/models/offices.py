from __future__ import annotations

from assetledger.extensions import db
from assetledger.time_utils import to_utc_z, utcnow


class Office(db.Model):
    """
    Office in the organisational hierarchy.

    TREE: parent_id links an office to the office directly above it; root
    offices have no parent. Distributions only flow from a parent to one of
    its direct children.

    Every office owns exactly one Inventory (created with the office).
    """
    __tablename__ = "offices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    parent = db.relationship("Office", remote_side=[id], backref=db.backref("children", lazy=True))
    inventory = db.relationship("Inventory", back_populates="office", uselist=False)

    def __repr__(self) -> str:
        return f"<Office id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "parent_id": self.parent_id,
            "inventory_id": self.inventory.id if self.inventory else None,
            "created_at": to_utc_z(self.created_at),
        }


class Inventory(db.Model):
    """Container of every instance an office currently holds (1:1 with Office)."""
    __tablename__ = "inventories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    office_id = db.Column(db.Integer, db.ForeignKey("offices.id"), nullable=False, unique=True)

    office = db.relationship("Office", back_populates="inventory")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "office_id": self.office_id,
        }
