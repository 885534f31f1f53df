# Overview: Office hierarchy administration; every office is created together with its inventory.

from __future__ import annotations

import logging

from assetledger.errors import ConflictError, ValidationError
from assetledger.extensions import db
from assetledger.models import Inventory, Office
from assetledger.services.access_service import OfficeContext, require_admin
from assetledger.services.concurrency import lock_for_update, run_with_retry
from assetledger.services.entity_store import flush_or_conflict, get_or_raise

logger = logging.getLogger(__name__)


def bootstrap_office(name: str, code: str, parent_id: int | None = None) -> Office:
    """
    Create an office and its 1:1 inventory without a caller context.

    Used directly by the CLI to create the first root office; create_office()
    wraps it for authenticated callers.
    """
    name = (name or "").strip()
    code = (code or "").strip().upper()
    if not name or not code:
        raise ValidationError("name and code are required")

    if parent_id is not None:
        get_or_raise(Office, parent_id, "Parent office")

    if db.session.query(Office).filter_by(code=code).first():
        raise ConflictError(f"Office code {code} already exists")

    office = Office(name=name, code=code, parent_id=parent_id)
    db.session.add(office)
    db.session.flush()

    db.session.add(Inventory(office_id=office.id))
    flush_or_conflict("Could not create office")

    logger.info("Created office %s (id=%s, parent=%s)", code, office.id, parent_id)
    return office


def create_office(ctx: OfficeContext, name: str, code: str, parent_id: int | None = None) -> Office:
    require_admin(ctx)
    return bootstrap_office(name, code, parent_id)


def list_offices() -> list[Office]:
    return db.session.query(Office).order_by(Office.code.asc()).all()


def get_office(office_id: int) -> Office:
    return get_or_raise(Office, office_id, "Office")


def list_children(office_id: int) -> list[Office]:
    get_or_raise(Office, office_id, "Office")
    return (
        db.session.query(Office)
        .filter(Office.parent_id == office_id)
        .order_by(Office.code.asc())
        .all()
    )


def get_office_tree(office_id: int) -> dict:
    """Nested {office..., children: [...]} projection rooted at office_id."""
    root = get_or_raise(Office, office_id, "Office")

    def _node(office: Office) -> dict:
        children = sorted(office.children, key=lambda o: o.code)
        return {**office.to_dict(), "children": [_node(child) for child in children]}

    return _node(root)


def _is_descendant(office_id: int, candidate_id: int) -> bool:
    node = db.session.get(Office, candidate_id)
    while node is not None:
        if node.id == office_id:
            return True
        node = node.parent
    return False


def update_office(ctx: OfficeContext, office_id: int, patch: dict) -> Office:
    """
    Patch name, code or parent_id of an office (Admin only).

    Re-parenting is refused when the new parent is the office itself or one
    of its descendants. Codes stay upper-case and unique; barcodes already
    printed keep the old code.
    """
    require_admin(ctx)

    def _op():
        office = get_or_raise(Office, office_id, "Office")
        lock_for_update(db.session.query(Office).filter_by(id=office.id)).first()

        if "name" in patch:
            name = (patch["name"] or "").strip()
            if not name:
                raise ValidationError("name cannot be blank")
            office.name = name

        if "code" in patch:
            code = (patch["code"] or "").strip().upper()
            if not code:
                raise ValidationError("code cannot be blank")
            clash = db.session.query(Office).filter(Office.code == code, Office.id != office.id).first()
            if clash:
                raise ConflictError(f"Office code {code} already exists")
            office.code = code

        if "parent_id" in patch:
            parent_id = patch["parent_id"]
            if parent_id is not None:
                get_or_raise(Office, parent_id, "Parent office")
                if _is_descendant(office.id, parent_id):
                    raise ValidationError("An office cannot be placed under itself or its own descendant")
            office.parent_id = parent_id

        flush_or_conflict("Could not update office")
        logger.info("Updated office %s: %s", office.code, ", ".join(sorted(patch)))
        return office

    return run_with_retry(_op)
