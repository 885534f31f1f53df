# Overview: Catalog maintenance for categories, units and items.

from __future__ import annotations

import logging

from assetledger.errors import ConflictError, ValidationError
from assetledger.extensions import db
from assetledger.models import Category, Item, Unit
from assetledger.services.access_service import OfficeContext, require_admin
from assetledger.services.entity_store import flush_or_conflict, get_or_raise

logger = logging.getLogger(__name__)


def _clean_name(name: str | None, label: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{label} name is required")
    return name


def _create_named(model, name: str, description: str | None):
    if db.session.query(model).filter_by(name=name).first():
        raise ConflictError(f"{model.__name__} '{name}' already exists")
    row = model(name=name, description=description)
    db.session.add(row)
    flush_or_conflict(f"Could not create {model.__name__.lower()}")
    return row


def create_category(ctx: OfficeContext, name: str, description: str | None = None) -> Category:
    require_admin(ctx)
    return _create_named(Category, _clean_name(name, "Category"), description)


def create_unit(ctx: OfficeContext, name: str, description: str | None = None) -> Unit:
    require_admin(ctx)
    return _create_named(Unit, _clean_name(name, "Unit"), description)


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def list_units() -> list[Unit]:
    return db.session.query(Unit).order_by(Unit.name.asc()).all()


def add_item(
    name: str,
    description: str | None = None,
    category_id: int | None = None,
    unit_id: int | None = None,
) -> Item:
    """Insert a catalog item; category and unit are optional but must exist when given."""
    name = _clean_name(name, "Item")
    if category_id is not None:
        get_or_raise(Category, category_id, "Category")
    if unit_id is not None:
        get_or_raise(Unit, unit_id, "Unit")

    if db.session.query(Item).filter_by(name=name).first():
        raise ConflictError(f"Item '{name}' already exists")

    item = Item(name=name, description=description, category_id=category_id, unit_id=unit_id)
    db.session.add(item)
    flush_or_conflict("Could not create item")

    logger.info("Created item %s (id=%s)", name, item.id)
    return item


def create_item(
    ctx: OfficeContext,
    name: str,
    description: str | None = None,
    category_id: int | None = None,
    unit_id: int | None = None,
) -> Item:
    require_admin(ctx)
    return add_item(name, description, category_id, unit_id)


def list_items() -> list[Item]:
    return db.session.query(Item).order_by(Item.name.asc()).all()


def get_item(item_id: int) -> Item:
    return get_or_raise(Item, item_id, "Item")


def _rename_check(model, row, name: str) -> str:
    name = _clean_name(name, model.__name__)
    clash = (
        db.session.query(model)
        .filter(model.name == name, model.id != row.id)
        .first()
    )
    if clash:
        raise ConflictError(f"{model.__name__} '{name}' already exists")
    return name


def _apply_patch(model, row_id: int, patch: dict):
    row = get_or_raise(model, row_id, model.__name__)
    if "name" in patch:
        patch = {**patch, "name": _rename_check(model, row, patch["name"])}
    for key, value in patch.items():
        setattr(row, key, value)
    flush_or_conflict(f"Could not update {model.__name__.lower()}")
    logger.info("Updated %s %s: %s", model.__name__.lower(), row.id, ", ".join(sorted(patch)))
    return row


def update_category(ctx: OfficeContext, category_id: int, patch: dict) -> Category:
    require_admin(ctx)
    return _apply_patch(Category, category_id, patch)


def update_unit(ctx: OfficeContext, unit_id: int, patch: dict) -> Unit:
    require_admin(ctx)
    return _apply_patch(Unit, unit_id, patch)


def update_item(ctx: OfficeContext, item_id: int, patch: dict) -> Item:
    """
    Patch an item's name, description, category or unit.

    Existing instances keep their barcodes; only new purchases pick up a
    renamed item's prefix.
    """
    require_admin(ctx)
    if patch.get("category_id") is not None:
        get_or_raise(Category, patch["category_id"], "Category")
    if patch.get("unit_id") is not None:
        get_or_raise(Unit, patch["unit_id"], "Unit")
    return _apply_patch(Item, item_id, patch)
