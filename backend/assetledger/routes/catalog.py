# Overview: Flask API routes for categories, units and items.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..models import Category, Item, Unit
from ..services import catalog_service
from ..services.concurrency import commit_with_retry
from ..validation import CATEGORY_POLICY, ITEM_POLICY, UNIT_POLICY, validate_payload


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("/categories")
@require_auth
def list_categories():
    return jsonify([c.to_dict() for c in catalog_service.list_categories()]), 200


@catalog_bp.post("/categories")
@require_auth
def create_category():
    patch = validate_payload(model=Category, payload=request.get_json(silent=True), policy=CATEGORY_POLICY)
    category = catalog_service.create_category(g.office_context, patch["name"], patch.get("description"))
    commit_with_retry()
    return jsonify(category.to_dict()), 201


@catalog_bp.patch("/categories/<int:category_id>")
@require_auth
def update_category(category_id: int):
    patch = validate_payload(
        model=Category, payload=request.get_json(silent=True), policy=CATEGORY_POLICY, partial=True
    )
    category = catalog_service.update_category(g.office_context, category_id, patch)
    commit_with_retry()
    return jsonify(category.to_dict()), 200


@catalog_bp.get("/units")
@require_auth
def list_units():
    return jsonify([u.to_dict() for u in catalog_service.list_units()]), 200


@catalog_bp.post("/units")
@require_auth
def create_unit():
    patch = validate_payload(model=Unit, payload=request.get_json(silent=True), policy=UNIT_POLICY)
    unit = catalog_service.create_unit(g.office_context, patch["name"], patch.get("description"))
    commit_with_retry()
    return jsonify(unit.to_dict()), 201


@catalog_bp.patch("/units/<int:unit_id>")
@require_auth
def update_unit(unit_id: int):
    patch = validate_payload(model=Unit, payload=request.get_json(silent=True), policy=UNIT_POLICY, partial=True)
    unit = catalog_service.update_unit(g.office_context, unit_id, patch)
    commit_with_retry()
    return jsonify(unit.to_dict()), 200


@catalog_bp.get("/items")
@require_auth
def list_items():
    return jsonify([i.to_dict() for i in catalog_service.list_items()]), 200


@catalog_bp.get("/items/<int:item_id>")
@require_auth
def get_item(item_id: int):
    return jsonify(catalog_service.get_item(item_id).to_dict()), 200


@catalog_bp.post("/items")
@require_auth
def create_item():
    """
    Request body:
    {
        "name": str,
        "description": str (optional),
        "categoryId": int (optional),
        "unitId": int (optional)
    }
    """
    patch = validate_payload(model=Item, payload=request.get_json(silent=True), policy=ITEM_POLICY)
    item = catalog_service.create_item(
        g.office_context,
        name=patch["name"],
        description=patch.get("description"),
        category_id=patch.get("category_id"),
        unit_id=patch.get("unit_id"),
    )
    commit_with_retry()
    return jsonify(item.to_dict()), 201


@catalog_bp.patch("/items/<int:item_id>")
@require_auth
def update_item(item_id: int):
    """
    Admin only. Any subset of:
    {
        "name": str,
        "description": str | null,
        "categoryId": int | null,
        "unitId": int | null
    }
    """
    patch = validate_payload(model=Item, payload=request.get_json(silent=True), policy=ITEM_POLICY, partial=True)
    item = catalog_service.update_item(g.office_context, item_id, patch)
    commit_with_retry()
    return jsonify(item.to_dict()), 200
