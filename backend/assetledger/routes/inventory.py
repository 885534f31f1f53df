# Overview: Flask API routes for inventory views and instance status changes.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import inventory_service
from ..services.concurrency import commit_with_retry
from ..validation import require_fields


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/my")
@require_auth
def my_inventory():
    ctx = g.office_context
    instances = inventory_service.list_by_office(ctx, ctx.office_id)
    return jsonify([i.to_dict() for i in instances]), 200


@inventory_bp.get("/office/<int:office_id>")
@require_auth
def office_inventory(office_id: int):
    instances = inventory_service.list_by_office(g.office_context, office_id)
    return jsonify([i.to_dict() for i in instances]), 200


@inventory_bp.get("/office/<int:office_id>/summary")
@require_auth
def office_summary(office_id: int):
    return jsonify(inventory_service.summarize(g.office_context, office_id)), 200


@inventory_bp.get("/instances/<int:instance_id>")
@require_auth
def get_instance(instance_id: int):
    return jsonify(inventory_service.get_instance(g.office_context, instance_id).to_dict()), 200


@inventory_bp.post("/instances/<int:instance_id>/status")
@require_auth
def change_status(instance_id: int):
    """
    Request body:
    {
        "status": "AVAILABLE" | "UNDER_REPAIR" | "DAMAGED" | "LOST" | "DISPOSED",
        "remarks": str (optional)
    }
    """
    data = require_fields(request.get_json(silent=True), "status")
    instance = inventory_service.change_instance_status(
        g.office_context,
        instance_id,
        str(data["status"]).strip().upper(),
        remarks=data.get("remarks"),
    )
    commit_with_retry()
    return jsonify(instance.to_dict()), 200
