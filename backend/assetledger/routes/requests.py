# Overview: Flask API routes for child-to-parent item requests.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import request_service
from ..services.concurrency import commit_with_retry
from ..validation import coerce_int, require_fields


requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


@requests_bp.post("")
@require_auth
def create_request():
    """
    Request body:
    {
        "parentOfficeId": int,
        "itemId": int,
        "requestedQuantity": int,
        "reason": str (optional)
    }
    """
    ctx = g.office_context
    data = require_fields(request.get_json(silent=True), "itemId", "requestedQuantity")
    parent_office_id = data.get("parentOfficeId")

    item_request = request_service.create(
        ctx,
        requesting_office_id=ctx.office_id,
        parent_office_id=coerce_int(parent_office_id, "parentOfficeId") if parent_office_id is not None else None,
        item_id=coerce_int(data["itemId"], "itemId"),
        requested_quantity=coerce_int(data["requestedQuantity"], "requestedQuantity"),
        reason=data.get("reason"),
    )
    commit_with_retry()
    return jsonify(item_request.to_dict()), 201


@requests_bp.get("/my")
@require_auth
def my_requests():
    rows = request_service.list_my_requests(g.office_context)
    return jsonify([r.to_dict() for r in rows]), 200


@requests_bp.get("/incoming")
@require_auth
def incoming():
    """?status=PENDING (default) | <status> | ALL"""
    status = request.args.get("status", "PENDING").strip().upper()
    rows = request_service.list_incoming(g.office_context, None if status == "ALL" else status)
    return jsonify([r.to_dict() for r in rows]), 200


@requests_bp.get("/<int:request_id>")
@require_auth
def get_request(request_id: int):
    return jsonify(request_service.get_request(g.office_context, request_id).to_dict()), 200


@requests_bp.post("/<int:request_id>/approve")
@require_auth
def approve(request_id: int):
    """Request body: {"approvedQuantity": int, "remarks": str (optional)}"""
    data = require_fields(request.get_json(silent=True), "approvedQuantity")
    item_request = request_service.approve(
        g.office_context,
        request_id,
        coerce_int(data["approvedQuantity"], "approvedQuantity"),
        remarks=data.get("remarks"),
    )
    commit_with_retry()
    return jsonify(item_request.to_dict()), 200


@requests_bp.post("/<int:request_id>/reject")
@require_auth
def reject(request_id: int):
    data = request.get_json(silent=True) or {}
    item_request = request_service.reject(g.office_context, request_id, data.get("remarks"))
    commit_with_retry()
    return jsonify(item_request.to_dict()), 200


@requests_bp.post("/<int:request_id>/fulfill")
@require_auth
def fulfill(request_id: int):
    """Request body: {"quantity": int, "reason": str (optional)}"""
    data = require_fields(request.get_json(silent=True), "quantity")
    result = request_service.fulfill(
        g.office_context,
        request_id,
        coerce_int(data["quantity"], "quantity"),
        reason=data.get("reason"),
    )
    commit_with_retry()
    return jsonify({
        "request": result["request"].to_dict(),
        "transactions": [t.to_dict() for t in result["transactions"]],
    }), 200


@requests_bp.post("/<int:request_id>/cancel")
@require_auth
def cancel(request_id: int):
    data = request.get_json(silent=True) or {}
    item_request = request_service.cancel(g.office_context, request_id, data.get("remarks"))
    commit_with_retry()
    return jsonify(item_request.to_dict()), 200
