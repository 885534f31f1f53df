# Overview: Flask API routes for the reserve / confirm / reject distribution workflow.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import distribution_service
from ..services.concurrency import commit_with_retry
from ..validation import coerce_int, require_fields


distributions_bp = Blueprint("distributions", __name__, url_prefix="/api/distributions")


@distributions_bp.post("")
@require_auth
def reserve():
    """
    Reserve units for a direct child office.

    Request body:
    {
        "fromOfficeId": int (optional, defaults to caller's office),
        "toOfficeId": int,
        "itemId": int,
        "quantity": int,
        "remarks": str (optional)
    }

    Returns:
        201: list of PENDING transactions, one per unit
        400: Invalid / Insufficient
        403: Forbidden
    """
    ctx = g.office_context
    data = require_fields(request.get_json(silent=True), "toOfficeId", "itemId", "quantity")
    from_office_id = data.get("fromOfficeId")

    transactions = distribution_service.reserve(
        ctx,
        from_office_id=coerce_int(from_office_id, "fromOfficeId") if from_office_id is not None else ctx.office_id,
        to_office_id=coerce_int(data["toOfficeId"], "toOfficeId"),
        item_id=coerce_int(data["itemId"], "itemId"),
        quantity=coerce_int(data["quantity"], "quantity"),
        remarks=data.get("remarks"),
    )
    commit_with_retry()
    return jsonify([t.to_dict() for t in transactions]), 201


@distributions_bp.get("/pending")
@require_auth
def pending():
    ctx = g.office_context
    rows = distribution_service.pending_for(ctx, ctx.office_id)
    return jsonify([t.to_dict() for t in rows]), 200


@distributions_bp.get("/history")
@require_auth
def history():
    ctx = g.office_context
    office_id = request.args.get("officeId")
    office_id = coerce_int(office_id, "officeId") if office_id is not None else ctx.office_id
    rows = distribution_service.history(ctx, office_id)
    return jsonify([t.to_dict() for t in rows]), 200


@distributions_bp.get("/instance/<int:instance_id>")
@require_auth
def for_instance(instance_id: int):
    rows = distribution_service.for_instance(g.office_context, instance_id)
    return jsonify([t.to_dict() for t in rows]), 200


@distributions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction(transaction_id: int):
    return jsonify(distribution_service.get_transaction(g.office_context, transaction_id).to_dict()), 200


@distributions_bp.post("/<int:transaction_id>/confirm")
@require_auth
def confirm(transaction_id: int):
    txn = distribution_service.confirm(g.office_context, transaction_id)
    commit_with_retry()
    return jsonify(txn.to_dict()), 200


@distributions_bp.post("/<int:transaction_id>/reject")
@require_auth
def reject(transaction_id: int):
    """Request body: {"reason": str}"""
    data = request.get_json(silent=True) or {}
    txn = distribution_service.reject(g.office_context, transaction_id, data.get("reason"))
    commit_with_retry()
    return jsonify(txn.to_dict()), 200
