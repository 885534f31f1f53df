# Overview: Flask API routes for purchase intake.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import purchase_service
from ..services.concurrency import commit_with_retry
from ..validation import coerce_datetime, coerce_int, parse_purchase_lines, require_fields


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
def create_purchase():
    """
    Record a purchase; one instance is created per purchased unit.

    Request body:
    {
        "officeId": int (optional, defaults to caller's office),
        "supplier": str, "invoiceNumber": str, "remarks": str, "receiptUrl": str,
        "purchasedDate": ISO-8601 (optional),
        "items": [{"itemId": int, "quantity": int, "unitPriceCents": int}, ...]
    }

    Returns:
        201: Purchase with per-line instanceIds and barcodes
    """
    ctx = g.office_context
    data = require_fields(request.get_json(silent=True), "items")

    office_id = data.get("officeId")
    purchase = purchase_service.record_purchase(
        ctx,
        office_id=coerce_int(office_id, "officeId") if office_id is not None else ctx.office_id,
        lines=parse_purchase_lines(data["items"]),
        supplier=data.get("supplier"),
        invoice_number=data.get("invoiceNumber"),
        remarks=data.get("remarks"),
        receipt_url=data.get("receiptUrl"),
        purchased_date=coerce_datetime(data.get("purchasedDate"), "purchasedDate"),
    )
    commit_with_retry()
    return jsonify(purchase.to_dict()), 201


@purchases_bp.get("")
@require_auth
def list_purchases():
    ctx = g.office_context
    office_id = request.args.get("officeId")
    office_id = coerce_int(office_id, "officeId") if office_id is not None else ctx.office_id
    purchases = purchase_service.list_purchases(ctx, office_id)
    return jsonify([p.to_dict() for p in purchases]), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase(purchase_id: int):
    return jsonify(purchase_service.get_purchase(g.office_context, purchase_id).to_dict()), 200
