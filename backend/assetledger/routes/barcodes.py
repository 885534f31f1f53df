# Overview: Label payloads for the external barcode renderer.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import ValidationError
from ..services import barcode_service
from ..validation import coerce_int, require_fields


barcodes_bp = Blueprint("barcodes", __name__, url_prefix="/api/barcodes")


@barcodes_bp.post("/labels")
@require_auth
def labels():
    """Request body: {"instanceIds": [int, ...]}"""
    data = require_fields(request.get_json(silent=True), "instanceIds")
    if not isinstance(data["instanceIds"], list):
        raise ValidationError("instanceIds must be a list")
    ids = [coerce_int(value, "instanceIds") for value in data["instanceIds"]]
    return jsonify(barcode_service.label_payloads(g.office_context, ids)), 200
