# Overview: Public tracking routes; no authentication required.

from flask import Blueprint, request, jsonify

from ..errors import ValidationError
from ..services import tracking_service


tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/tracking")


@tracking_bp.get("/<string:barcode>")
def track(barcode: str):
    return jsonify(tracking_service.track(barcode)), 200


@tracking_bp.post("/batch")
def track_batch():
    """Request body: {"barcodes": [str, ...]}; per-barcode errors are inlined."""
    data = request.get_json(silent=True) or {}
    barcodes = data.get("barcodes")
    if not isinstance(barcodes, list):
        raise ValidationError("barcodes must be a list")
    return jsonify(tracking_service.track_many([str(b) for b in barcodes])), 200
