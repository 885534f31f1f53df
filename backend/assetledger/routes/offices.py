# Overview: Flask API routes for the office hierarchy.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..models import Office
from ..services import office_service
from ..services.concurrency import commit_with_retry
from ..validation import OFFICE_POLICY, validate_payload


offices_bp = Blueprint("offices", __name__, url_prefix="/api/offices")


@offices_bp.get("")
def list_offices():
    """Public: registration needs the office list before a user has a token."""
    return jsonify([office.to_dict() for office in office_service.list_offices()]), 200


@offices_bp.post("")
@require_auth
def create_office():
    """
    Create an office (Admin only); its inventory is created with it.

    Request body:
    {
        "name": str,
        "code": str,
        "parentId": int (optional)
    }
    """
    patch = validate_payload(model=Office, payload=request.get_json(silent=True), policy=OFFICE_POLICY)
    office = office_service.create_office(
        g.office_context,
        name=patch["name"],
        code=patch["code"],
        parent_id=patch.get("parent_id"),
    )
    commit_with_retry()
    return jsonify(office.to_dict()), 201


@offices_bp.patch("/<int:office_id>")
@require_auth
def update_office(office_id: int):
    """
    Admin only. Any subset of {"name", "code", "parentId"}; parentId null makes it a root office.
    """
    patch = validate_payload(model=Office, payload=request.get_json(silent=True), policy=OFFICE_POLICY, partial=True)
    office = office_service.update_office(g.office_context, office_id, patch)
    commit_with_retry()
    return jsonify(office.to_dict()), 200


@offices_bp.get("/<int:office_id>")
def get_office(office_id: int):
    return jsonify(office_service.get_office(office_id).to_dict()), 200


@offices_bp.get("/<int:office_id>/children")
def list_children(office_id: int):
    return jsonify([o.to_dict() for o in office_service.list_children(office_id)]), 200


@offices_bp.get("/<int:office_id>/tree")
def get_office_tree(office_id: int):
    return jsonify(office_service.get_office_tree(office_id)), 200
