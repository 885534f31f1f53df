# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Self-registration always receives the User role
- Session management with token-based auth
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import bearer_token, require_auth
from ..models.auth import ROLE_USER
from ..services import auth_service
from ..services import session_service
from ..services.concurrency import commit_with_retry
from ..validation import coerce_int, require_fields


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Register a new account in an existing office.

    Request body:
    {
        "username": str,
        "email": str,
        "password": str,
        "fullName": str (optional),
        "officeId": int
    }
    """
    data = require_fields(request.get_json(silent=True), "username", "email", "password", "officeId")

    user = auth_service.create_user(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        office_id=coerce_int(data["officeId"], "officeId"),
        role_name=ROLE_USER,
        full_name=data.get("fullName"),
    )
    commit_with_retry()

    return jsonify({"user": user.to_dict(), "message": "Registration successful"}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not all([username, password]):
        return jsonify({"error": "username/email and password required", "code": "Invalid"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        return jsonify({"error": "Invalid credentials", "code": "Unauthorized"}), 401

    session, token = session_service.create_session(
        user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    commit_with_retry()

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token sent in the Authorization header."""
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authorization header required", "code": "Unauthorized"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token", "code": "Unauthorized"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    ctx = g.office_context
    return jsonify({
        "user": g.current_user.to_dict(),
        "userId": ctx.user_id,
        "officeId": ctx.office_id,
        "role": ctx.role_name,
    }), 200
