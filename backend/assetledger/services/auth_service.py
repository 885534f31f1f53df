# Overview: Password hashing, user creation and credential checks for the auth collaborator.

"""
Authentication service.

Sits outside the ledger core: the core only ever sees an OfficeContext.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""
from __future__ import annotations

import logging
import re

import bcrypt

from assetledger.errors import ConflictError, NotFoundError, ValidationError
from assetledger.extensions import db
from assetledger.models import Office, Role, User
from assetledger.models.auth import ROLE_ADMIN, ROLE_USER
from assetledger.services.access_service import normalize_role_name
from assetledger.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_ROLES = (
    (ROLE_ADMIN, "Manages purchases, transfers and requests for an office"),
    (ROLE_USER, "Read access to the office inventory"),
)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_role_by_name(role_name: str) -> Role:
    canonical = normalize_role_name(role_name)
    role = db.session.query(Role).filter(db.func.lower(Role.name) == canonical.lower()).first()
    if not role:
        raise NotFoundError(f"Role {role_name} not found")
    return role


def create_user(
    username: str,
    email: str,
    password: str,
    office_id: int,
    role_name: str = ROLE_USER,
    full_name: str | None = None,
) -> User:
    """
    Create a user attached to an office.

    Raises:
        ValidationError: missing username/email or weak password
        NotFoundError: office or role does not exist
        ConflictError: username or email already taken
    """
    username = (username or "").strip()
    email = (email or "").strip()
    if not username or not email:
        raise ValidationError("username and email are required")

    if db.session.get(Office, office_id) is None:
        raise NotFoundError(f"Office {office_id} not found")

    role = get_role_by_name(role_name)

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role_id=role.id,
        office_id=office_id,
    )
    db.session.add(user)
    db.session.flush()

    logger.info("Created user %s (id=%s, office=%s, role=%s)", username, user.id, office_id, role.name)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User and stamps last_login_at on success, None otherwise.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if user and verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        return user

    logger.warning("Failed login for %s", username)
    return None


def create_default_roles() -> list[Role]:
    """Create the Admin and User roles if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if not role:
            role = Role(name=name, description=desc)
            db.session.add(role)
        roles.append(role)
    db.session.flush()
    return roles
