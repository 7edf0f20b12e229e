# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for password hashing.

CREDENTIAL ADDRESS: Users sign in with a human-chosen handle. The credential
store keys users by "<handle>@<LOGIN_DOMAIN>". That mapping lives here and
nowhere else; callers only ever pass handles.

SECURITY NOTES:
- Passwords hashed with bcrypt (BCRYPT_ROUNDS, 12 by default)
- Minimum length PASSWORD_MIN_LENGTH (6 by default)
- Session tokens managed separately (see session_service.py)
- Roles are assigned at creation time only: by the bootstrap gate (first
  administrator) or by an administrator creating the user
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, UserRole
from ..permissions import Role, parse_role
from ..validation import ValidationError, ConflictError
from pharmapos.time_utils import utcnow


HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - A string of at least PASSWORD_MIN_LENGTH characters

    Raises PasswordValidationError if requirements not met.
    """
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 6)
    if not isinstance(password, str) or len(password) < min_length:
        raise PasswordValidationError(f"Password must be at least {min_length} characters long")


def validate_handle(username) -> str:
    """Login handles: 1-64 chars of letters, digits, '.', '_' or '-'. Case is preserved."""
    if not isinstance(username, str) or not HANDLE_PATTERN.match(username):
        raise ValidationError("username must be 1-64 characters: letters, digits, '.', '_' or '-'")
    return username


def validate_display_name(display_name) -> str:
    if not isinstance(display_name, str) or not display_name.strip():
        raise ValidationError("display_name is required")
    display_name = display_name.strip()
    if len(display_name) > 128:
        raise ValidationError("display_name exceeds max length 128")
    return display_name


def credential_address(username: str) -> str:
    """Map a login handle to the address form the credential store keys on."""
    domain = current_app.config.get("LOGIN_DOMAIN", "marjoc.local")
    return f"{username}@{domain}"


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def build_user(display_name: str, username: str, password: str) -> User:
    """Validate inputs and build an unsaved User. Raises ValidationError / PasswordValidationError."""
    display_name = validate_display_name(display_name)
    username = validate_handle(username)
    password_hash = hash_password(password)
    return User(
        display_name=display_name,
        username=username,
        email=credential_address(username),
        password_hash=password_hash,
    )


def handle_taken(username: str) -> bool:
    return db.session.query(User.id).filter(User.username == username).first() is not None


def create_user(
    display_name: str,
    username: str,
    password: str,
    role,
    created_by_user_id: int,
) -> User:
    """
    Create a user on behalf of an administrator.

    The caller must already have passed the access policy for the users
    resource. The role must be one of the closed set.

    Raises:
        ValidationError: bad name/handle/role
        PasswordValidationError: password too short
        ConflictError: handle already in use
    """
    parsed_role = parse_role(role)
    if parsed_role is None:
        raise ValidationError(f"role must be one of: {', '.join(r.value for r in Role)}")

    user = build_user(display_name, username, password)

    if handle_taken(user.username):
        raise ConflictError("Username already exists")

    db.session.add(user)
    try:
        db.session.flush()
        db.session.add(UserRole(
            user_id=user.id,
            role=parsed_role.value,
            assigned_by_user_id=created_by_user_id,
        ))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username already exists")

    current_app.logger.info(
        "User %s created with role %s by user %s", user.username, parsed_role.value, created_by_user_id
    )
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with handle and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        return None

    user = db.session.query(User).filter(
        User.email == credential_address(username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def get_user_role(user_id: int) -> Role | None:
    """Exactly one role per user, or None if no role record (or an unknown stored value)."""
    record = db.session.query(UserRole).filter_by(user_id=user_id).first()
    if record is None:
        return None
    return parse_role(record.role)


def list_users() -> list[dict]:
    """All users with their role, ordered by handle."""
    rows = (
        db.session.query(User, UserRole.role)
        .outerjoin(UserRole, UserRole.user_id == User.id)
        .order_by(User.username.asc())
        .all()
    )
    result = []
    for user, role in rows:
        user_dict = user.to_dict()
        parsed = parse_role(role) if role is not None else None
        user_dict["role"] = parsed.value if parsed else None
        result.append(user_dict)
    return result
