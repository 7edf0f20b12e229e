# Overview: Service-layer operations for the one-time first-administrator bootstrap.

"""
Bootstrap Gate

WHY: With zero registered users nobody can authorize anybody. Exactly once,
an unauthenticated caller may create the first user, who becomes an
administrator. This is the only path that assigns the administrator role
without an existing administrator's authorization.

RACE: two callers may both observe has_any_users() == False. The insert
re-checks inside a write transaction (BEGIN IMMEDIATE on SQLite), and every
bootstrap row carries bootstrap_marker = 1, whose UNIQUE constraint lets
only one commit on any backend. The loser gets already_bootstrapped and
should sign in normally.
"""

from flask import current_app
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, UserRole
from ..permissions import Role
from .auth_service import PasswordValidationError, build_user, handle_taken
from .concurrency import run_with_retry
from .permission_service import log_security_event

BOOTSTRAP_MARKER = 1


class BootstrapError(Exception):
    """
    Raised when the first administrator cannot be created.

    reason is one of: already_bootstrapped, handle_taken, weak_password
    """
    ALREADY_BOOTSTRAPPED = "already_bootstrapped"
    HANDLE_TAKEN = "handle_taken"
    WEAK_PASSWORD = "weak_password"

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason


def count_users() -> int:
    return int(db.session.query(func.count(User.id)).scalar() or 0)


def has_any_users() -> bool:
    """False only when there are exactly zero registered identities."""
    return count_users() != 0


def _bootstrap_admin_exists() -> bool:
    return db.session.query(User.id).filter(User.bootstrap_marker.isnot(None)).first() is not None


def create_first_administrator(display_name: str, username: str, password: str) -> User:
    """
    Create the first user with role administrator.

    Raises:
        ValidationError: blank name or malformed handle
        BootstrapError: already_bootstrapped, handle_taken or weak_password
    """
    if has_any_users():
        raise BootstrapError(BootstrapError.ALREADY_BOOTSTRAPPED, "System already has users")

    # Validate and hash outside the write transaction
    try:
        template = build_user(display_name, username, password)
    except PasswordValidationError as exc:
        raise BootstrapError(BootstrapError.WEAK_PASSWORD, str(exc)) from exc

    def _op():
        if db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))

        if has_any_users():
            db.session.rollback()
            raise BootstrapError(BootstrapError.ALREADY_BOOTSTRAPPED, "System already has users")

        user = User(
            display_name=template.display_name,
            username=template.username,
            email=template.email,
            password_hash=template.password_hash,
            bootstrap_marker=BOOTSTRAP_MARKER,
        )
        db.session.add(user)
        try:
            db.session.flush()
            db.session.add(UserRole(user_id=user.id, role=Role.ADMINISTRATOR.value, assigned_by_user_id=None))
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if _bootstrap_admin_exists():
                raise BootstrapError(BootstrapError.ALREADY_BOOTSTRAPPED, "System already has users") from exc
            if handle_taken(template.username):
                raise BootstrapError(BootstrapError.HANDLE_TAKEN, "Username already exists") from exc
            raise
        return user

    user = run_with_retry(_op)

    current_app.logger.info("Bootstrap administrator %s created", user.username)
    log_security_event(
        user_id=user.id,
        event_type="BOOTSTRAP_ADMIN_CREATED",
        success=True,
        resource="users",
        action="BOOTSTRAP",
    )
    return user
