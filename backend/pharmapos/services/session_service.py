# Overview: Service-layer operations for sessions; issues tokens and resolves identities.

"""
Session Token Management and Identity Resolution

WHY: Secure session management with absolute timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

IDENTITY RESOLUTION: resolve_identity(token) is the single place a request
credential becomes (user_id, role). The role is returned alongside the
identity as a value; nothing caches it globally. It is recomputed whenever a
credential is resolved (each request, login and /validate).

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- SESSION_TTL_HOURS absolute timeout
- Revocable on logout or security events
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..permissions import Role
from .auth_service import get_user_role
from pharmapos.time_utils import to_utc_naive, utcnow


class AuthFailure(Exception):
    """
    Raised when a credential cannot be resolved to an identity.

    reason is one of: invalid_credential, expired, revoked
    """
    INVALID_CREDENTIAL = "invalid_credential"
    EXPIRED = "expired"
    REVOKED = "revoked"

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    Result of resolving a session credential.

    role is None when the user has no role record; the access policy then
    grants nothing.
    """
    user_id: int
    role: Role | None
    session_id: int


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the user does not exist or is inactive.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User is not active")

    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def resolve_identity(token) -> ResolvedIdentity:
    """
    Resolve a session credential to (user_id, role).

    Pure lookup: reads the session, user and role tables and writes nothing.

    Raises AuthFailure:
    - invalid_credential: missing/unknown token
    - revoked: session revoked, or user deactivated
    - expired: past the absolute timeout
    """
    if not isinstance(token, str) or not token:
        raise AuthFailure(AuthFailure.INVALID_CREDENTIAL)

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None:
        raise AuthFailure(AuthFailure.INVALID_CREDENTIAL)

    if session.is_revoked:
        raise AuthFailure(AuthFailure.REVOKED)

    # Some backends hand back timezone-aware values for DateTime(timezone=True)
    if to_utc_naive(session.expires_at) < utcnow():
        raise AuthFailure(AuthFailure.EXPIRED)

    user = session.user
    if user is None or not user.is_active:
        raise AuthFailure(AuthFailure.REVOKED, "User account deactivated")

    return ResolvedIdentity(
        user_id=user.id,
        role=get_user_role(user.id),
        session_id=session.id,
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found or already revoked.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason

    db.session.commit()
    return True


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """
    Delete expired and revoked sessions created more than older_than_days ago.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
