"""
Application session tokens and password hashing.

Access tokens are short-lived JWTs; refresh tokens are longer-lived JWTs that
must also exist as a ``RefreshToken`` row, so logout and password resets can
revoke them.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from socialhub.clock import utcnow
from socialhub.config import settings
from socialhub.db.models import RefreshToken, User
from socialhub.errors import AuthError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a password against its hash."""
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def _encode(user: User, token_type: str, expires_delta: timedelta) -> str:
    payload = {
        "sub": str(user.id),  # JWT sub claim must be a string
        "email": user.email,
        "role": user.role,
        "type": token_type,
        "jti": secrets.token_hex(8),
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user: User) -> str:
    """Create a JWT access token."""
    return _encode(user, "access", timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(db: Session, user: User) -> str:
    """Create a refresh token and persist it so it can be revoked."""
    lifetime = timedelta(days=settings.refresh_token_expire_days)
    token = _encode(user, "refresh", lifetime)
    db.add(RefreshToken(token=token, user_id=user.id, expires_at=utcnow() + lifetime))
    db.commit()
    return token


def issue_session(db: Session, user: User) -> Tuple[str, str]:
    """Create both access and refresh tokens for a user."""
    purge_expired_refresh_tokens(db)
    return create_access_token(user), create_refresh_token(db, user)


def verify_token(token: str, expected_type: str = "access") -> Optional[dict]:
    """Verify a JWT and return its payload, or None if invalid/expired/wrong type."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def refresh_access_token(db: Session, refresh_token: str) -> str:
    """Exchange a stored, unexpired refresh token for a new access token."""
    payload = verify_token(refresh_token, "refresh")
    if not payload:
        raise AuthError("Invalid or expired token")

    row = db.query(RefreshToken).filter(RefreshToken.token == refresh_token).first()
    if not row:
        raise AuthError("Invalid or expired token")
    if row.expires_at < utcnow():
        db.delete(row)
        db.commit()
        raise AuthError("Invalid or expired token")

    user = db.get(User, row.user_id)
    if not user:
        raise AuthError("Invalid or expired token")
    return create_access_token(user)


def revoke_refresh_token(db: Session, refresh_token: str) -> bool:
    deleted = db.query(RefreshToken).filter(RefreshToken.token == refresh_token).delete()
    db.commit()
    return bool(deleted)


def revoke_all_refresh_tokens(db: Session, user_id: int) -> int:
    deleted = db.query(RefreshToken).filter(RefreshToken.user_id == user_id).delete()
    db.commit()
    return deleted


def purge_expired_refresh_tokens(db: Session) -> int:
    deleted = db.query(RefreshToken).filter(RefreshToken.expires_at < utcnow()).delete()
    db.commit()
    if deleted:
        logger.info("Purged %s expired refresh tokens", deleted)
    return deleted


def new_reset_token() -> str:
    return secrets.token_hex(32)
