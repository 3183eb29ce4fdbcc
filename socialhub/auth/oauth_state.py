# socialhub/auth/oauth_state.py
"""
One-time OAuth ``state`` values, keyed by the random value itself.

A state is bound to the platform it was issued for and, when the initiator
was signed in, to that user. It is deleted on first use and ignored once
past its TTL.
"""
import secrets
from datetime import timedelta
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from socialhub.clock import utcnow
from socialhub.config import settings
from socialhub.db.models import OAuthState, Platform


def issue_state(db: Session, platform: Platform, user_id: Optional[int] = None) -> str:
    purge_expired_states(db)
    state = secrets.token_urlsafe(32)
    db.add(OAuthState(
        state=state,
        platform=platform,
        user_id=user_id,
        expires_at=utcnow() + timedelta(seconds=settings.oauth_state_ttl_seconds),
    ))
    db.commit()
    return state


class ConsumedState(NamedTuple):
    platform: Platform
    user_id: Optional[int]


def consume_state(db: Session, state: Optional[str], platform: Platform) -> Optional[ConsumedState]:
    """Delete the state and return what it was bound to; None if unknown, expired or issued for another platform."""
    if not state:
        return None
    row = db.get(OAuthState, state)
    if not row:
        return None
    consumed = ConsumedState(platform=row.platform, user_id=row.user_id)
    expired = row.expires_at < utcnow()
    db.delete(row)
    db.commit()
    if consumed.platform != platform or expired:
        return None
    return consumed


def purge_expired_states(db: Session) -> int:
    deleted = db.query(OAuthState).filter(OAuthState.expires_at < utcnow()).delete()
    db.commit()
    return deleted
