# socialhub/db/credentials.py
"""
Credential store: per-provider OAuth tokens persisted on the user row.

Tokens are encrypted with Fernet before they touch the database. A provider
is either fully disconnected (all columns null) or connected (token plus
provider identity present); expiry may be unknown.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from socialhub.clock import utcnow
from socialhub.db import token_crypto
from socialhub.db.models import Platform, User
from socialhub.errors import CredentialExpiredError, NotConnectedError, NotFoundError
from socialhub.services.schemas import TokenBundle

logger = logging.getLogger(__name__)

# platform -> (access token, refresh token, expiry, provider identity) columns
_COLUMNS = {
    Platform.FACEBOOK: ("facebook_token", None, "facebook_token_expiry", "facebook_id"),
    Platform.LINKEDIN: ("linkedin_access_token", "linkedin_refresh_token", "linkedin_expires_at", "linkedin_id"),
}


@dataclass
class Credential:
    platform: Platform
    access_token: str
    provider_id: Optional[str]
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def expired(self) -> bool:
        return self.expires_within(0)

    def expires_within(self, seconds: int) -> bool:
        return bool(self.expires_at and (self.expires_at - utcnow()).total_seconds() < seconds)


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_credential(
    db: Session, user_id: int, platform: Platform, allow_expired: bool = False
) -> Optional[Credential]:
    """
    Return the stored credential, or None when the platform is not connected.
    An expired credential raises CredentialExpiredError unless allow_expired.
    """
    user = _get_user(db, user_id)
    token_col, refresh_col, expiry_col, id_col = _COLUMNS[platform]
    access_enc = getattr(user, token_col)
    if not access_enc:
        return None

    refresh_enc = getattr(user, refresh_col) if refresh_col else None
    try:
        access_token = token_crypto.decrypt_token(access_enc)
        refresh_token = token_crypto.decrypt_token(refresh_enc) if refresh_enc else None
    except (TypeError, InvalidToken):
        raise NotConnectedError(f"Stored {platform.label} credential is unreadable, please reconnect your account")

    cred = Credential(
        platform=platform,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=getattr(user, expiry_col),
        provider_id=getattr(user, id_col),
    )
    if cred.expired and not allow_expired:
        raise CredentialExpiredError(f"{platform.label} token expired, please reconnect your account")
    return cred


def set_credential(
    db: Session, user_id: int, platform: Platform, bundle: TokenBundle, provider_id: str
) -> None:
    user = _get_user(db, user_id)
    token_col, refresh_col, expiry_col, id_col = _COLUMNS[platform]

    setattr(user, token_col, token_crypto.encrypt_token(bundle.access_token))
    if refresh_col:
        # a refresh response may omit the refresh token; keep the one on file
        # unless a different external account is being connected
        if bundle.refresh_token:
            setattr(user, refresh_col, token_crypto.encrypt_token(bundle.refresh_token))
        elif getattr(user, id_col) != provider_id:
            setattr(user, refresh_col, None)
    setattr(user, expiry_col, bundle.expires_at(utcnow()))
    setattr(user, id_col, provider_id)
    db.add(user)
    db.commit()
    logger.info("[credentials] stored %s credential for user %s", platform.label, user_id)


def clear_credential(db: Session, user_id: int, platform: Platform) -> None:
    user = _get_user(db, user_id)
    for col in _COLUMNS[platform]:
        if col:
            setattr(user, col, None)
    db.add(user)
    db.commit()
    logger.info("[credentials] cleared %s credential for user %s", platform.label, user_id)


def credential_status(db: Session, user_id: int, platform: Platform) -> Dict[str, Any]:
    try:
        cred = get_credential(db, user_id, platform, allow_expired=True)
    except NotConnectedError:
        cred = None
    return {
        "platform": platform.value,
        "connected": bool(cred and not cred.expired),
        "expired": bool(cred and cred.expired),
        "expiresAt": cred.expires_at.isoformat() if cred and cred.expires_at else None,
        "providerId": cred.provider_id if cred else None,
    }
