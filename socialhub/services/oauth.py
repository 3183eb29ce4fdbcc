# socialhub/services/oauth.py
"""
OAuth connect flows for Facebook and LinkedIn.

``start`` issues a one-time state and returns the provider authorization URL.
``handle_callback`` validates the redirect (provider error, state, user)
before any code exchange, then exchanges, identifies and persists the
credential for the application user.
"""
import logging
from typing import Optional, Tuple
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from socialhub.auth.oauth_state import consume_state, issue_state
from socialhub.config import settings
from socialhub.db import credentials
from socialhub.db.credentials import Credential
from socialhub.db.models import Platform
from socialhub.errors import CredentialExpiredError, OAuthError, UpstreamError
from socialhub.services.linkedin_api import LinkedInClient
from socialhub.services.schemas import ProviderIdentity, TokenBundle

logger = logging.getLogger(__name__)

REFRESH_WINDOW_SECONDS = 300


class OAuthFlow:
    platform: Platform
    redirect_uri: str

    def __init__(self, client, redirect_uri: Optional[str] = None):
        self.client = client
        if redirect_uri:
            self.redirect_uri = redirect_uri

    def start(self, db: Session, user_id: Optional[int] = None) -> str:
        state = issue_state(db, self.platform, user_id)
        return self.client.auth_url(state, self.redirect_uri)

    def exchange(self, code: str) -> Tuple[TokenBundle, ProviderIdentity]:
        raise NotImplementedError

    def handle_callback(
        self,
        db: Session,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        session_user_id: Optional[int] = None,
    ) -> int:
        """Connect the provider account; returns the application user id it was stored for."""
        tag = self.platform.value.lower()
        if error:
            # the state is spent either way
            consume_state(db, state, self.platform)
            logger.warning("[%s] provider returned error=%s", tag, error)
            raise OAuthError(error_description or error)

        bound = consume_state(db, state, self.platform)
        if bound is None:
            logger.warning("[%s] callback with unknown or expired state", tag)
            raise OAuthError("Invalid state")
        if not code:
            raise OAuthError("Missing authorization code")

        user_id = bound.user_id or session_user_id
        if not user_id:
            raise OAuthError("You must be signed in to connect an account")

        bundle, identity = self.exchange(code)
        credentials.set_credential(db, user_id, self.platform, bundle, provider_id=identity.id)
        logger.info("[%s] connected account %s for user %s", tag, identity.id, user_id)
        return user_id


class FacebookOAuth(OAuthFlow):
    platform = Platform.FACEBOOK
    redirect_uri = settings.facebook_redirect_uri

    def exchange(self, code: str) -> Tuple[TokenBundle, ProviderIdentity]:
        short_lived = self.client.exchange_code_for_token(code, self.redirect_uri)
        bundle = self.client.exchange_long_lived_token(short_lived.access_token)
        return bundle, self.client.get_me(bundle.access_token)


class LinkedInOAuth(OAuthFlow):
    platform = Platform.LINKEDIN
    redirect_uri = settings.linkedin_redirect_uri

    def exchange(self, code: str) -> Tuple[TokenBundle, ProviderIdentity]:
        bundle = self.client.exchange_code_for_token(code, self.redirect_uri)
        return bundle, self.client.get_profile(bundle.access_token)


def frontend_redirect_url(platform: Platform, ok: bool, message: str) -> str:
    params = {
        "platform": platform.value.lower(),
        "status": "success" if ok else "error",
        "message": message,
    }
    return f"{settings.frontend_url.rstrip('/')}/dashboard/settings?{urlencode(params)}"


def fresh_linkedin_credential(db: Session, user_id: int, client: LinkedInClient) -> Optional[Credential]:
    """
    Return the user's LinkedIn credential, refreshing it first when it expires
    within five minutes and a refresh token is on file.
    """
    cred = credentials.get_credential(db, user_id, Platform.LINKEDIN, allow_expired=True)
    if cred is None or not cred.expires_within(REFRESH_WINDOW_SECONDS):
        return cred

    if cred.refresh_token:
        try:
            bundle = client.exchange_refresh_for_token(cred.refresh_token)
        except UpstreamError as e:
            logger.warning("[linkedin] token refresh failed for user %s: %s", user_id, e.message)
        else:
            credentials.set_credential(db, user_id, Platform.LINKEDIN, bundle, provider_id=cred.provider_id)
            logger.info("[linkedin] refreshed token for user %s", user_id)
            return credentials.get_credential(db, user_id, Platform.LINKEDIN)

    if cred.expired:
        raise CredentialExpiredError("LinkedIn token expired, please reconnect your account")
    return cred
