"""
Error taxonomy shared by services and routers.

Every error carries a user-facing ``message`` and the HTTP status the API
answers with. Provider-call failures are converted to ``UpstreamError`` at the
client boundary so callers never see raw ``httpx`` exceptions.
"""
from typing import Any, Optional


class SocialHubError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SocialHubError):
    status_code = 400


class AuthError(SocialHubError):
    status_code = 401


class NotFoundError(SocialHubError):
    status_code = 404


class NotConnectedError(SocialHubError):
    status_code = 400


class CredentialExpiredError(NotConnectedError):
    status_code = 401


class OAuthError(SocialHubError):
    status_code = 400


class UpstreamError(SocialHubError):
    status_code = 502

    def __init__(
        self,
        message: str,
        provider: str = "",
        provider_status: Optional[int] = None,
        provider_code: Any = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.provider_status = provider_status
        self.provider_code = provider_code
        self.body = body


class NoPagesError(UpstreamError):
    status_code = 404
