# socialhub/services/linkedin_api.py
"""
LinkedIn client: OAuth token endpoints, identity lookup and the UGC Post API.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode, quote

import httpx

from socialhub.config import settings
from socialhub.db.models import Platform
from socialhub.errors import UpstreamError
from socialhub.services.schemas import (
    LinkedInUgcPost,
    LinkedInUgcPostList,
    LinkedInUploadTicket,
    PostSummary,
    ProviderIdentity,
    PublishedPost,
    TokenBundle,
    parse,
)

logger = logging.getLogger(__name__)

AUTH_URL = "https://www.linkedin.com/oauth/v2/authorization"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
API_URL = "https://api.linkedin.com"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
PROVIDER = "LinkedIn"

SHARE_CONTENT = "com.linkedin.ugc.ShareContent"
UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"


def person_urn(person_id: str) -> str:
    return f"urn:li:person:{person_id}"


def organization_urn(organization_id: str) -> str:
    return f"urn:li:organization:{organization_id}"


def log_request_id(resp: httpx.Response) -> None:
    req_id = resp.headers.get("x-restli-request-id")
    if req_id:
        logger.info("[linkedin] request id: %s", req_id)


def to_post_summary(post: LinkedInUgcPost) -> PostSummary:
    share = post.specificContent.get(SHARE_CONTENT) or {}
    text = (share.get("shareCommentary") or {}).get("text") or ""
    media = share.get("media") or []
    image_url = media[0].get("originalUrl") if media and isinstance(media[0], dict) else None

    millis = (post.created or {}).get("time") or post.firstPublishedAt
    created = datetime.fromtimestamp(millis / 1000, tz=timezone.utc).replace(tzinfo=None) if millis else None
    # the UGC API carries no engagement counts; they stay at zero
    return PostSummary(
        id=post.id,
        platform=Platform.LINKEDIN,
        text=text,
        created_time=created,
        image_url=image_url,
    )


def build_share_payload(
    author_urn: str,
    text: str,
    link: Optional[str] = None,
    asset_urn: Optional[str] = None,
) -> Dict[str, Any]:
    if link and asset_urn:
        raise ValueError("A LinkedIn share carries either a link or an image, not both")

    share: Dict[str, Any] = {"shareCommentary": {"text": text}, "shareMediaCategory": "NONE"}
    if asset_urn:
        share["shareMediaCategory"] = "IMAGE"
        share["media"] = [{"status": "READY", "media": asset_urn, "description": {"text": text[:200]}}]
    elif link:
        share["shareMediaCategory"] = "ARTICLE"
        share["media"] = [{"status": "READY", "originalUrl": link}]

    return {
        "author": author_urn,
        "lifecycleState": "PUBLISHED",
        "specificContent": {SHARE_CONTENT: share},
        "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
    }


class LinkedInClient:
    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        organization_id: Optional[str] = None,
        api_url: str = API_URL,
        token_url: str = TOKEN_URL,
    ):
        self.http = http or httpx.Client(timeout=settings.http_timeout_seconds)
        self.client_id = client_id if client_id is not None else settings.linkedin_client_id
        self.client_secret = client_secret if client_secret is not None else settings.linkedin_client_secret
        self.organization_id = organization_id if organization_id is not None else settings.linkedin_organization_id
        self.api_url = api_url.rstrip("/")
        self.token_url = token_url

    @staticmethod
    def _headers(access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    def _send(self, method: str, url: str, context: str, **kwargs) -> httpx.Response:
        try:
            r = self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("[linkedin] %s request error: %s", context, e)
            raise UpstreamError(f"Could not reach LinkedIn: {e}", provider=PROVIDER) from e
        log_request_id(r)

        if r.status_code >= 400:
            message, code = "LinkedIn API request failed", None
            try:
                err = r.json()
                message = err.get("message") or err.get("error_description") or message
                code = err.get("serviceErrorCode") or err.get("error")
            except (ValueError, AttributeError):
                pass
            logger.warning("[linkedin] %s failed: status=%s code=%s message=%s", context, r.status_code, code, message)
            raise UpstreamError(message, provider=PROVIDER, provider_status=r.status_code, provider_code=code, body=r.text[:500])
        return r

    @staticmethod
    def _json(r: httpx.Response) -> Dict[str, Any]:
        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError("Unexpected response from LinkedIn", provider=PROVIDER, body=r.text[:500]) from e
        if not isinstance(data, dict):
            raise UpstreamError("Unexpected response from LinkedIn", provider=PROVIDER, body=r.text[:500])
        return data

    # --- OAuth ---

    def auth_url(self, state: str, redirect_uri: str, scopes: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": scopes or settings.linkedin_scopes,
            "state": state,
        }
        qs = urlencode(params, quote_via=quote, safe=":/")
        return f"{AUTH_URL}?{qs}"

    def _token_request(self, form: Dict[str, str], context: str) -> TokenBundle:
        form = {**form, "client_id": self.client_id, "client_secret": self.client_secret}
        r = self._send(
            "POST", self.token_url, context,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        return parse(TokenBundle, self._json(r), PROVIDER)

    def exchange_code_for_token(self, code: str, redirect_uri: str) -> TokenBundle:
        # redirect_uri must be byte-identical to the one sent in the authorization URL
        return self._token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri},
            "exchange_code",
        )

    def exchange_refresh_for_token(self, refresh_token: str) -> TokenBundle:
        return self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            "refresh_token",
        )

    # --- Identity ---

    def get_profile(self, access_token: str) -> ProviderIdentity:
        """
        Resolve the member id behind the token via /v2/me. Apps granted only
        the OpenID scopes get 403 there; fall back to userinfo's ``sub``.
        """
        try:
            r = self._send(
                "GET", f"{self.api_url}/v2/me", "get_profile",
                headers=self._headers(access_token),
                params={"projection": "(id)"},
            )
            return parse(ProviderIdentity, self._json(r), PROVIDER)
        except UpstreamError as e:
            if e.provider_status != 403:
                raise
            logger.info("[linkedin] /v2/me forbidden, falling back to userinfo")

        r = self._send("GET", USERINFO_URL, "userinfo", headers={"Authorization": f"Bearer {access_token}"})
        data = self._json(r)
        if not data.get("sub"):
            raise UpstreamError("Unexpected response from LinkedIn", provider=PROVIDER, body=str(data)[:500])
        return ProviderIdentity(id=str(data["sub"]), name=data.get("name"))

    def author_urn(self, person_id: str) -> str:
        if self.organization_id:
            return organization_urn(self.organization_id)
        return person_urn(person_id)

    # --- Posts ---

    def get_posts(self, author_urn: str, access_token: str, limit: int = 10) -> list:
        # Rest.li 2.0 wants the URN inside List(...) percent-encoded
        qs = f"q=authors&authors=List({quote(author_urn, safe='')})&count={int(limit)}"
        r = self._send("GET", f"{self.api_url}/v2/ugcPosts?{qs}", "get_posts", headers=self._headers(access_token))
        posts = parse(LinkedInUgcPostList, self._json(r), PROVIDER).elements
        return [to_post_summary(p) for p in posts]

    def register_image_upload(self, access_token: str, owner_urn: str) -> LinkedInUploadTicket:
        payload = {
            "registerUploadRequest": {
                "owner": owner_urn,
                "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                "serviceRelationships": [{
                    "relationshipType": "OWNER",
                    "identifier": "urn:li:userGeneratedContent",
                }],
            }
        }
        r = self._send(
            "POST", f"{self.api_url}/v2/assets?action=registerUpload", "register_upload",
            headers=self._headers(access_token),
            json=payload,
        )
        value = self._json(r).get("value") or {}
        mechanism = (value.get("uploadMechanism") or {}).get(UPLOAD_MECHANISM) or {}
        return parse(LinkedInUploadTicket, {"upload_url": mechanism.get("uploadUrl"), "asset": value.get("asset")}, PROVIDER)

    def upload_image(self, upload_url: str, access_token: str, image_bytes: bytes) -> None:
        self._send(
            "PUT", upload_url, "upload_image",
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/octet-stream"},
            content=image_bytes,
        )

    def publish_post(
        self,
        author_urn: str,
        access_token: str,
        text: str,
        link: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
    ) -> PublishedPost:
        """
        Create one UGC post: NONE for text only, ARTICLE for a link, IMAGE for
        uploaded image bytes. Link and image together are rejected.
        """
        if link and image_bytes:
            raise ValueError("Pass either link or image_bytes to publish_post, not both")

        asset_urn = None
        if image_bytes:
            ticket = self.register_image_upload(access_token, author_urn)
            self.upload_image(ticket.upload_url, access_token, image_bytes)
            asset_urn = ticket.asset

        payload = build_share_payload(author_urn, text, link=link, asset_urn=asset_urn)
        r = self._send(
            "POST", f"{self.api_url}/v2/ugcPosts", "publish_post",
            headers={**self._headers(access_token), "Content-Type": "application/json"},
            json=payload,
        )
        # the new URN comes back in x-restli-id; some API versions echo it in the body too
        post_id = r.headers.get("x-restli-id")
        if not post_id:
            try:
                post_id = (r.json() or {}).get("id")
            except ValueError:
                post_id = None
        if not post_id:
            raise UpstreamError("LinkedIn did not return a post id", provider=PROVIDER, body=r.text[:500])
        logger.info("[linkedin] published post %s as %s", post_id, author_urn)
        return PublishedPost(id=str(post_id))
