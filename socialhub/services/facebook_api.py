# socialhub/services/facebook_api.py
"""
Facebook Graph API client.

One instance wraps one ``httpx.Client`` plus the app configuration. Every
failure (transport error, non-2xx status, unexpected payload) surfaces as
``UpstreamError`` carrying Facebook's own message when it sent one.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from socialhub.clock import to_naive_utc
from socialhub.config import settings
from socialhub.db.models import Platform
from socialhub.errors import NoPagesError, UpstreamError
from socialhub.services.schemas import (
    FacebookPageList,
    FacebookPage,
    FacebookPostItem,
    FacebookPostList,
    PostSummary,
    ProviderIdentity,
    PublishedPost,
    TokenBundle,
    parse,
)

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com"
DIALOG_URL = "https://www.facebook.com"
PROVIDER = "Facebook"

POST_FIELDS = (
    "id,message,created_time,permalink_url,full_picture,picture,attachments{type,url,media},"
    "insights.metric(post_impressions,post_reactions_by_type_total)"
)


def _parse_created_time(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        # Graph API uses +0000 style offsets
        return to_naive_utc(datetime.strptime(raw, "%Y-%m-%dT%H:%M:%S%z"))
    except ValueError:
        return None


def _metric_value(insights: Optional[Dict[str, Any]], name: str) -> Any:
    for metric in (insights or {}).get("data") or []:
        if metric.get("name") == name:
            values = metric.get("values") or []
            if values:
                return values[0].get("value")
    return None


def _as_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, dict):
        return sum(_as_count(v) for v in value.values())
    return 0


def to_post_summary(item: FacebookPostItem) -> PostSummary:
    image_url = item.full_picture or item.picture
    if not image_url and item.attachments:
        first = (item.attachments.get("data") or [{}])[0]
        image_url = ((first.get("media") or {}).get("image") or {}).get("src")
    return PostSummary(
        id=item.id,
        platform=Platform.FACEBOOK,
        text=item.message or "",
        created_time=_parse_created_time(item.created_time),
        permalink=item.permalink_url,
        image_url=image_url,
        impressions=_as_count(_metric_value(item.insights, "post_impressions")),
        reactions=_as_count(_metric_value(item.insights, "post_reactions_by_type_total")),
    )


class FacebookClient:
    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        app_id: Optional[str] = None,
        app_secret: Optional[str] = None,
        api_version: Optional[str] = None,
        base_url: str = GRAPH_URL,
    ):
        self.http = http or httpx.Client(timeout=settings.http_timeout_seconds)
        self.app_id = app_id if app_id is not None else settings.facebook_app_id
        self.app_secret = app_secret if app_secret is not None else settings.facebook_app_secret
        self.api_version = api_version or settings.facebook_api_version
        self.base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"

    def _send(self, method: str, path: str, context: str, **kwargs) -> Dict[str, Any]:
        try:
            r = self.http.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("[facebook] %s request error: %s", context, e)
            raise UpstreamError(f"Could not reach Facebook: {e}", provider=PROVIDER) from e

        if r.status_code >= 400:
            message, code = "Facebook API request failed", None
            try:
                body = r.json()
            except ValueError:
                body = None
            err = body.get("error") if isinstance(body, dict) else None
            if isinstance(err, dict):
                message = err.get("message") or message
                code = err.get("code")
            elif isinstance(err, str) and err:
                message = err
            logger.warning("[facebook] %s failed: status=%s code=%s message=%s", context, r.status_code, code, message)
            raise UpstreamError(message, provider=PROVIDER, provider_status=r.status_code, provider_code=code, body=r.text[:500])

        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError("Unexpected response from Facebook", provider=PROVIDER, body=r.text[:500]) from e
        if not isinstance(data, dict):
            raise UpstreamError("Unexpected response from Facebook", provider=PROVIDER, body=r.text[:500])
        return data

    # --- OAuth ---

    def auth_url(self, state: str, redirect_uri: str, scopes: Optional[str] = None) -> str:
        params = {
            "client_id": self.app_id,
            "redirect_uri": redirect_uri,
            "scope": scopes or settings.facebook_scopes,
            "response_type": "code",
            "state": state,
        }
        return f"{DIALOG_URL}/{self.api_version}/dialog/oauth?{urlencode(params)}"

    def exchange_code_for_token(self, code: str, redirect_uri: str) -> TokenBundle:
        data = self._send("GET", "oauth/access_token", "exchange_code", params={
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        })
        return parse(TokenBundle, data, PROVIDER)

    def exchange_long_lived_token(self, short_lived_token: str) -> TokenBundle:
        data = self._send("GET", "oauth/access_token", "exchange_long_lived", params={
            "grant_type": "fb_exchange_token",
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "fb_exchange_token": short_lived_token,
        })
        return parse(TokenBundle, data, PROVIDER)

    def get_me(self, access_token: str) -> ProviderIdentity:
        data = self._send("GET", "me", "get_me", params={"fields": "id,name", "access_token": access_token})
        return parse(ProviderIdentity, data, PROVIDER)

    # --- Pages & posts ---

    def list_pages(self, user_access_token: str) -> List[FacebookPage]:
        data = self._send("GET", "me/accounts", "list_pages", params={
            "fields": "id,name,access_token",
            "access_token": user_access_token,
        })
        pages = parse(FacebookPageList, data, PROVIDER).data
        if not pages:
            raise NoPagesError("No Facebook pages found", provider=PROVIDER)
        return pages

    def get_page_posts(self, page_id: str, page_access_token: str, limit: int = 10) -> List[PostSummary]:
        data = self._send("GET", f"{page_id}/posts", "get_page_posts", params={
            "fields": POST_FIELDS,
            "limit": limit,
            "access_token": page_access_token,
        })
        return [to_post_summary(item) for item in parse(FacebookPostList, data, PROVIDER).data]

    def upload_unpublished_photo(self, page_id: str, page_access_token: str, image_bytes: bytes) -> str:
        data = self._send(
            "POST", f"{page_id}/photos", "upload_photo",
            params={"access_token": page_access_token},
            data={"published": "false"},
            files={"source": ("photo.jpg", image_bytes, "image/jpeg")},
        )
        return parse(PublishedPost, data, PROVIDER).id

    def publish_page_post(
        self,
        page_id: str,
        page_access_token: str,
        message: str,
        link: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
    ) -> PublishedPost:
        """
        Create one feed post on the page. With image bytes the photo is uploaded
        unpublished first and attached to the feed post; the link is then not
        sent. Not idempotent: a repeated call creates another post.
        """
        payload: Dict[str, Any] = {"message": message}
        if image_bytes:
            photo_id = self.upload_unpublished_photo(page_id, page_access_token, image_bytes)
            payload["attached_media"] = [{"media_fbid": photo_id}]
        elif link:
            payload["link"] = link

        data = self._send(
            "POST", f"{page_id}/feed", "publish_page_post",
            params={"access_token": page_access_token},
            json=payload,
        )
        post = parse(PublishedPost, data, PROVIDER)
        logger.info("[facebook] published post %s on page %s", post.id, page_id)
        return post
