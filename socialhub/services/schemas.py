# socialhub/services/schemas.py
"""
Typed shapes of the provider responses we rely on.

Provider payloads are validated here, at the client boundary; anything that
does not fit is rejected as an ``UpstreamError`` instead of being read
optimistically further down.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from socialhub.db.models import Platform
from socialhub.errors import UpstreamError

M = TypeVar("M", bound=BaseModel)


def parse(model: Type[M], data: Any, provider: str) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise UpstreamError(
            f"Unexpected response from {provider}",
            provider=provider,
            body=str(data)[:500],
        ) from e


class TokenBundle(BaseModel):
    """Result of a code exchange or refresh, provider-agnostic."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds; None = unknown / no expiry

    def expires_at(self, now: datetime) -> Optional[datetime]:
        if self.expires_in is None:
            return None
        return now + timedelta(seconds=int(self.expires_in))


class ProviderIdentity(BaseModel):
    id: str
    name: Optional[str] = None


class PublishedPost(BaseModel):
    id: str


class PostSummary(BaseModel):
    id: str
    platform: Platform
    text: str = ""
    created_time: Optional[datetime] = None
    permalink: Optional[str] = None
    image_url: Optional[str] = None
    impressions: int = 0
    reactions: int = 0

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "platformId": self.id,
            "platform": self.platform.value,
            "content": self.text,
            "mediaUrl": self.image_url,
            "publishedAt": self.created_time.isoformat() if self.created_time else None,
            "url": self.permalink,
            "engagement": {"impressions": self.impressions, "reactions": self.reactions},
        }


# --- Facebook Graph API ---

class FacebookPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    page_access_token: str = Field(alias="access_token")


class FacebookPageList(BaseModel):
    data: List[FacebookPage] = []


class FacebookPostItem(BaseModel):
    id: str
    message: Optional[str] = None
    created_time: Optional[str] = None
    permalink_url: Optional[str] = None
    full_picture: Optional[str] = None
    picture: Optional[str] = None
    attachments: Optional[Dict[str, Any]] = None
    insights: Optional[Dict[str, Any]] = None


class FacebookPostList(BaseModel):
    data: List[FacebookPostItem] = []


# --- LinkedIn ---

class LinkedInUgcPost(BaseModel):
    id: str
    specificContent: Dict[str, Any] = {}
    created: Optional[Dict[str, Any]] = None
    firstPublishedAt: Optional[int] = None


class LinkedInUgcPostList(BaseModel):
    elements: List[LinkedInUgcPost] = []


class LinkedInUploadTicket(BaseModel):
    upload_url: str
    asset: str
