# socialhub/services/publisher.py
"""
Publishes one piece of content to several platforms.

Each requested platform is an independent task that ends in a
``PlatformOutcome`` (a stored Post or an error message). Tasks run in order,
one after the other, and a failure on one platform never stops the next.
Nothing is retried: a repeated request creates repeated posts.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from socialhub.clock import to_naive_utc, utcnow
from socialhub.db import credentials, crud
from socialhub.db.models import Platform, Post, PostStatus
from socialhub.errors import SocialHubError, ValidationError
from socialhub.services.facebook_api import FacebookClient
from socialhub.services.linkedin_api import LinkedInClient
from socialhub.services.media import MediaFetcher
from socialhub.services.oauth import fresh_linkedin_credential

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Platform not connected"


@dataclass
class PlatformError:
    platform: Platform
    message: str

    def to_dict(self):
        return {"platform": self.platform.value, "message": self.message}


@dataclass
class PlatformOutcome:
    platform: Platform
    post: Optional[Post] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.post is not None


@dataclass
class PublishResult:
    created: List[Post] = field(default_factory=list)
    errors: List[PlatformError] = field(default_factory=list)
    scheduled: bool = False

    @property
    def failed(self) -> bool:
        return not self.created and bool(self.errors)

    def add(self, outcome: PlatformOutcome) -> None:
        if outcome.ok:
            self.created.append(outcome.post)
        else:
            self.errors.append(PlatformError(outcome.platform, outcome.error or "Failed to publish"))


def parse_platforms(values: Iterable[Union[str, Platform]]) -> List[Platform]:
    """Known platforms in request order without duplicates; every unknown value is reported at once."""
    values = list(values or [])
    if not values:
        raise ValidationError("At least one platform is required")

    platforms: List[Platform] = []
    invalid: List[str] = []
    for value in values:
        try:
            platform = Platform(str(getattr(value, "value", value)).upper())
        except ValueError:
            invalid.append(str(value))
            continue
        if platform not in platforms:
            platforms.append(platform)
    if invalid:
        raise ValidationError(f"Invalid platforms: {', '.join(invalid)}")
    return platforms


def parse_schedule(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("scheduledDate must be an ISO-8601 date-time")
    return to_naive_utc(value)


class Publisher:
    def __init__(
        self,
        db: Session,
        facebook: FacebookClient,
        linkedin: LinkedInClient,
        media: Optional[MediaFetcher] = None,
    ):
        self.db = db
        self.facebook = facebook
        self.linkedin = linkedin
        self.media = media or MediaFetcher()

    def create_post(
        self,
        user_id: int,
        content: str,
        platforms: Iterable[Union[str, Platform]],
        media_url: Optional[str] = None,
        link: Optional[str] = None,
        image_base64: Optional[str] = None,
        scheduled_at: Union[str, datetime, None] = None,
    ) -> PublishResult:
        if not content or not content.strip():
            raise ValidationError("Content is required")
        targets = parse_platforms(platforms)

        when = parse_schedule(scheduled_at)
        if when is not None:
            if when <= utcnow():
                raise ValidationError("Scheduled date must be in the future")
            return self._schedule(user_id, content, targets[0], when, media_url)

        image = self.media.acquire(media_url=media_url, image_base64=image_base64)

        result = PublishResult()
        for platform in targets:
            result.add(self.publish_to(platform, user_id, content, link=link, image=image, media_url=media_url))
        logger.info(
            "[publish] user=%s created=%s errors=%s",
            user_id, len(result.created), [e.platform.value for e in result.errors],
        )
        return result

    def _schedule(self, user_id: int, content: str, platform: Platform, when: datetime, media_url: Optional[str]) -> PublishResult:
        # only the first platform is recorded and nothing dispatches SCHEDULED rows
        post = crud.create_post(
            self.db, user_id, content, platform, PostStatus.SCHEDULED,
            published_at=when, media_url=media_url,
        )
        logger.info("[publish] user=%s scheduled post %s on %s for %s", user_id, post.id, platform.value, when.isoformat())
        return PublishResult(created=[post], scheduled=True)

    def publish_to(
        self,
        platform: Platform,
        user_id: int,
        content: str,
        link: Optional[str] = None,
        image: Optional[bytes] = None,
        media_url: Optional[str] = None,
    ) -> PlatformOutcome:
        handler = {
            Platform.FACEBOOK: self._publish_facebook,
            Platform.LINKEDIN: self._publish_linkedin,
        }[platform]
        try:
            platform_id = handler(user_id, content, link, image)
        except SocialHubError as e:
            logger.warning("[publish] %s failed for user %s: %s", platform.value, user_id, e.message)
            return PlatformOutcome(platform, error=e.message)
        except Exception:
            logger.exception("[publish] %s failed for user %s", platform.value, user_id)
            return PlatformOutcome(platform, error=f"Failed to publish to {platform.label}")

        if platform_id is None:
            return PlatformOutcome(platform, error=NOT_CONNECTED)

        post = crud.create_post(
            self.db, user_id, content, platform, PostStatus.PUBLISHED,
            published_at=utcnow(), platform_id=platform_id, media_url=media_url,
        )
        return PlatformOutcome(platform, post=post)

    def _publish_facebook(self, user_id: int, content: str, link: Optional[str], image: Optional[bytes]) -> Optional[str]:
        cred = credentials.get_credential(self.db, user_id, Platform.FACEBOOK)
        if cred is None:
            return None
        page = self.facebook.list_pages(cred.access_token)[0]
        published = self.facebook.publish_page_post(
            page.id, page.page_access_token, content, link=link, image_bytes=image,
        )
        return published.id

    def _publish_linkedin(self, user_id: int, content: str, link: Optional[str], image: Optional[bytes]) -> Optional[str]:
        cred = fresh_linkedin_credential(self.db, user_id, self.linkedin)
        if cred is None:
            return None
        author = self.linkedin.author_urn(cred.provider_id)
        published = self.linkedin.publish_post(
            author, cred.access_token, content,
            link=None if image else link,
            image_bytes=image,
        )
        return published.id
