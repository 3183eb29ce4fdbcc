# socialhub/routers/posts.py
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from socialhub.db import crud
from socialhub.db.models import Platform, PostStatus, User
from socialhub.deps import get_db, get_facebook_client, get_linkedin_client, get_publisher, get_required_user
from socialhub.errors import NotConnectedError, ValidationError
from socialhub.routers.facebook import user_token
from socialhub.services.facebook_api import FacebookClient
from socialhub.services.linkedin_api import LinkedInClient
from socialhub.services.oauth import fresh_linkedin_credential
from socialhub.services.publisher import Publisher

router = APIRouter(prefix="/api/posts", tags=["posts"])


class CreatePostIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    platforms: List[str] = []
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    link: Optional[str] = None
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    scheduled_date: Optional[str] = Field(default=None, alias="scheduledDate")


@router.post("", status_code=201)
def create_post(
    body: CreatePostIn,
    user: User = Depends(get_required_user),
    publisher: Publisher = Depends(get_publisher),
):
    result = publisher.create_post(
        user.id,
        body.content,
        body.platforms,
        media_url=body.media_url,
        link=body.link,
        image_base64=body.image_base64,
        scheduled_at=body.scheduled_date,
    )
    errors = [e.to_dict() for e in result.errors]

    if result.scheduled:
        return JSONResponse(status_code=201, content={
            "message": "Post scheduled successfully",
            "post": crud.post_to_dict(result.created[0]),
        })
    if result.failed:
        return JSONResponse(status_code=400, content={"message": "Failed to create posts", "errors": errors})
    return JSONResponse(status_code=201, content={
        "message": "Posts created successfully",
        "posts": [crud.post_to_dict(p) for p in result.created],
        "errors": errors,
    })


@router.get("")
def list_posts(
    platform: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_required_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        platform_filter = Platform(platform.upper()) if platform else None
        status_filter = PostStatus(status.upper()) if status else None
    except ValueError:
        raise ValidationError("Unknown platform or status filter")
    posts = crud.list_posts(db, user.id, platform=platform_filter, status=status_filter, limit=limit)
    return {"posts": [crud.post_to_dict(p) for p in posts]}


@router.get("/facebook")
def facebook_posts(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_required_user),
    client: FacebookClient = Depends(get_facebook_client),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    page = client.list_pages(user_token(db, user))[0]
    posts = client.get_page_posts(page.id, page.page_access_token, limit=limit)
    return {"page": {"id": page.id, "name": page.name}, "posts": [p.to_api() for p in posts]}


@router.get("/linkedin")
def linkedin_posts(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_required_user),
    client: LinkedInClient = Depends(get_linkedin_client),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    cred = fresh_linkedin_credential(db, user.id, client)
    if cred is None:
        raise NotConnectedError("LinkedIn account not connected")
    posts = client.get_posts(client.author_urn(cred.provider_id), cred.access_token, limit=limit)
    return {"posts": [p.to_api() for p in posts]}
