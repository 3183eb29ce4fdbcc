from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from socialhub.db import models
from socialhub.db.models import Platform, PostStatus

ORGANIZATION_FIELDS = (
    "name", "category", "description", "website", "location",
    "size", "employees", "revenue", "market_area",
)


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.lower()).first()


def create_user(db: Session, name: str, email: str, password_hash: str) -> models.User:
    obj = models.User(name=name, email=email.lower(), password_hash=password_hash)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def update_user(db: Session, user: models.User, name: str, email: str) -> models.User:
    user.name = name
    user.email = email.lower()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_organization(db: Session, user_id: int) -> Optional[models.Organization]:
    return (
        db.query(models.Organization)
        .filter(models.Organization.user_id == user_id)
        .order_by(models.Organization.id)
        .first()
    )


def upsert_organization(db: Session, user_id: int, data: Dict[str, Any]) -> models.Organization:
    org = get_organization(db, user_id)
    if not org:
        org = models.Organization(user_id=user_id, name=data.get("name") or "New Organization")
    for field in ORGANIZATION_FIELDS:
        if field in data and data[field] is not None:
            setattr(org, field, data[field])
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


def create_post(
    db: Session,
    user_id: int,
    content: str,
    platform: Platform,
    status: PostStatus,
    published_at: datetime,
    platform_id: Optional[str] = None,
    media_url: Optional[str] = None,
) -> models.Post:
    obj = models.Post(
        user_id=user_id,
        content=content,
        platform=platform,
        status=status,
        published_at=published_at,
        platform_id=platform_id,
        media_url=media_url,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def list_posts(
    db: Session,
    user_id: int,
    platform: Optional[Platform] = None,
    status: Optional[PostStatus] = None,
    limit: int = 50,
) -> List[models.Post]:
    q = db.query(models.Post).filter(models.Post.user_id == user_id)
    if platform:
        q = q.filter(models.Post.platform == platform)
    if status:
        q = q.filter(models.Post.status == status)
    return q.order_by(models.Post.id.desc()).limit(limit).all()


def post_to_dict(post: models.Post) -> Dict[str, Any]:
    return {
        "id": post.id,
        "content": post.content,
        "mediaUrl": post.media_url,
        "status": post.status.value,
        "platform": post.platform.value,
        "platformId": post.platform_id,
        "publishedAt": post.published_at.isoformat() if post.published_at else None,
        "userId": post.user_id,
    }


def organization_to_dict(org: Optional[models.Organization]) -> Optional[Dict[str, Any]]:
    if not org:
        return None
    out = {"id": org.id}
    for field in ORGANIZATION_FIELDS:
        out[field] = getattr(org, field)
    return out


def user_to_dict(user: models.User, organization: Optional[models.Organization] = None) -> Dict[str, Any]:
    # never exposes password hash, reset token or provider tokens
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "facebookConnected": bool(user.facebook_token),
        "linkedInConnected": bool(user.linkedin_access_token),
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "organization": organization_to_dict(organization),
    }
