from typing import Generator, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from socialhub.auth.security import verify_token
from socialhub.config import settings
from socialhub.db.base import SessionLocal, engine, Base
from socialhub.db import models
from socialhub.services.facebook_api import FacebookClient
from socialhub.services.hf_client import HFClient
from socialhub.services.linkedin_api import LinkedInClient
from socialhub.services.media import MediaFetcher
from socialhub.services.oauth import FacebookOAuth, LinkedInOAuth
from socialhub.services.publisher import Publisher

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[models.User]:
    """The signed-in user from the Bearer header or the accessToken cookie; None when anonymous."""
    token = token or request.cookies.get(ACCESS_COOKIE)
    if not token:
        return None

    payload = verify_token(token, "access")
    if not payload:
        return None
    try:
        user_id = int(payload.get("sub"))
    except (ValueError, TypeError):
        return None
    return db.get(models.User, user_id)


def get_required_user(current_user: Optional[models.User] = Depends(get_current_user)) -> models.User:
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


# --- Outbound clients, one httpx.Client per request ---

def get_http_client() -> Generator[httpx.Client, None, None]:
    with httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True) as http:
        yield http


def get_facebook_client(http: httpx.Client = Depends(get_http_client)) -> FacebookClient:
    return FacebookClient(http=http)


def get_linkedin_client(http: httpx.Client = Depends(get_http_client)) -> LinkedInClient:
    return LinkedInClient(http=http)


def get_media_fetcher(http: httpx.Client = Depends(get_http_client)) -> MediaFetcher:
    return MediaFetcher(http=http)


def get_hf_client(http: httpx.Client = Depends(get_http_client)) -> Optional[HFClient]:
    """None when no Hugging Face token is configured."""
    if not settings.hf_api_token:
        return None
    return HFClient(http=http)


def get_facebook_oauth(client: FacebookClient = Depends(get_facebook_client)) -> FacebookOAuth:
    return FacebookOAuth(client)


def get_linkedin_oauth(client: LinkedInClient = Depends(get_linkedin_client)) -> LinkedInOAuth:
    return LinkedInOAuth(client)


def get_publisher(
    db: Session = Depends(get_db),
    facebook: FacebookClient = Depends(get_facebook_client),
    linkedin: LinkedInClient = Depends(get_linkedin_client),
    media: MediaFetcher = Depends(get_media_fetcher),
) -> Publisher:
    return Publisher(db, facebook, linkedin, media)
