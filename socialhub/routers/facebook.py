# socialhub/routers/facebook.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from socialhub.db import credentials
from socialhub.db.models import Platform, User
from socialhub.deps import get_current_user, get_db, get_facebook_client, get_facebook_oauth, get_required_user
from socialhub.errors import NotConnectedError, NotFoundError, SocialHubError
from socialhub.services.facebook_api import FacebookClient
from socialhub.services.oauth import FacebookOAuth, frontend_redirect_url

router = APIRouter(prefix="/api/facebook", tags=["facebook"])


def user_token(db: Session, user: User) -> str:
    cred = credentials.get_credential(db, user.id, Platform.FACEBOOK)
    if cred is None:
        raise NotConnectedError("Facebook account not connected")
    return cred.access_token


@router.get("/status")
def status(user: User = Depends(get_required_user), db: Session = Depends(get_db)):
    return credentials.credential_status(db, user.id, Platform.FACEBOOK)


@router.get("/auth")
def auth(
    redirect: bool = Query(False, description="Answer with a 307 to Facebook instead of JSON"),
    user: Optional[User] = Depends(get_current_user),
    flow: FacebookOAuth = Depends(get_facebook_oauth),
    db: Session = Depends(get_db),
):
    url = flow.start(db, user.id if user else None)
    if redirect:
        return RedirectResponse(url)
    return {"authUrl": url}


@router.get("/callback")
def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    user: Optional[User] = Depends(get_current_user),
    flow: FacebookOAuth = Depends(get_facebook_oauth),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    try:
        flow.handle_callback(
            db, code, state,
            error=error, error_description=error_description,
            session_user_id=user.id if user else None,
        )
    except SocialHubError as e:
        return RedirectResponse(frontend_redirect_url(Platform.FACEBOOK, False, e.message), status_code=302)
    return RedirectResponse(
        frontend_redirect_url(Platform.FACEBOOK, True, "Facebook account connected"), status_code=302
    )


@router.get("/pages")
def pages(
    user: User = Depends(get_required_user),
    client: FacebookClient = Depends(get_facebook_client),
    db: Session = Depends(get_db),
):
    # page access tokens stay server-side
    return {"pages": [{"id": p.id, "name": p.name} for p in client.list_pages(user_token(db, user))]}


@router.get("/pages/{page_id}/posts")
def page_posts(
    page_id: str,
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_required_user),
    client: FacebookClient = Depends(get_facebook_client),
    db: Session = Depends(get_db),
):
    page = next((p for p in client.list_pages(user_token(db, user)) if p.id == page_id), None)
    if page is None:
        raise NotFoundError("Facebook page not found")
    posts = client.get_page_posts(page.id, page.page_access_token, limit=limit)
    return {"page": {"id": page.id, "name": page.name}, "posts": [p.to_api() for p in posts]}
