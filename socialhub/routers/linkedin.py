# socialhub/routers/linkedin.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from socialhub.db import credentials
from socialhub.db.models import Platform, User
from socialhub.deps import get_current_user, get_db, get_linkedin_oauth, get_required_user
from socialhub.errors import SocialHubError
from socialhub.services.oauth import LinkedInOAuth, frontend_redirect_url

router = APIRouter(prefix="/api/linkedin", tags=["linkedin"])


@router.get("/status")
def status(user: User = Depends(get_required_user), db: Session = Depends(get_db)):
    return credentials.credential_status(db, user.id, Platform.LINKEDIN)


@router.get("/auth")
def auth(
    redirect: bool = Query(False, description="Answer with a 307 to LinkedIn instead of JSON"),
    user: Optional[User] = Depends(get_current_user),
    flow: LinkedInOAuth = Depends(get_linkedin_oauth),
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
    flow: LinkedInOAuth = Depends(get_linkedin_oauth),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    try:
        flow.handle_callback(
            db, code, state,
            error=error, error_description=error_description,
            session_user_id=user.id if user else None,
        )
    except SocialHubError as e:
        return RedirectResponse(frontend_redirect_url(Platform.LINKEDIN, False, e.message), status_code=302)
    return RedirectResponse(
        frontend_redirect_url(Platform.LINKEDIN, True, "LinkedIn account connected"), status_code=302
    )
