# socialhub/routers/auth.py
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from socialhub.auth import security
from socialhub.clock import utcnow
from socialhub.config import settings
from socialhub.db import crud
from socialhub.db.models import User
from socialhub.deps import ACCESS_COOKIE, REFRESH_COOKIE, get_db, get_required_user
from socialhub.errors import AuthError, ValidationError
from socialhub.services.email import send_password_reset_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REFRESH_COOKIE_PATH = "/api/auth"
RESET_TOKEN_TTL = timedelta(hours=1)


class RegisterIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class OrganizationIn(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    size: Optional[str] = None
    employees: Optional[str] = None
    revenue: Optional[str] = None
    market_area: Optional[str] = Field(default=None, alias="marketArea")

    model_config = {"populate_by_name": True}


class UpdateUserIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    organization: Optional[OrganizationIn] = None


class ForgotPasswordIn(BaseModel):
    email: EmailStr


class ResetPasswordIn(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


def _set_session_cookies(response: Response, access: str, refresh: Optional[str] = None) -> None:
    response.set_cookie(
        ACCESS_COOKIE, access,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True, secure=settings.cookie_secure, samesite="lax",
    )
    if refresh:
        response.set_cookie(
            REFRESH_COOKIE, refresh,
            max_age=settings.refresh_token_expire_days * 24 * 3600,
            httponly=True, secure=settings.cookie_secure, samesite="lax",
            path=REFRESH_COOKIE_PATH,
        )


def _user_payload(db: Session, user: User) -> Dict[str, Any]:
    return crud.user_to_dict(user, crud.get_organization(db, user.id))


@router.post("/register", status_code=201)
def register(body: RegisterIn, response: Response, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if crud.get_user_by_email(db, body.email):
        raise ValidationError("User already exists")
    user = crud.create_user(db, body.name.strip(), body.email, security.hash_password(body.password))
    access, refresh = security.issue_session(db, user)
    _set_session_cookies(response, access, refresh)
    logger.info("Registered user %s", user.id)
    return {
        "message": "User registered successfully",
        "user": _user_payload(db, user),
        "accessToken": access,
        "refreshToken": refresh,
    }


@router.post("/login")
def login(body: LoginIn, response: Response, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, body.email)
    if not user:
        return JSONResponse(
            status_code=404,
            content={"message": "Account not found. Please sign up first.", "code": "USER_NOT_FOUND"},
        )
    if not security.verify_password(body.password, user.password_hash):
        raise AuthError("Invalid credentials")

    access, refresh = security.issue_session(db, user)
    _set_session_cookies(response, access, refresh)
    return {
        "message": "Login successful",
        "user": _user_payload(db, user),
        "accessToken": access,
        "refreshToken": refresh,
    }


class RefreshIn(BaseModel):
    refreshToken: Optional[str] = None


@router.post("/refresh")
def refresh(request: Request, response: Response, body: Optional[RefreshIn] = None, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE) or (body.refreshToken if body else None)
    if not token:
        raise ValidationError("No refresh token provided")
    access = security.refresh_access_token(db, token)
    _set_session_cookies(response, access)
    return {"message": "Token refreshed successfully", "accessToken": access}


@router.post("/logout")
def logout(request: Request, response: Response, body: Optional[RefreshIn] = None, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE) or (body.refreshToken if body else None)
    if token:
        security.revoke_refresh_token(db, token)
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE, path=REFRESH_COOKIE_PATH)
    return {"message": "Logged out successfully"}


@router.get("/me")
def me(user: User = Depends(get_required_user), db: Session = Depends(get_db)):
    return {"user": _user_payload(db, user)}


@router.post("/update-user")
def update_user(body: UpdateUserIn, user: User = Depends(get_required_user), db: Session = Depends(get_db)):
    other = crud.get_user_by_email(db, body.email)
    if other and other.id != user.id:
        raise ValidationError("Email is already in use")
    crud.update_user(db, user, body.name.strip(), body.email)
    if body.organization:
        crud.upsert_organization(db, user.id, body.organization.model_dump(exclude_none=True))
    return {"user": _user_payload(db, user)}


@router.post("/forgot-password")
@router.post("/request-password-reset")
def forgot_password(body: ForgotPasswordIn, db: Session = Depends(get_db)):
    message = "If an account with that email exists, a password reset link has been sent."
    user = crud.get_user_by_email(db, body.email)
    if not user:
        logger.info("Password reset requested for unknown email")
        return {"success": True, "message": message}

    token = security.new_reset_token()
    user.reset_password_token = token
    user.reset_password_expires = utcnow() + RESET_TOKEN_TTL
    db.add(user)
    db.commit()
    send_password_reset_email(user.email, user.name, token)
    return {"success": True, "message": message}


@router.post("/reset-password")
def reset_password(body: ResetPasswordIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.reset_password_token == body.token).first()
    if not user or not user.reset_password_expires or user.reset_password_expires < utcnow():
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = security.hash_password(body.password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.add(user)
    db.commit()
    security.revoke_all_refresh_tokens(db, user.id)
    logger.info("Password reset for user %s", user.id)
    return {"success": True, "message": "Password has been reset successfully"}
