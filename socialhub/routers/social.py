# socialhub/routers/social.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from socialhub.db import credentials
from socialhub.db.models import Platform, User
from socialhub.deps import get_db, get_required_user
from socialhub.errors import ValidationError

router = APIRouter(prefix="/api/social", tags=["social"])


@router.get("/status")
def status(user: User = Depends(get_required_user), db: Session = Depends(get_db)):
    return {
        "facebook": credentials.credential_status(db, user.id, Platform.FACEBOOK),
        "linkedin": credentials.credential_status(db, user.id, Platform.LINKEDIN),
    }


@router.delete("/{platform}/disconnect")
def disconnect(platform: str, user: User = Depends(get_required_user), db: Session = Depends(get_db)):
    try:
        target = Platform(platform.upper())
    except ValueError:
        raise ValidationError(f"Invalid platform: {platform}")
    credentials.clear_credential(db, user.id, target)
    return {"message": f"{target.label} account disconnected"}
