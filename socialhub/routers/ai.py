# socialhub/routers/ai.py
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from socialhub.db import crud
from socialhub.db.models import User
from socialhub.deps import get_db, get_hf_client, get_required_user
from socialhub.services.captions import generate_caption
from socialhub.services.hf_client import HFClient

router = APIRouter(prefix="/api/ai", tags=["ai"])


class CaptionIn(BaseModel):
    content: str
    tone: str = "professional"


@router.post("/caption")
def caption(
    body: CaptionIn,
    user: User = Depends(get_required_user),
    db: Session = Depends(get_db),
    hf: Optional[HFClient] = Depends(get_hf_client),
):
    org = crud.get_organization(db, user.id)
    text = generate_caption(body.content, tone=body.tone, org=org, hf=hf)
    return {"success": True, "message": "Content generated successfully.", "content": text}
