from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..db import models
from ..services.calendar_client import CalendarClient
from ..services.outreach_service import OutreachComposer
from .auth import get_current_user
from .deps import get_calendar_client

router = APIRouter(prefix="/outreach", tags=["outreach"])


class AvailabilityIn(BaseModel):
    # client's local date; the scan starts on the following day
    anchor_date: Optional[date] = Field(default=None, alias="anchorDate")

    model_config = ConfigDict(populate_by_name=True)

    def anchor(self) -> date:
        return self.anchor_date or datetime.now(timezone.utc).date()


class ComposeIn(AvailabilityIn):
    body: str = Field(..., min_length=1)


@router.post("/availability")
def availability(
    payload: AvailabilityIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    client: CalendarClient = Depends(get_calendar_client),
):
    lines = OutreachComposer(client).availability_for_user(db, current_user.id, payload.anchor())
    return {"availability": lines}


@router.post("/compose")
def compose(
    payload: ComposeIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    client: CalendarClient = Depends(get_calendar_client),
):
    body = OutreachComposer(client).compose(db, current_user.id, payload.body, payload.anchor())
    return {"body": body}
