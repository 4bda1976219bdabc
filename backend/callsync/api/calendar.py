from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..db import models
from ..domain.calendar import PendingAttendee, SyncWindow
from ..domain.enums import ConnectionType, PushAction
from ..services.calendar_client import CalendarClient
from ..usecases.confirm_contacts import ConfirmContactsUseCase, ConfirmedAttendee
from ..usecases.push_call import PushCallUseCase
from ..usecases.sync_calls import SyncCallsUseCase
from .auth import get_current_user
from .deps import get_calendar_client

router = APIRouter(prefix="/calendar", tags=["calendar"])


class WindowIn(BaseModel):
    time_min: datetime = Field(..., alias="timeMin")
    time_max: datetime = Field(..., alias="timeMax")

    model_config = ConfigDict(populate_by_name=True)

    def to_window(self) -> SyncWindow:
        return SyncWindow(self.time_min, self.time_max)


class EventOut(BaseModel):
    id: str
    summary: str
    description: Optional[str] = None
    location: Optional[str] = None
    start: datetime
    end: datetime
    status: str


class PendingContactOut(BaseModel):
    email: str
    display_name: str = Field(..., alias="displayName")
    gcal_event_id: str = Field(..., alias="gcalEventId")
    event_title: str = Field(..., alias="eventTitle")
    start_at: datetime = Field(..., alias="startAt")
    end_at: datetime = Field(..., alias="endAt")
    location: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_pending(cls, p: PendingAttendee) -> "PendingContactOut":
        return cls(
            email=p.email,
            display_name=p.display_name,
            gcal_event_id=p.external_event_id,
            event_title=p.event_title,
            start_at=p.start_at,
            end_at=p.end_at,
            location=p.location,
            notes=p.notes,
        )


class ConfirmedContactIn(PendingContactOut):
    name: Optional[str] = None
    firm: Optional[str] = None
    position: Optional[str] = None
    connection_type: ConnectionType = Field(default=ConnectionType.COLD, alias="connectionType")
    display_name: Optional[str] = Field(default=None, alias="displayName")

    def to_confirmed(self) -> ConfirmedAttendee:
        email = self.email.lower()
        pending = PendingAttendee(
            email=email,
            display_name=self.display_name or email.split("@")[0],
            external_event_id=self.gcal_event_id,
            event_title=self.event_title,
            start_at=self.start_at,
            end_at=self.end_at,
            location=self.location,
            notes=self.notes,
        )
        return ConfirmedAttendee(
            pending=pending,
            name=self.name,
            firm=self.firm,
            position=self.position,
            connection_type=self.connection_type,
        )


class ConfirmIn(BaseModel):
    contacts: List[ConfirmedContactIn]


class PushIn(BaseModel):
    call_record_id: str = Field(..., alias="callRecordId")
    action: PushAction
    attendee_email: Optional[str] = Field(default=None, alias="attendeeEmail")

    model_config = ConfigDict(populate_by_name=True)


@router.post("/events/list")
def list_events(
    body: WindowIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    client: CalendarClient = Depends(get_calendar_client),
):
    window = body.to_window()
    credential = client.vault.get(db, current_user.id)
    events = client.list_events(db, credential, None, window)
    return {
        "events": [
            EventOut(
                id=e.id,
                summary=e.title,
                description=e.description,
                location=e.location,
                start=e.start_at,
                end=e.end_at,
                status=e.status.value,
            )
            for e in events
        ]
    }


@router.post("/sync")
def sync_calls(
    body: WindowIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    client: CalendarClient = Depends(get_calendar_client),
):
    window = body.to_window()
    res = SyncCallsUseCase(client).execute(db, current_user, window)
    return {
        "synced": res.synced,
        "skipped": res.skipped,
        "pendingContacts": [
            PendingContactOut.from_pending(p).model_dump(by_alias=True) for p in res.pending
        ],
    }


@router.post("/confirm-contacts")
def confirm_contacts(
    body: ConfirmIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    approved = [c.to_confirmed() for c in body.contacts]
    created = ConfirmContactsUseCase().confirm(db, current_user.id, approved)
    return {"created": created}


@router.post("/push")
def push_call(
    body: PushIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    client: CalendarClient = Depends(get_calendar_client),
):
    res = PushCallUseCase(client).apply(
        db, current_user.id, body.call_record_id, body.action, attendee_email=body.attendee_email
    )
    return {"success": True, "action": res.action.value, "externalEventId": res.external_event_id}
