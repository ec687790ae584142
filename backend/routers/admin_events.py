from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from event_catalog import create_event, delete_event, list_events, serialize_event, set_event_status, update_event
from models import Admin, EventStatus
from points_service import award_points
from schemas import (
    AwardPointsRequest,
    AwardPointsResponse,
    EventCreate,
    EventResponse,
    EventStatusUpdate,
    EventUpdate,
)
from security import require_admin
from utils import log_admin_action

router = APIRouter()


@router.get("/admin/events", response_model=List[EventResponse])
def admin_list_events(
    _: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [EventResponse(**serialize_event(event)) for event in list_events(db)]


@router.post("/admin/events", response_model=EventResponse)
def admin_create_event(
    payload: EventCreate,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    event = create_event(db, payload)
    log_admin_action(
        db,
        admin,
        "Create event",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": event.id, "name": event.name},
    )
    return EventResponse(**serialize_event(event))


@router.put("/admin/events/{event_id}", response_model=EventResponse)
def admin_update_event(
    event_id: int,
    payload: EventUpdate,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    event = update_event(db, event_id, payload)
    log_admin_action(
        db,
        admin,
        "Update event",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": event_id, "fields": sorted(payload.model_dump(exclude_unset=True).keys())},
    )
    return EventResponse(**serialize_event(event))


@router.put("/admin/events/{event_id}/status", response_model=EventResponse)
def admin_set_event_status(
    event_id: int,
    payload: EventStatusUpdate,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    event = set_event_status(db, event_id, EventStatus(payload.status.value))
    log_admin_action(
        db,
        admin,
        "Change event status",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": event_id, "status": payload.status.value},
    )
    return EventResponse(**serialize_event(event))


@router.delete("/admin/events/{event_id}")
def admin_delete_event(
    event_id: int,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    delete_event(db, event_id)
    log_admin_action(
        db,
        admin,
        "Delete event",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": event_id},
    )
    return {"message": "Event deleted successfully"}


@router.post("/admin/points/award", response_model=AwardPointsResponse)
def admin_award_points(
    payload: AwardPointsRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    result = award_points(
        db,
        payload.participant_id,
        payload.event_id,
        payload.award.value,
        bucket=payload.bucket,
        arbitrary_points=payload.arbitrary_points,
    )
    log_admin_action(
        db,
        admin,
        "Award points",
        request.method if request else None,
        request.url.path if request else None,
        {
            "event_id": payload.event_id,
            "participant_id": result.participant_id,
            "award": result.award,
            "amount": result.amount,
        },
    )
    return AwardPointsResponse(
        message=f"Points awarded to {result.participant_id} successfully",
        participant_id=result.participant_id,
        points=result.points,
    )
