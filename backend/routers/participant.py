from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from event_catalog import list_events, serialize_event
from models import OPEN_BUCKET
from participant_details import describe_participant
from registration_service import register_solo, register_team
from schemas import (
    EventResponse,
    ParticipantDetails,
    RegistrationResponse,
    SoloRegistrationRequest,
    TeamRegistrationRequest,
)
from security import require_participant

router = APIRouter()


@router.get("/events", response_model=List[EventResponse])
def get_events(db: Session = Depends(get_db)):
    return [EventResponse(**serialize_event(event)) for event in list_events(db)]


@router.post("/participant/registrations/solo", response_model=RegistrationResponse)
def register_for_solo_event(
    payload: SoloRegistrationRequest,
    participant_id: str = Depends(require_participant),
    db: Session = Depends(get_db),
):
    registration = register_solo(
        db,
        participant_id,
        payload.event_id,
        bucket=payload.bucket,
        is_dummy=payload.is_dummy,
        identity=payload.participant,
    )
    return RegistrationResponse(
        message="Registered successfully",
        registration_id=registration.id,
        event_id=registration.event_id,
        bucket=registration.bucket,
        confirmed=registration.confirmed,
    )


@router.post("/participant/registrations/team", response_model=RegistrationResponse)
def register_for_team_event(
    payload: TeamRegistrationRequest,
    participant_id: str = Depends(require_participant),
    db: Session = Depends(get_db),
):
    registration = register_team(
        db,
        participant_id,
        payload.event_id,
        payload.team_name,
        payload.team_members,
        payload.npa_members,
    )
    return RegistrationResponse(
        message="Team registered successfully",
        registration_id=registration.id,
        event_id=registration.event_id,
        bucket=OPEN_BUCKET,
        confirmed=registration.confirmed,
    )


@router.get("/participant/me", response_model=ParticipantDetails)
def get_my_details(
    participant_id: str = Depends(require_participant),
    db: Session = Depends(get_db),
):
    return describe_participant(db, participant_id, refuse_rejected=True)
