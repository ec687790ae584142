import logging
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from errors import InvalidArgument, NotFound
from models import (
    Event,
    EventFormat,
    EventPhaseType,
    EventSlotBucket,
    EventStatus,
    EventType,
    OPEN_BUCKET,
    SLOT_SCHEME_BUCKETS,
    SLOT_SCHEME_DISCRIMINATOR,
    SlotScheme,
)
from schemas import EventCreate, EventUpdate

logger = logging.getLogger(__name__)

STATUS_ORDER = [EventStatus.UPCOMING, EventStatus.ONGOING, EventStatus.COMPLETED]


def decide_slot_scheme(slots: Union[int, Dict[str, int]]) -> Tuple[SlotScheme, Dict[str, int]]:
    if isinstance(slots, dict):
        keys = set(slots.keys())
        for scheme in (SlotScheme.SEX, SlotScheme.WEIGHT):
            names = SLOT_SCHEME_BUCKETS[scheme]
            if keys == set(names):
                return scheme, {name: int(slots[name]) for name in names}
        raise InvalidArgument(
            "Slot buckets must be exactly male/female or lightWeight/middleWeight/heavyWeight"
        )
    return SlotScheme.SCALAR, {OPEN_BUCKET: int(slots)}


def get_active_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id, Event.deleted.is_(False)).first()
    if not event:
        raise NotFound("Event not found")
    return event


def list_events(db: Session) -> List[Event]:
    return db.query(Event).filter(Event.deleted.is_(False)).order_by(Event.date.asc(), Event.id.asc()).all()


def resolve_bucket(event: Event, requested: Optional[str]) -> str:
    if event.slot_scheme == SlotScheme.SCALAR:
        return OPEN_BUCKET
    discriminator = SLOT_SCHEME_DISCRIMINATOR[event.slot_scheme]
    if not requested:
        raise InvalidArgument(f"{discriminator} is required for {event.name}")
    if requested not in SLOT_SCHEME_BUCKETS[event.slot_scheme]:
        raise InvalidArgument(f"Invalid {discriminator}: {requested}")
    return requested


def lock_bucket(db: Session, event_id: int, bucket: str) -> EventSlotBucket:
    row = (
        db.query(EventSlotBucket)
        .filter(EventSlotBucket.event_id == event_id, EventSlotBucket.name == bucket)
        .with_for_update()
        .first()
    )
    if not row:
        raise NotFound(f"Slot bucket {bucket} not found")
    return row


def create_event(db: Session, payload: EventCreate) -> Event:
    name = payload.name
    duplicate = (
        db.query(Event)
        .filter(func.lower(Event.name) == name.lower(), Event.deleted.is_(False))
        .first()
    )
    if duplicate:
        raise InvalidArgument("Event with this name already exists")

    scheme, counts = decide_slot_scheme(payload.slots)
    event_format = EventFormat(payload.format.value)
    if event_format == EventFormat.TEAM and scheme != SlotScheme.SCALAR:
        raise InvalidArgument("Team events only support a single slot count")

    event = Event(
        name=name,
        description=payload.description,
        event_type=EventType(payload.event_type.value),
        format=event_format,
        slot_scheme=scheme,
        phase_type=EventPhaseType(payload.phase_type.value),
        status=EventStatus.UPCOMING,
        date=payload.date,
        points=payload.points.model_dump(),
        team_min_size=payload.team_size.min if payload.team_size else None,
        team_max_size=payload.team_size.max if payload.team_size else None,
        npa_amount=payload.npa_amount,
    )
    for bucket, count in counts.items():
        event.buckets.append(EventSlotBucket(name=bucket, capacity=count, slots=count))
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event %s (%s, %s)", event.id, event.format.value, scheme.value)
    return event


def update_event(db: Session, event_id: int, payload: EventUpdate) -> Event:
    event = get_active_event(db, event_id)
    if event.status != EventStatus.UPCOMING:
        raise InvalidArgument("Event can only be edited while it is UPCOMING")

    updates = payload.model_dump(exclude_unset=True)
    if "event_type" in updates and updates["event_type"] is not None:
        updates["event_type"] = EventType(updates["event_type"].value)
    if "phase_type" in updates and updates["phase_type"] is not None:
        updates["phase_type"] = EventPhaseType(updates["phase_type"].value)
    for key, value in updates.items():
        if value is not None:
            setattr(event, key, value)
    db.commit()
    db.refresh(event)
    return event


def set_event_status(db: Session, event_id: int, status: EventStatus) -> Event:
    event = get_active_event(db, event_id)
    if STATUS_ORDER.index(status) <= STATUS_ORDER.index(event.status):
        raise InvalidArgument(f"Cannot move event from {event.status.value} to {status.value}")
    event.status = status
    db.commit()
    db.refresh(event)
    logger.info("Event %s moved to %s", event.id, status.value)
    return event


def delete_event(db: Session, event_id: int) -> Event:
    event = get_active_event(db, event_id)
    event.deleted = True
    db.commit()
    logger.info("Event %s soft deleted", event.id)
    return event


def serialize_event(event: Event) -> dict:
    return {
        "id": event.id,
        "name": event.name,
        "description": event.description,
        "event_type": event.event_type.value,
        "format": event.format.value,
        "slot_scheme": event.slot_scheme.value,
        "phase_type": event.phase_type.value,
        "status": event.status.value,
        "date": event.date,
        "points": dict(event.points or {}),
        "slots": {bucket.name: bucket.slots for bucket in event.buckets},
        "capacity": {bucket.name: bucket.capacity for bucket in event.buckets},
        "team_min_size": event.team_min_size,
        "team_max_size": event.team_max_size,
        "npa_amount": event.npa_amount,
        "winners": event.winners,
    }
