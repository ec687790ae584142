"""Slot allocation for event buckets.

Every change to a bucket's ``slots`` counter and to the confirmed set goes
through this module. The ``apply_*`` functions run inside the caller's
transaction and never commit; ``confirm_participant`` and
``release_participant`` wrap them in a transaction of their own.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import AlreadyConfirmed, NoCapacity, NotConfirmed, NotRegistered
from event_catalog import get_active_event, lock_bucket, resolve_bucket
from models import (
    CcUser,
    ConfirmedEntry,
    Event,
    EventFormat,
    EventSlotBucket,
    NcpUser,
    OPEN_BUCKET,
    OwnerKind,
    SoloRegistration,
    TeamRegistration,
)
from participant_directory import external_id_of, owner_ref, resolve_participant
from participant_refs import ParticipantRef, assign_ref, ref_of

logger = logging.getLogger(__name__)

Registration = Union[SoloRegistration, TeamRegistration]


@dataclass
class ConfirmationResult:
    event_id: int
    event_name: str
    bucket: str
    participant_id: str
    email: Optional[str]
    slots_remaining: int
    points_awarded: int


@dataclass
class ReleaseResult:
    event_id: int
    event_name: str
    bucket: str
    participant_id: str
    slots_remaining: int
    points_deducted: int


def _bucket_label(event: Event, bucket: str) -> str:
    if bucket == OPEN_BUCKET:
        return event.name
    return f"{event.name} ({bucket})"


def take_slot(db: Session, bucket_row: EventSlotBucket) -> bool:
    taken = (
        db.query(EventSlotBucket)
        .filter(EventSlotBucket.id == bucket_row.id, EventSlotBucket.slots > 0)
        .update({EventSlotBucket.slots: EventSlotBucket.slots - 1}, synchronize_session=False)
    )
    db.expire(bucket_row)
    return taken == 1


def return_slot(db: Session, bucket_row: EventSlotBucket) -> None:
    (
        db.query(EventSlotBucket)
        .filter(EventSlotBucket.id == bucket_row.id)
        .update({EventSlotBucket.slots: EventSlotBucket.slots + 1}, synchronize_session=False)
    )
    db.expire(bucket_row)


def event_point(event: Event, key: str) -> int:
    return int((event.points or {}).get(key) or 0)


def credit_points(db: Session, kind: OwnerKind, user, amount: int) -> None:
    # Walk-ins carry no ledger.
    if not amount or kind == OwnerKind.OTSE:
        return
    model = CcUser if kind == OwnerKind.CC else NcpUser
    (
        db.query(model)
        .filter(model.id == user.id)
        .update({model.points: model.points + amount}, synchronize_session=False)
    )
    db.expire(user)


def find_registration(
    db: Session,
    event: Event,
    kind: OwnerKind,
    user,
    bucket: str,
    registration_id: Optional[int] = None,
    confirmed: Optional[bool] = None,
) -> Optional[Registration]:
    if event.format == EventFormat.TEAM:
        model = TeamRegistration
        query = db.query(TeamRegistration).filter(TeamRegistration.event_id == event.id)
    else:
        model = SoloRegistration
        query = db.query(SoloRegistration).filter(
            SoloRegistration.event_id == event.id,
            SoloRegistration.bucket == bucket,
        )
    query = query.filter(model.owner_kind == kind, model.owner_id == user.id)
    if registration_id is not None:
        query = query.filter(model.id == registration_id)
    if confirmed is not None:
        query = query.filter(model.confirmed.is_(confirmed))
    # Pending entries first.
    return query.order_by(model.confirmed.asc(), model.id.asc()).first()


def require_confirmed_registration(db: Session, event: Event, kind: OwnerKind, user, bucket: str) -> Registration:
    registration = find_registration(db, event, kind, user, bucket, confirmed=True)
    if not registration:
        raise NotConfirmed(f"User is not confirmed for {_bucket_label(event, bucket)}")
    return registration


def entry_ref(kind: OwnerKind, user, registration: Registration) -> ParticipantRef:
    # Teams occupy one slot under their owner.
    if isinstance(registration, TeamRegistration):
        return owner_ref(kind, user)
    return ref_of(registration)


def find_confirmed_entry(db: Session, event_id: int, bucket: str, ref: ParticipantRef) -> Optional[ConfirmedEntry]:
    return (
        db.query(ConfirmedEntry)
        .filter(
            ConfirmedEntry.event_id == event_id,
            ConfirmedEntry.bucket == bucket,
            ConfirmedEntry.ref_kind == ref.kind,
            ConfirmedEntry.ref_id == ref.id,
        )
        .first()
    )


def _entry_for_registration(db: Session, registration: Registration) -> Optional[ConfirmedEntry]:
    if isinstance(registration, TeamRegistration):
        column = ConfirmedEntry.team_registration_id
    else:
        column = ConfirmedEntry.solo_registration_id
    return db.query(ConfirmedEntry).filter(column == registration.id).first()


def apply_confirm(
    db: Session,
    event: Event,
    kind: OwnerKind,
    user,
    bucket: str,
    registration_id: Optional[int] = None,
) -> ConfirmationResult:
    registration = find_registration(db, event, kind, user, bucket, registration_id=registration_id)
    if not registration:
        raise NotRegistered(f"User is not registered for {_bucket_label(event, bucket)}")

    bucket_row = lock_bucket(db, event.id, bucket)
    if bucket_row.slots <= 0:
        raise NoCapacity(f"No slots left for {_bucket_label(event, bucket)}")

    ref = entry_ref(kind, user, registration)
    if registration.confirmed or find_confirmed_entry(db, event.id, bucket, ref):
        raise AlreadyConfirmed("User is already confirmed for this event")

    if not take_slot(db, bucket_row):
        raise NoCapacity(f"No slots left for {_bucket_label(event, bucket)}")

    registration.confirmed = True
    entry = ConfirmedEntry(event_id=event.id, bucket=bucket)
    assign_ref(entry, ref)
    if isinstance(registration, TeamRegistration):
        entry.team_registration_id = registration.id
    else:
        entry.solo_registration_id = registration.id
    db.add(entry)
    try:
        db.flush()
    except IntegrityError as exc:
        raise AlreadyConfirmed("User is already confirmed for this event") from exc

    points = event_point(event, "registration")
    credit_points(db, kind, user, points)
    return ConfirmationResult(
        event_id=event.id,
        event_name=event.name,
        bucket=bucket,
        participant_id=external_id_of(kind, user),
        email=user.email,
        slots_remaining=bucket_row.slots,
        points_awarded=points if kind != OwnerKind.OTSE else 0,
    )


def apply_release(db: Session, event: Event, kind: OwnerKind, user, bucket: str) -> ReleaseResult:
    registration = require_confirmed_registration(db, event, kind, user, bucket)
    bucket_row = lock_bucket(db, event.id, bucket)
    entry = _entry_for_registration(db, registration)
    if not entry:
        raise NotConfirmed(f"User is not confirmed for {_bucket_label(event, bucket)}")

    db.delete(entry)
    registration.confirmed = False
    db.flush()
    return_slot(db, bucket_row)

    penalty = event_point(event, "npr")
    credit_points(db, kind, user, -penalty)
    return ReleaseResult(
        event_id=event.id,
        event_name=event.name,
        bucket=bucket,
        participant_id=external_id_of(kind, user),
        slots_remaining=bucket_row.slots,
        points_deducted=penalty,
    )


def confirm_participant(
    db: Session,
    participant_id: str,
    event_id: int,
    bucket: Optional[str] = None,
    registration_id: Optional[int] = None,
) -> ConfirmationResult:
    try:
        kind, user = resolve_participant(db, participant_id)
        event = get_active_event(db, event_id)
        bucket_name = resolve_bucket(event, bucket)
        result = apply_confirm(db, event, kind, user, bucket_name, registration_id=registration_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Confirmed %s for event %s bucket %s, %s slots left",
        result.participant_id,
        result.event_id,
        result.bucket,
        result.slots_remaining,
    )
    return result


def release_participant(db: Session, participant_id: str, event_id: int, bucket: Optional[str] = None) -> ReleaseResult:
    try:
        kind, user = resolve_participant(db, participant_id)
        event = get_active_event(db, event_id)
        bucket_name = resolve_bucket(event, bucket)
        result = apply_release(db, event, kind, user, bucket_name)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Released %s from event %s bucket %s, %s slots left",
        result.participant_id,
        result.event_id,
        result.bucket,
        result.slots_remaining,
    )
    return result
