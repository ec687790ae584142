"""Replacing a confirmed participant with another registered one.

The bucket is inflated by one slot so the arriving participant can be
confirmed under the normal capacity check, the departing participant is
released, and the inflation is taken back. When everything succeeds the
slot count ends where it started.

``REPLACEMENT_MODE`` controls the failure path. ``strict`` runs all steps
in one transaction so a failed confirmation leaves nothing behind.
``lenient`` commits the inflation first; a ``NotRegistered`` failure then
takes the slot back, any other failure leaves the extra slot in place.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from errors import InvalidArgument, NoCapacity, NotRegistered
from event_catalog import get_active_event, lock_bucket, resolve_bucket
from participant_directory import resolve_participant
from slot_allocator import apply_confirm, apply_release, require_confirmed_registration, return_slot, take_slot

logger = logging.getLogger(__name__)

STRICT = "strict"
LENIENT = "lenient"


@dataclass
class ReplacementResult:
    event_id: int
    event_name: str
    bucket: str
    departing_id: str
    arriving_id: str
    arriving_email: Optional[str]
    slots_remaining: int
    points_awarded: int
    points_deducted: int


def replacement_mode(override: Optional[str] = None) -> str:
    value = (override or os.environ.get("REPLACEMENT_MODE") or STRICT).strip().lower()
    if value not in {STRICT, LENIENT}:
        raise RuntimeError(f"Invalid REPLACEMENT_MODE: {value}")
    return value


def _deflate(db: Session, event_id: int, bucket: str) -> None:
    try:
        take_slot(db, lock_bucket(db, event_id, bucket))
        db.commit()
    except Exception:
        db.rollback()
        raise


def replace_confirmed(
    db: Session,
    departing_id: str,
    event_id: int,
    arriving_id: str,
    bucket: Optional[str] = None,
    mode: Optional[str] = None,
    registration_id: Optional[int] = None,
) -> ReplacementResult:
    mode = replacement_mode(mode)
    try:
        departing_kind, departing = resolve_participant(db, departing_id)
        arriving_kind, arriving = resolve_participant(db, arriving_id)
        if departing_kind == arriving_kind and departing.id == arriving.id:
            raise InvalidArgument("Replacement participant must be different from the confirmed participant")
        event = get_active_event(db, event_id)
        bucket_name = resolve_bucket(event, bucket)
        require_confirmed_registration(db, event, departing_kind, departing, bucket_name)

        return_slot(db, lock_bucket(db, event.id, bucket_name))
        if mode == LENIENT:
            db.commit()
    except Exception:
        db.rollback()
        raise

    try:
        confirmation = apply_confirm(db, event, arriving_kind, arriving, bucket_name, registration_id=registration_id)
        release = apply_release(db, event, departing_kind, departing, bucket_name)
        bucket_row = lock_bucket(db, event.id, bucket_name)
        if not take_slot(db, bucket_row):
            raise NoCapacity(f"No slots left for {event.name}")
        slots_remaining = bucket_row.slots
        db.commit()
    except NotRegistered:
        db.rollback()
        if mode == LENIENT:
            _deflate(db, event_id, bucket_name)
        raise
    except Exception:
        db.rollback()
        if mode == LENIENT:
            logger.warning(
                "Replacement on event %s bucket %s failed after inflation; extra slot left in place",
                event_id,
                bucket_name,
            )
        raise

    logger.info(
        "Replaced %s with %s on event %s bucket %s, %s slots left",
        release.participant_id,
        confirmation.participant_id,
        event_id,
        bucket_name,
        slots_remaining,
    )
    return ReplacementResult(
        event_id=event_id,
        event_name=confirmation.event_name,
        bucket=bucket_name,
        departing_id=release.participant_id,
        arriving_id=confirmation.participant_id,
        arriving_email=confirmation.email,
        slots_remaining=slots_remaining,
        points_awarded=confirmation.points_awarded,
        points_deducted=release.points_deducted,
    )
