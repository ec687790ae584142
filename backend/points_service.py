import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from errors import InvalidArgument, NotConfirmed
from event_catalog import get_active_event, resolve_bucket
from models import EventFormat, OwnerKind, SoloRegistration
from participant_directory import external_id_of, owner_ref, resolve_any_participant
from participant_refs import is_placeholder, ref_of
from slot_allocator import credit_points, event_point, find_confirmed_entry, find_registration

logger = logging.getLogger(__name__)

PODIUM_PLACES = {
    "first_podium": "first",
    "second_podium": "second",
    "third_podium": "third",
}
PENALTIES = {"npr", "npq"}


@dataclass
class AwardResult:
    participant_id: str
    award: str
    amount: int
    points: Optional[int]


def _require_confirmed(db: Session, event, kind: OwnerKind, user, bucket: str):
    if event.format == EventFormat.TEAM:
        registration = find_registration(db, event, kind, user, bucket, confirmed=True)
        if not registration:
            raise NotConfirmed("User was not confirmed for the event")
        if any(is_placeholder(ref_of(member)) for member in registration.members):
            raise InvalidArgument("Substitute the dummy entries before awarding points")
        return registration

    if kind == OwnerKind.OTSE:
        if not find_confirmed_entry(db, event.id, bucket, owner_ref(kind, user)):
            raise NotConfirmed("User was not confirmed for the event")
        return None

    confirmed = (
        db.query(SoloRegistration)
        .filter(
            SoloRegistration.event_id == event.id,
            SoloRegistration.bucket == bucket,
            SoloRegistration.owner_kind == kind,
            SoloRegistration.owner_id == user.id,
            SoloRegistration.confirmed.is_(True),
        )
        .all()
    )
    if not confirmed:
        raise NotConfirmed("User was not confirmed for the event")
    if any(is_placeholder(ref_of(registration)) for registration in confirmed):
        raise InvalidArgument("Substitute the dummy entries before awarding points")
    return confirmed[0]


def _record_winner(event, bucket: str, place: str, winner: str) -> None:
    winners = dict(event.winners or {})
    standing = dict(winners.get(bucket) or {"first": None, "second": None, "third": None})
    standing[place] = winner
    winners[bucket] = standing
    # Reassign so the JSON column is flagged dirty.
    event.winners = winners


def award_points(
    db: Session,
    participant_id: str,
    event_id: int,
    award: str,
    bucket: Optional[str] = None,
    arbitrary_points: Optional[int] = None,
) -> AwardResult:
    try:
        kind, user = resolve_any_participant(db, participant_id)
        event = get_active_event(db, event_id)
        bucket_name = resolve_bucket(event, bucket)
        registration = _require_confirmed(db, event, kind, user, bucket_name)
        external_id = external_id_of(kind, user)

        if award in PODIUM_PLACES:
            if (event.points or {}).get(award) is None:
                raise InvalidArgument("Event does not award this podium place")
            winner = registration.team_name if event.format == EventFormat.TEAM else external_id
            _record_winner(event, bucket_name, PODIUM_PLACES[award], winner)
            amount = event_point(event, award)
        elif award == "qualification":
            amount = event_point(event, award)
        elif award in PENALTIES:
            amount = -event_point(event, award)
        elif award == "arbitrary":
            if arbitrary_points is None:
                raise InvalidArgument("arbitrary_points is required for arbitrary awards")
            amount = int(arbitrary_points)
        else:
            raise InvalidArgument(f"Invalid award: {award}")

        credit_points(db, kind, user, amount)
        db.commit()
    except Exception:
        db.rollback()
        raise

    total = None if kind == OwnerKind.OTSE else user.points
    logger.info("Awarded %s (%s) to %s on event %s", award, amount, external_id, event_id)
    return AwardResult(participant_id=external_id, award=award, amount=amount, points=total)
