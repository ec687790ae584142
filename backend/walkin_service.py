import logging
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import AlreadyConfirmed, AlreadyRegistered, InvalidArgument, NoCapacity
from event_catalog import get_active_event, lock_bucket, resolve_bucket
from models import (
    ConfirmedEntry,
    EventFormat,
    MemberRole,
    OPEN_BUCKET,
    OtseUser,
    OwnerKind,
    RefKind,
    TeamRegistration,
    TeamRegistrationMember,
    VerificationStatus,
)
from participant_refs import Resolved, assign_ref
from schemas import ParticipantIdentity
from slot_allocator import find_confirmed_entry, take_slot
from identifier_rules import normalize_name

logger = logging.getLogger(__name__)


@dataclass
class WalkInResult:
    event_id: int
    bucket: str
    slots_remaining: int
    otse_ids: List[str] = field(default_factory=list)


def generate_otse_id(db: Session) -> str:
    for _ in range(200):
        candidate = f"OTSE{secrets.randbelow(900) + 100}"
        if not db.query(OtseUser).filter(OtseUser.otse_id == candidate).first():
            return candidate
    # Three digit range exhausted.
    return f"OTSE{secrets.token_hex(3).upper()}"


def find_or_create_walk_in(db: Session, identity: ParticipantIdentity) -> OtseUser:
    email = str(identity.email).strip().lower()
    existing = (
        db.query(OtseUser)
        .filter(OtseUser.email == email, OtseUser.phone_number == identity.phone_number)
        .first()
    )
    if existing:
        return existing
    walk_in = OtseUser(
        otse_id=generate_otse_id(db),
        first_name=normalize_name(identity.first_name),
        last_name=normalize_name(identity.last_name),
        email=email,
        phone_number=identity.phone_number,
    )
    db.add(walk_in)
    db.flush()
    return walk_in


def admit_walk_in_solo(
    db: Session,
    identity: ParticipantIdentity,
    event_id: int,
    bucket: Optional[str] = None,
) -> WalkInResult:
    try:
        event = get_active_event(db, event_id)
        if event.format != EventFormat.SOLO:
            raise InvalidArgument("Event is not a solo event")
        bucket_name = resolve_bucket(event, bucket)
        bucket_row = lock_bucket(db, event.id, bucket_name)
        if bucket_row.slots <= 0:
            raise NoCapacity("No slots left for this event")

        walk_in = find_or_create_walk_in(db, identity)
        ref = Resolved(kind=RefKind.OTSE, id=walk_in.id)
        if find_confirmed_entry(db, event.id, bucket_name, ref):
            raise AlreadyConfirmed("Walk-in participant is already confirmed for this event")
        if not take_slot(db, bucket_row):
            raise NoCapacity("No slots left for this event")

        entry = ConfirmedEntry(event_id=event.id, bucket=bucket_name)
        assign_ref(entry, ref)
        db.add(entry)
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyConfirmed("Walk-in participant is already confirmed for this event") from exc
        result = WalkInResult(
            event_id=event.id,
            bucket=bucket_name,
            slots_remaining=bucket_row.slots,
            otse_ids=[walk_in.otse_id],
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Admitted walk-in %s to event %s bucket %s", result.otse_ids[0], event_id, bucket_name)
    return result


def admit_walk_in_team(
    db: Session,
    registerer: ParticipantIdentity,
    team_name: str,
    event_id: int,
    team_members: List[ParticipantIdentity],
) -> WalkInResult:
    try:
        event = get_active_event(db, event_id)
        if event.format != EventFormat.TEAM:
            raise InvalidArgument("Event is not a team event")
        if event.team_max_size and len(team_members) > event.team_max_size - 1:
            raise InvalidArgument("Team size exceeds the event's max team size")
        name_taken = (
            db.query(TeamRegistration)
            .filter(
                TeamRegistration.event_id == event.id,
                func.lower(TeamRegistration.team_name) == team_name.lower(),
            )
            .first()
        )
        if name_taken:
            raise AlreadyRegistered("Team name already taken")

        bucket_row = lock_bucket(db, event.id, OPEN_BUCKET)
        if bucket_row.slots <= 0:
            raise NoCapacity("No slots left for this event")

        lead = find_or_create_walk_in(db, registerer)
        registration = TeamRegistration(
            event_id=event.id,
            owner_kind=OwnerKind.OTSE,
            owner_id=lead.id,
            team_name=team_name,
            confirmed=True,
            verified=VerificationStatus.VERIFIED,
        )
        otse_ids = [lead.otse_id]
        for position, identity in enumerate(team_members):
            member_user = find_or_create_walk_in(db, identity)
            member = TeamRegistrationMember(role=MemberRole.TEAM, position=position)
            assign_ref(member, Resolved(kind=RefKind.OTSE, id=member_user.id))
            registration.members.append(member)
            otse_ids.append(member_user.otse_id)
        db.add(registration)

        if not take_slot(db, bucket_row):
            raise NoCapacity("No slots left for this event")
        try:
            db.flush()
            entry = ConfirmedEntry(event_id=event.id, bucket=OPEN_BUCKET, team_registration_id=registration.id)
            assign_ref(entry, Resolved(kind=RefKind.OTSE, id=lead.id))
            db.add(entry)
            db.flush()
        except IntegrityError as exc:
            raise AlreadyConfirmed("Walk-in team is already confirmed for this event") from exc
        result = WalkInResult(
            event_id=event.id,
            bucket=OPEN_BUCKET,
            slots_remaining=bucket_row.slots,
            otse_ids=otse_ids,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Admitted walk-in team %s to event %s", team_name, event_id)
    return result
