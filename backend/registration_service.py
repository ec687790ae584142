import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import AlreadyRegistered, Forbidden, InvalidArgument, NotFound
from event_catalog import get_active_event, resolve_bucket
from models import (
    Event,
    EventFormat,
    EventStatus,
    MemberRole,
    NcpUser,
    OwnerKind,
    RefKind,
    SoloRegistration,
    TeamRegistration,
    TeamRegistrationMember,
    VerificationStatus,
)
from participant_directory import ensure_not_rejected, find_or_create_sub_participant, owner_ref, resolve_participant
from participant_refs import Placeholder, Resolved, assign_ref
from schemas import ParticipantIdentity, TeamMemberEntry
from time_utils import has_started
from verification_service import team_verification

logger = logging.getLogger(__name__)


def _ensure_registration_open(event: Event) -> None:
    if event.status != EventStatus.UPCOMING or has_started(event.date):
        raise InvalidArgument("Registration is closed for this event")


def _require_format(event: Event, event_format: EventFormat) -> None:
    if event.format != event_format:
        raise InvalidArgument(f"Event is not a {event_format.value.lower()} event")


def register_solo(
    db: Session,
    owner_external_id: str,
    event_id: int,
    bucket: Optional[str] = None,
    is_dummy: bool = False,
    identity: Optional[ParticipantIdentity] = None,
) -> SoloRegistration:
    try:
        kind, owner = resolve_participant(db, owner_external_id)
        ensure_not_rejected(owner)
        event = get_active_event(db, event_id)
        _require_format(event, EventFormat.SOLO)
        _ensure_registration_open(event)
        bucket_name = resolve_bucket(event, bucket)

        verified = VerificationStatus.PENDING
        if kind == OwnerKind.CC:
            if is_dummy:
                ref = Placeholder(owner_id=owner.id)
            elif identity is not None:
                sub = find_or_create_sub_participant(db, owner, identity, require_documents=False)
                ensure_not_rejected(sub)
                ref = Resolved(kind=RefKind.SUB, id=sub.id)
                verified = sub.verified
            else:
                raise InvalidArgument("Participant details are required")
        else:
            if is_dummy or identity is not None:
                raise Forbidden("NCP users can only register themselves")
            ref = owner_ref(kind, owner)
            verified = owner.verified

        duplicate = db.query(SoloRegistration).filter(
            SoloRegistration.event_id == event.id,
            SoloRegistration.bucket == bucket_name,
            SoloRegistration.ref_kind == ref.kind,
            SoloRegistration.ref_id == ref.id,
        )
        if duplicate.first():
            raise AlreadyRegistered("Participant is already registered for this event")

        registration = SoloRegistration(
            event_id=event.id,
            owner_kind=kind,
            owner_id=owner.id,
            bucket=bucket_name,
            verified=verified,
        )
        assign_ref(registration, ref)
        db.add(registration)
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyRegistered("Participant is already registered for this event") from exc
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(registration)
    logger.info("Solo registration %s on event %s bucket %s", registration.id, event_id, bucket_name)
    return registration


def _member_ref(db: Session, kind: OwnerKind, owner, entry: TeamMemberEntry):
    if entry.is_dummy:
        if kind != OwnerKind.CC:
            raise Forbidden("Only CC users can register dummy members")
        return Placeholder(owner_id=owner.id)
    if entry.identity is not None:
        if kind != OwnerKind.CC:
            raise Forbidden("Only CC users can register members by their details")
        sub = find_or_create_sub_participant(db, owner, entry.identity, require_documents=False)
        ensure_not_rejected(sub)
        return Resolved(kind=RefKind.SUB, id=sub.id)

    member = db.query(NcpUser).filter(NcpUser.ncp_id == entry.ncp_id, NcpUser.deleted.is_(False)).first()
    if not member:
        raise NotFound(f"NCP user {entry.ncp_id} not found")
    ensure_not_rejected(member)
    return Resolved(kind=RefKind.NCP, id=member.id)


def register_team(
    db: Session,
    owner_external_id: str,
    event_id: int,
    team_name: str,
    team_members: List[TeamMemberEntry],
    npa_members: List[TeamMemberEntry],
) -> TeamRegistration:
    try:
        kind, owner = resolve_participant(db, owner_external_id)
        ensure_not_rejected(owner)
        event = get_active_event(db, event_id)
        _require_format(event, EventFormat.TEAM)
        _ensure_registration_open(event)

        size = 1 + len(team_members)
        if not (event.team_min_size or 1) <= size <= (event.team_max_size or size):
            raise InvalidArgument(f"Team size must be between {event.team_min_size} and {event.team_max_size}")

        existing = (
            db.query(TeamRegistration)
            .filter(
                TeamRegistration.event_id == event.id,
                TeamRegistration.owner_kind == kind,
                TeamRegistration.owner_id == owner.id,
            )
            .first()
        )
        if existing:
            raise AlreadyRegistered("A team is already registered for this event")
        name_taken = (
            db.query(TeamRegistration)
            .filter(
                TeamRegistration.event_id == event.id,
                func.lower(TeamRegistration.team_name) == team_name.lower(),
            )
            .first()
        )
        if name_taken:
            raise AlreadyRegistered("Team name already taken for this event")

        registration = TeamRegistration(
            event_id=event.id,
            owner_kind=kind,
            owner_id=owner.id,
            team_name=team_name,
        )
        for role, entries in ((MemberRole.TEAM, team_members), (MemberRole.NPA, npa_members)):
            for position, entry in enumerate(entries):
                member = TeamRegistrationMember(role=role, position=position)
                assign_ref(member, _member_ref(db, kind, owner, entry))
                registration.members.append(member)
        registration.verified = team_verification(db, registration)
        db.add(registration)
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyRegistered("A team is already registered for this event") from exc
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(registration)
    logger.info("Team registration %s (%s) on event %s", registration.id, team_name, event_id)
    return registration
