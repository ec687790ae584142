"""Per-participant view of registrations, confirmation state, points and bets."""
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from bet_service import list_participant_bets, serialize_bet
from confirmation_listing import ParticipantLabels
from errors import Forbidden
from models import (
    Event,
    MemberRole,
    OwnerKind,
    RefKind,
    SoloRegistration,
    TeamRegistration,
    TeamRegistrationMember,
    VerificationStatus,
)
from participant_directory import external_id_of, resolve_participant
from participant_refs import Resolved, ref_of


def _solo_entries(db: Session, labels: ParticipantLabels, kind: OwnerKind, user) -> List[dict]:
    rows = (
        db.query(SoloRegistration, Event)
        .join(Event, Event.id == SoloRegistration.event_id)
        .filter(
            SoloRegistration.owner_kind == kind,
            SoloRegistration.owner_id == user.id,
            Event.deleted.is_(False),
        )
        .order_by(SoloRegistration.id.asc())
        .all()
    )
    entries = []
    for registration, event in rows:
        ref = ref_of(registration)
        entries.append({
            "registration_id": registration.id,
            "event_id": event.id,
            "event_name": event.name,
            "bucket": registration.bucket,
            "participant": labels.ref(ref),
            "confirmed": registration.confirmed,
            "verified": labels.verified(ref),
        })
    return entries


def _team_entries(db: Session, labels: ParticipantLabels, kind: OwnerKind, user) -> List[dict]:
    conditions = [(TeamRegistration.owner_kind == kind) & (TeamRegistration.owner_id == user.id)]
    if kind == OwnerKind.NCP:
        member_of = select(TeamRegistrationMember.registration_id).where(
            TeamRegistrationMember.ref_kind == RefKind.NCP,
            TeamRegistrationMember.ref_id == user.id,
        )
        conditions.append(TeamRegistration.id.in_(member_of))
    rows = (
        db.query(TeamRegistration, Event)
        .join(Event, Event.id == TeamRegistration.event_id)
        .filter(or_(*conditions), Event.deleted.is_(False))
        .order_by(TeamRegistration.id.asc())
        .all()
    )
    entries = []
    for registration, event in rows:
        refs = [ref_of(member) for member in registration.members]
        owner = Resolved(kind=RefKind(registration.owner_kind.value), id=registration.owner_id)
        entries.append({
            "registration_id": registration.id,
            "event_id": event.id,
            "event_name": event.name,
            "team_name": registration.team_name,
            "owner_id": labels.owner(registration.owner_kind, registration.owner_id),
            "team_members": [
                labels.ref(ref_of(member)) for member in registration.members if member.role == MemberRole.TEAM
            ],
            "npa_members": [
                labels.ref(ref_of(member)) for member in registration.members if member.role == MemberRole.NPA
            ],
            "confirmed": registration.confirmed,
            "verified": all(labels.verified(ref) for ref in [owner] + refs),
        })
    return entries


def describe_participant(db: Session, external_id: str, refuse_rejected: bool = False) -> dict:
    kind, user = resolve_participant(db, external_id)
    if refuse_rejected and user.verified == VerificationStatus.REJECTED:
        raise Forbidden("User is rejected by the admin")

    labels = ParticipantLabels(db)
    details = {
        "kind": kind.value,
        "participant_id": external_id_of(kind, user),
        "email": user.email,
        "points": user.points,
        "verified": user.verified.value,
        "registered_solos": _solo_entries(db, labels, kind, user),
        "registered_teams": _team_entries(db, labels, kind, user),
        "bets": [],
    }
    if kind == OwnerKind.NCP:
        details.update(first_name=user.first_name, last_name=user.last_name, phone_number=user.phone_number)
    else:
        details["bets"] = [serialize_bet(bet) for bet in list_participant_bets(db, details["participant_id"])]
    return details
