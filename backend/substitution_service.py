"""Swapping placeholder or through-CC identities inside a CC's registrations.

The reference and the registration's verification status change. Slot
counts and points are untouched because the entry being rewritten
already holds its slot.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import AlreadyRegistered, Forbidden, InvalidArgument, NotFound, NotRegistered
from event_catalog import get_active_event
from models import (
    ConfirmedEntry,
    EventFormat,
    MemberRole,
    OwnerKind,
    RefKind,
    SoloRegistration,
    TeamRegistration,
    VerificationStatus,
)
from participant_directory import (
    IdentityDocuments,
    find_or_create_sub_participant,
    find_sub_participant,
    resolve_participant,
)
from participant_refs import Resolved, assign_ref, is_placeholder, ref_of
from schemas import DepartingIdentity, ParticipantIdentity, TeamDepartingData, TeamSubstituteData
from verification_service import team_verification

logger = logging.getLogger(__name__)

ROLE_LABELS = {MemberRole.TEAM: "team member", MemberRole.NPA: "NPA member"}


@dataclass
class SubstitutionResult:
    event_id: int
    owner_id: str
    substituted: int
    participant_ids: List[int] = field(default_factory=list)


def _require_cc_owner(db: Session, owner_external_id: str):
    kind, owner = resolve_participant(db, owner_external_id)
    if kind != OwnerKind.CC:
        raise Forbidden("Only CC users can substitute entries")
    return owner


def _require_event(db: Session, event_id: int, event_format: EventFormat):
    event = get_active_event(db, event_id)
    if event.format != event_format:
        raise InvalidArgument(f"Event is not a {event_format.value.lower()} event")
    return event


def _flush_rewrite(db: Session) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        raise AlreadyRegistered("Substitute is already registered for this event") from exc


def substitute_solo(
    db: Session,
    owner_external_id: str,
    event_id: int,
    is_dummy: bool,
    substitute: ParticipantIdentity,
    departing: Optional[DepartingIdentity] = None,
    documents: Optional[IdentityDocuments] = None,
    uploader=None,
) -> SubstitutionResult:
    try:
        owner = _require_cc_owner(db, owner_external_id)
        event = _require_event(db, event_id, EventFormat.SOLO)
        query = db.query(SoloRegistration).filter(
            SoloRegistration.event_id == event.id,
            SoloRegistration.owner_kind == OwnerKind.CC,
            SoloRegistration.owner_id == owner.id,
        )

        if is_dummy:
            registration = (
                query.filter(SoloRegistration.ref_kind == RefKind.PLACEHOLDER)
                .order_by(SoloRegistration.id.asc())
                .first()
            )
            if not registration:
                raise NotFound("No dummy entry found in the event registered")
        else:
            if departing is None:
                raise InvalidArgument("Details of the participant to be replaced are required")
            current = find_sub_participant(
                db, owner.id, departing.first_name, departing.last_name, departing.phone_number
            )
            if not current:
                raise NotFound("To be replaced user not found")
            registration = query.filter(
                SoloRegistration.ref_kind == RefKind.SUB,
                SoloRegistration.ref_id == current.id,
            ).first()
            if not registration:
                raise NotFound("To be replaced user not found in the event registered")

        sub = find_or_create_sub_participant(
            db,
            owner,
            substitute,
            documents=documents,
            verified=VerificationStatus.VERIFIED,
            uploader=uploader,
        )
        new_ref = Resolved(kind=RefKind.SUB, id=sub.id)
        if ref_of(registration) == new_ref:
            raise InvalidArgument("Substitute is already registered in this entry")

        assign_ref(registration, new_ref)
        registration.verified = sub.verified
        entry = db.query(ConfirmedEntry).filter(ConfirmedEntry.solo_registration_id == registration.id).first()
        if entry:
            assign_ref(entry, new_ref)
        _flush_rewrite(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Substituted solo entry %s on event %s with participant %s", registration.id, event_id, sub.id)
    return SubstitutionResult(
        event_id=event_id,
        owner_id=owner.cc_id,
        substituted=1,
        participant_ids=[sub.id],
    )


def _documents_at(documents: Optional[Dict[MemberRole, List[IdentityDocuments]]], role: MemberRole, index: int):
    if not documents:
        return None
    items = documents.get(role) or []
    return items[index] if index < len(items) else None


def substitute_team(
    db: Session,
    owner_external_id: str,
    event_id: int,
    is_dummy: bool,
    substitutes: TeamSubstituteData,
    departing: Optional[TeamDepartingData] = None,
    documents: Optional[Dict[MemberRole, List[IdentityDocuments]]] = None,
    uploader=None,
) -> SubstitutionResult:
    try:
        owner = _require_cc_owner(db, owner_external_id)
        event = _require_event(db, event_id, EventFormat.TEAM)
        registration = (
            db.query(TeamRegistration)
            .filter(
                TeamRegistration.event_id == event.id,
                TeamRegistration.owner_kind == OwnerKind.CC,
                TeamRegistration.owner_id == owner.id,
            )
            .first()
        )
        if not registration:
            raise NotRegistered(f"User is not registered for {event.name}")
        if not is_dummy and departing is None:
            raise InvalidArgument("Details of the participants to be replaced are required")

        replaced_ids: List[int] = []
        for role in (MemberRole.TEAM, MemberRole.NPA):
            incoming = substitutes.team_members if role == MemberRole.TEAM else substitutes.npa_members
            members = [member for member in registration.members if member.role == role]
            if is_dummy:
                targets = [member for member in members if is_placeholder(ref_of(member))]
            else:
                outgoing = departing.team_members if role == MemberRole.TEAM else departing.npa_members
                if len(outgoing) != len(incoming):
                    raise InvalidArgument(f"Mismatched {ROLE_LABELS[role]} replacement lists")
                targets = []
                for identity in outgoing:
                    current = find_sub_participant(
                        db, owner.id, identity.first_name, identity.last_name, identity.phone_number
                    )
                    match = None
                    if current:
                        match = next(
                            (member for member in members if ref_of(member) == Resolved(RefKind.SUB, current.id)),
                            None,
                        )
                    if match is None:
                        raise NotFound(
                            f"{ROLE_LABELS[role].capitalize()} {identity.first_name} {identity.last_name} not found in the team"
                        )
                    targets.append(match)

            for index, (member, identity) in enumerate(zip(targets, incoming)):
                sub = find_or_create_sub_participant(
                    db,
                    owner,
                    identity,
                    documents=_documents_at(documents, role, index),
                    verified=VerificationStatus.VERIFIED,
                    uploader=uploader,
                )
                assign_ref(member, Resolved(kind=RefKind.SUB, id=sub.id))
                replaced_ids.append(sub.id)

        if not replaced_ids:
            raise InvalidArgument("No dummy entries found in team or NPA")
        registration.verified = team_verification(db, registration)
        _flush_rewrite(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Substituted %s member(s) of team %s on event %s",
        len(replaced_ids),
        registration.id,
        event_id,
    )
    return SubstitutionResult(
        event_id=event_id,
        owner_id=owner.cc_id,
        substituted=len(replaced_ids),
        participant_ids=replaced_ids,
    )
