import logging
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from errors import InvalidArgument, NotFound, VerificationLocked
from models import (
    CcUser,
    NcpUser,
    OwnerKind,
    RefKind,
    SoloRegistration,
    SubParticipant,
    TeamRegistration,
    TeamRegistrationMember,
    VerificationStatus,
)
from participant_refs import ParticipantRef, Resolved, is_placeholder, ref_of
from utils import presign_document_url

logger = logging.getLogger(__name__)

VERIFIABLE = {
    "NCP": (NcpUser, RefKind.NCP),
    "SUB": (SubParticipant, RefKind.SUB),
}

REF_STATUS_MODELS = {
    RefKind.CC: CcUser,
    RefKind.NCP: NcpUser,
    RefKind.SUB: SubParticipant,
}


def ref_verification(db: Session, ref: ParticipantRef) -> VerificationStatus:
    if is_placeholder(ref):
        return VerificationStatus.PENDING
    if ref.kind == RefKind.OTSE:
        return VerificationStatus.VERIFIED
    model = REF_STATUS_MODELS[ref.kind]
    row = db.query(model).filter(model.id == ref.id).first()
    return row.verified if row else VerificationStatus.PENDING


def team_verification(db: Session, registration: TeamRegistration) -> VerificationStatus:
    """A team is verified once its owner and every member are; any rejection rejects it."""
    refs = [Resolved(kind=RefKind(registration.owner_kind.value), id=registration.owner_id)]
    refs.extend(ref_of(member) for member in registration.members)
    statuses = [ref_verification(db, ref) for ref in refs]
    if VerificationStatus.REJECTED in statuses:
        return VerificationStatus.REJECTED
    if all(status == VerificationStatus.VERIFIED for status in statuses):
        return VerificationStatus.VERIFIED
    return VerificationStatus.PENDING


def _teams_holding(db: Session, ref_kind: RefKind, participant_id: int) -> List[TeamRegistration]:
    member_of = select(TeamRegistrationMember.registration_id).where(
        TeamRegistrationMember.ref_kind == ref_kind,
        TeamRegistrationMember.ref_id == participant_id,
    )
    conditions = [TeamRegistration.id.in_(member_of)]
    if ref_kind == RefKind.NCP:
        conditions.append(
            (TeamRegistration.owner_kind == OwnerKind.NCP) & (TeamRegistration.owner_id == participant_id)
        )
    return db.query(TeamRegistration).filter(or_(*conditions)).order_by(TeamRegistration.id.asc()).all()


def _load(db: Session, kind: str, participant_id: int):
    if kind not in VERIFIABLE:
        raise InvalidArgument(f"Cannot verify participants of kind {kind}")
    model, _ = VERIFIABLE[kind]
    query = db.query(model).filter(model.id == participant_id)
    if model is NcpUser:
        query = query.filter(NcpUser.deleted.is_(False))
    row = query.first()
    if not row:
        raise NotFound("User not found")
    return model, row


def _acquire_lock(db: Session, model, participant_id: int) -> bool:
    acquired = (
        db.query(model)
        .filter(
            model.id == participant_id,
            model.locked.is_(False),
            model.verified == VerificationStatus.PENDING,
        )
        .update({model.locked: True}, synchronize_session=False)
    )
    db.commit()
    return acquired == 1


def _release_lock(db: Session, model, participant_id: int) -> None:
    db.query(model).filter(model.id == participant_id).update({model.locked: False}, synchronize_session=False)
    db.commit()


def verify_participant(db: Session, kind: str, participant_id: int, decision: VerificationStatus):
    if decision not in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
        raise InvalidArgument("Invalid verification status")

    model, row = _load(db, kind, participant_id)
    if row.verified != VerificationStatus.PENDING:
        raise InvalidArgument("User is already verified")

    if not _acquire_lock(db, model, participant_id):
        db.refresh(row)
        if row.verified != VerificationStatus.PENDING:
            raise InvalidArgument("User is already verified")
        raise VerificationLocked("User is already being verified by other admin")

    _, ref_kind = VERIFIABLE[kind]
    try:
        (
            db.query(model)
            .filter(model.id == participant_id, model.locked.is_(True))
            .update({model.verified: decision, model.locked: False}, synchronize_session=False)
        )
        (
            db.query(SoloRegistration)
            .filter(SoloRegistration.ref_kind == ref_kind, SoloRegistration.ref_id == participant_id)
            .update({SoloRegistration.verified: decision}, synchronize_session=False)
        )
        db.expire(row)
        for team in _teams_holding(db, ref_kind, participant_id):
            team.verified = team_verification(db, team)
        db.commit()
    except Exception:
        db.rollback()
        _release_lock(db, model, participant_id)
        raise

    db.refresh(row)
    logger.info("%s participant %s marked %s", kind, participant_id, decision.value)
    return row


def list_pending_verifications(db: Session) -> List[dict]:
    pending = []
    ncp_users = (
        db.query(NcpUser)
        .filter(
            NcpUser.verified == VerificationStatus.PENDING,
            NcpUser.locked.is_(False),
            NcpUser.deleted.is_(False),
        )
        .order_by(NcpUser.id.asc())
        .all()
    )
    for user in ncp_users:
        pending.append({
            "kind": "NCP",
            "id": user.id,
            "external_id": user.ncp_id,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "email": user.email,
            "phone_number": user.phone_number,
            "id_proof_url": presign_document_url(user.id_proof_url),
            "govt_id_proof_url": presign_document_url(user.govt_id_proof_url),
        })

    subs = (
        db.query(SubParticipant, CcUser)
        .join(CcUser, CcUser.id == SubParticipant.owner_id)
        .filter(
            SubParticipant.verified == VerificationStatus.PENDING,
            SubParticipant.locked.is_(False),
            CcUser.deleted.is_(False),
        )
        .order_by(SubParticipant.id.asc())
        .all()
    )
    for sub, owner in subs:
        pending.append({
            "kind": "SUB",
            "id": sub.id,
            "external_id": owner.cc_id,
            "first_name": sub.first_name,
            "last_name": sub.last_name,
            "email": sub.email,
            "phone_number": sub.phone_number,
            "id_proof_url": presign_document_url(sub.id_proof_url),
            "govt_id_proof_url": presign_document_url(sub.govt_id_proof_url),
        })
    return pending
