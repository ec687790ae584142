import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from fastapi import UploadFile
from sqlalchemy.orm import Session

from errors import InvalidArgument, NotFound
from identifier_rules import ensure_valid_phone, normalize_external_id, normalize_name
from models import CcUser, NcpUser, OtseUser, OwnerKind, RefKind, SubParticipant, VerificationStatus
from participant_refs import Resolved
from utils import upload_identity_document

logger = logging.getLogger(__name__)

Participant = Union[CcUser, NcpUser]


@dataclass
class IdentityDocuments:
    id_proof: Optional[UploadFile] = None
    govt_id_proof: Optional[UploadFile] = None

    def complete(self) -> bool:
        return self.id_proof is not None and self.govt_id_proof is not None


def resolve_participant(db: Session, external_id: str) -> Tuple[OwnerKind, Participant]:
    """Direct participants are matched before sponsored ones."""
    key = normalize_external_id(external_id)
    if key:
        ncp = db.query(NcpUser).filter(NcpUser.ncp_id == key, NcpUser.deleted.is_(False)).first()
        if ncp:
            return OwnerKind.NCP, ncp
        cc = db.query(CcUser).filter(CcUser.cc_id == key, CcUser.deleted.is_(False)).first()
        if cc:
            return OwnerKind.CC, cc
    raise NotFound("User not found")


def resolve_any_participant(db: Session, external_id: str):
    try:
        return resolve_participant(db, external_id)
    except NotFound:
        key = normalize_external_id(external_id)
        otse = db.query(OtseUser).filter(OtseUser.otse_id == key).first()
        if not otse:
            raise
        return OwnerKind.OTSE, otse


def owner_ref(kind: OwnerKind, user) -> Resolved:
    return Resolved(kind=RefKind(kind.value), id=user.id)


def external_id_of(kind: OwnerKind, user) -> str:
    if kind == OwnerKind.CC:
        return user.cc_id
    if kind == OwnerKind.NCP:
        return user.ncp_id
    return user.otse_id


def ensure_not_rejected(user) -> None:
    if getattr(user, "verified", None) == VerificationStatus.REJECTED:
        raise InvalidArgument("User verification was rejected")


def find_sub_participant(
    db: Session,
    owner_id: int,
    first_name: str,
    last_name: str,
    phone_number: str,
) -> Optional[SubParticipant]:
    return (
        db.query(SubParticipant)
        .filter(
            SubParticipant.owner_id == owner_id,
            SubParticipant.first_name == normalize_name(first_name),
            SubParticipant.last_name == normalize_name(last_name),
            SubParticipant.phone_number == ensure_valid_phone(phone_number, f"{first_name} {last_name}"),
        )
        .first()
    )


def find_or_create_sub_participant(
    db: Session,
    owner: CcUser,
    identity,
    documents: Optional[IdentityDocuments] = None,
    require_documents: bool = True,
    verified: VerificationStatus = VerificationStatus.PENDING,
    uploader: Optional[Callable[[UploadFile], str]] = None,
) -> SubParticipant:
    existing = find_sub_participant(db, owner.id, identity.first_name, identity.last_name, identity.phone_number)
    if existing:
        return existing

    documents = documents or IdentityDocuments()
    if require_documents and not documents.complete():
        raise InvalidArgument(
            f"ID proof and government ID proof are required for {identity.first_name} {identity.last_name}"
        )

    upload = uploader or upload_identity_document
    sub = SubParticipant(
        owner_id=owner.id,
        first_name=normalize_name(identity.first_name),
        last_name=normalize_name(identity.last_name),
        email=str(identity.email).strip().lower(),
        phone_number=ensure_valid_phone(identity.phone_number, f"{identity.first_name} {identity.last_name}"),
        verified=verified,
    )
    if documents.id_proof is not None:
        sub.id_proof_url = upload(documents.id_proof)
        sub.id_proof_type = documents.id_proof.content_type
    if documents.govt_id_proof is not None:
        sub.govt_id_proof_url = upload(documents.govt_id_proof)
        sub.govt_id_proof_type = documents.govt_id_proof.content_type
    db.add(sub)
    db.flush()
    logger.info("Created through-CC participant %s for %s", sub.id, owner.cc_id)
    return sub
