"""Read-only projection of registrations into pending, confirmed and walk-in lists."""
import io
from typing import Dict, List, Optional, Tuple

from openpyxl import Workbook
from sqlalchemy.orm import Session

from event_catalog import get_active_event
from models import (
    CcUser,
    ConfirmedEntry,
    Event,
    EventFormat,
    NcpUser,
    OtseUser,
    OwnerKind,
    RefKind,
    SoloRegistration,
    SubParticipant,
    TeamRegistration,
    VerificationStatus,
)
from participant_refs import DUMMY_LABEL, ParticipantRef, is_placeholder, ref_of

REF_MODELS = {
    RefKind.CC: CcUser,
    RefKind.NCP: NcpUser,
    RefKind.SUB: SubParticipant,
    RefKind.OTSE: OtseUser,
}


class ParticipantLabels:
    def __init__(self, db: Session):
        self.db = db
        self._cache: Dict[Tuple[RefKind, int], object] = {}

    def _row(self, kind: RefKind, row_id: int):
        key = (kind, row_id)
        if key not in self._cache:
            model = REF_MODELS[kind]
            self._cache[key] = self.db.query(model).filter(model.id == row_id).first()
        return self._cache[key]

    def owner(self, kind: OwnerKind, owner_id: int) -> str:
        row = self._row(RefKind(kind.value), owner_id)
        if row is None:
            return ""
        if kind == OwnerKind.CC:
            return row.cc_id
        if kind == OwnerKind.NCP:
            return row.ncp_id
        return row.otse_id

    def ref(self, ref: ParticipantRef) -> str:
        if is_placeholder(ref):
            return DUMMY_LABEL
        row = self._row(ref.kind, ref.id)
        if row is None:
            return ""
        if ref.kind == RefKind.SUB:
            return f"{row.first_name} {row.last_name}"
        if ref.kind == RefKind.CC:
            return row.cc_id
        if ref.kind == RefKind.NCP:
            return row.ncp_id
        return row.otse_id

    def verified(self, ref: ParticipantRef) -> bool:
        if is_placeholder(ref):
            return False
        if ref.kind == RefKind.OTSE:
            return True
        row = self._row(ref.kind, ref.id)
        return row is not None and row.verified == VerificationStatus.VERIFIED


def _solo_bucket(db: Session, labels: ParticipantLabels, event: Event, bucket) -> dict:
    registrations = (
        db.query(SoloRegistration)
        .filter(SoloRegistration.event_id == event.id, SoloRegistration.bucket == bucket.name)
        .order_by(SoloRegistration.id.asc())
        .all()
    )
    listing = {"slots": bucket.slots, "capacity": bucket.capacity, "pending": [], "confirmed": [], "walk_ins": []}
    for registration in registrations:
        state = "confirmed" if registration.confirmed else "pending"
        listing[state].append({
            "owner_id": labels.owner(registration.owner_kind, registration.owner_id),
            "participant": labels.ref(ref_of(registration)),
            "registration_id": registration.id,
        })

    walk_ins = (
        db.query(ConfirmedEntry)
        .filter(
            ConfirmedEntry.event_id == event.id,
            ConfirmedEntry.bucket == bucket.name,
            ConfirmedEntry.ref_kind == RefKind.OTSE,
            ConfirmedEntry.solo_registration_id.is_(None),
        )
        .order_by(ConfirmedEntry.id.asc())
        .all()
    )
    for entry in walk_ins:
        label = labels.ref(ref_of(entry))
        listing["walk_ins"].append({"owner_id": label, "participant": label, "registration_id": None})
    return listing


def _team_bucket(db: Session, labels: ParticipantLabels, event: Event, bucket) -> dict:
    registrations = (
        db.query(TeamRegistration)
        .filter(TeamRegistration.event_id == event.id)
        .order_by(TeamRegistration.id.asc())
        .all()
    )
    listing = {"slots": bucket.slots, "capacity": bucket.capacity, "pending": [], "confirmed": [], "walk_ins": []}
    for registration in registrations:
        if registration.owner_kind == OwnerKind.OTSE:
            state = "walk_ins"
        else:
            state = "confirmed" if registration.confirmed else "pending"
        listing[state].append({
            "owner_id": labels.owner(registration.owner_kind, registration.owner_id),
            "participant": registration.team_name,
            "registration_id": registration.id,
        })
    return listing


def build_event_listing(db: Session, event: Event, labels: Optional[ParticipantLabels] = None) -> dict:
    labels = labels or ParticipantLabels(db)
    builder = _team_bucket if event.format == EventFormat.TEAM else _solo_bucket
    return {
        "event_id": event.id,
        "event_name": event.name,
        "format": event.format.value,
        "slot_scheme": event.slot_scheme.value,
        "buckets": {bucket.name: builder(db, labels, event, bucket) for bucket in event.buckets},
    }


def list_event_confirmations(db: Session, event_id: Optional[int] = None) -> List[dict]:
    if event_id is not None:
        events = [get_active_event(db, event_id)]
    else:
        events = db.query(Event).filter(Event.deleted.is_(False)).order_by(Event.id.asc()).all()
    labels = ParticipantLabels(db)
    return [build_event_listing(db, event, labels) for event in events]


def build_confirmation_workbook(listings: List[dict]) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Confirmations"
    ws.append(["Event ID", "Event", "Format", "Bucket", "State", "Owner ID", "Participant", "Registration ID"])
    for listing in listings:
        for bucket_name, bucket in listing["buckets"].items():
            for state in ("pending", "confirmed", "walk_ins"):
                for row in bucket[state]:
                    ws.append([
                        listing["event_id"],
                        listing["event_name"],
                        listing["format"],
                        bucket_name,
                        state,
                        row["owner_id"],
                        row["participant"],
                        row["registration_id"] or "",
                    ])
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
