"""Bets placed by CC accounts on the outcome of events they entered."""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from errors import Forbidden, InvalidArgument, NotRegistered
from event_catalog import get_active_event
from models import Bet, Event, EventFormat, EventStatus, OwnerKind, SoloRegistration, TeamRegistration, VerificationStatus
from participant_directory import resolve_participant

logger = logging.getLogger(__name__)


def _holds_registration(db: Session, event: Event, owner) -> bool:
    model = TeamRegistration if event.format == EventFormat.TEAM else SoloRegistration
    registration = (
        db.query(model)
        .filter(model.event_id == event.id, model.owner_kind == OwnerKind.CC, model.owner_id == owner.id)
        .first()
    )
    return registration is not None


def place_bet(
    db: Session,
    participant_external_id: str,
    event_id: int,
    amount: int,
    category: Optional[str] = None,
) -> Bet:
    try:
        kind, owner = resolve_participant(db, participant_external_id)
        if kind != OwnerKind.CC:
            raise Forbidden("Only CC users can place bets")
        if owner.verified == VerificationStatus.REJECTED:
            raise Forbidden("User is rejected by the admin")
        event = get_active_event(db, event_id)
        if event.status != EventStatus.UPCOMING:
            raise InvalidArgument("Event has already started")
        if not _holds_registration(db, event, owner):
            raise NotRegistered("User is not registered for the event to bet on it")

        bet = Bet(
            cc_user_id=owner.id,
            event_id=event.id,
            event_type=event.event_type,
            amount=amount,
            category=(category or "").strip() or None,
        )
        db.add(bet)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(bet)
    logger.info("Bet %s of %s by %s on event %s", bet.id, amount, owner.cc_id, event.id)
    return bet


def list_bets(db: Session) -> List[Bet]:
    return db.query(Bet).order_by(Bet.id.asc()).all()


def list_participant_bets(db: Session, participant_external_id: str) -> List[Bet]:
    kind, owner = resolve_participant(db, participant_external_id)
    if kind != OwnerKind.CC:
        return []
    return db.query(Bet).filter(Bet.cc_user_id == owner.id).order_by(Bet.id.asc()).all()


def serialize_bet(bet: Bet) -> dict:
    return {
        "id": bet.id,
        "participant_id": bet.owner.cc_id,
        "event_id": bet.event_id,
        "event_name": bet.event.name,
        "event_type": bet.event_type.value,
        "format": bet.event.format.value,
        "amount": bet.amount,
        "category": bet.category,
    }
