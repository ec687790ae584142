from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from bet_service import list_bets, list_participant_bets, place_bet, serialize_bet
from database import get_db
from models import Admin
from schemas import BetCreate, BetResponse
from security import require_admin
from utils import log_admin_action

router = APIRouter()


@router.post("/admin/bets", response_model=BetResponse)
def admin_place_bet(
    payload: BetCreate,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    bet = place_bet(db, payload.participant_id, payload.event_id, payload.amount, category=payload.category)
    log_admin_action(
        db,
        admin,
        "Place bet",
        request.method if request else None,
        request.url.path if request else None,
        {"bet_id": bet.id, "participant_id": payload.participant_id, "event_id": bet.event_id, "amount": bet.amount},
    )
    return BetResponse(**serialize_bet(bet))


@router.get("/admin/bets", response_model=List[BetResponse])
def admin_list_bets(
    _: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [BetResponse(**serialize_bet(bet)) for bet in list_bets(db)]


@router.get("/admin/bets/{participant_id}", response_model=List[BetResponse])
def admin_list_participant_bets(
    participant_id: str,
    _: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [BetResponse(**serialize_bet(bet)) for bet in list_participant_bets(db, participant_id)]
