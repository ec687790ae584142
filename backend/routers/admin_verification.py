from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models import Admin, VerificationStatus
from schemas import PendingVerificationResponse, VerifyRequest
from security import require_admin
from utils import log_admin_action
from verification_service import list_pending_verifications, verify_participant

router = APIRouter()


@router.get("/admin/verifications/pending", response_model=List[PendingVerificationResponse])
def get_pending_verifications(
    _: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_pending_verifications(db)


@router.post("/admin/verifications")
def verify_user(
    payload: VerifyRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    verify_participant(
        db,
        payload.participant_kind.value,
        payload.participant_id,
        VerificationStatus(payload.verified.value),
    )
    log_admin_action(
        db,
        admin,
        "Verify participant",
        request.method if request else None,
        request.url.path if request else None,
        {
            "kind": payload.participant_kind.value,
            "participant_id": payload.participant_id,
            "verified": payload.verified.value,
        },
    )
    return {"message": "User verified successfully"}
