from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models import Admin
from participant_details import describe_participant
from schemas import ParticipantDetails
from security import require_admin

router = APIRouter()


@router.get("/admin/participants/{participant_id}", response_model=ParticipantDetails)
def admin_get_participant(
    participant_id: str,
    _: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return describe_participant(db, participant_id)
