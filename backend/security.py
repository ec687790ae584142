from fastapi import Depends

from auth import get_current_admin, get_current_participant_id
from models import Admin


def require_admin(admin: Admin = Depends(get_current_admin)) -> Admin:
    return admin


def require_participant(participant_id: str = Depends(get_current_participant_id)) -> str:
    return participant_id
