from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from confirmation_listing import build_confirmation_workbook, list_event_confirmations
from database import get_db
from errors import InvalidArgument
from models import Admin, MemberRole
from notifications import notify_confirmation
from participant_directory import IdentityDocuments
from replacement_service import replace_confirmed
from schemas import (
    ConfirmationResponse,
    ConfirmRequest,
    DepartingIdentity,
    EventConfirmationListing,
    ParticipantIdentity,
    ReplacementResponse,
    ReplaceRequest,
    SubstitutionResponse,
    TeamDepartingData,
    TeamSubstituteData,
    WalkInResponse,
    WalkInSoloRequest,
    WalkInTeamRequest,
)
from security import require_admin
from slot_allocator import confirm_participant
from substitution_service import substitute_solo, substitute_team
from utils import log_admin_action
from walkin_service import admit_walk_in_solo, admit_walk_in_team

router = APIRouter()


def _parse_json_field(model, raw: Optional[str], field: str):
    if raw is None:
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid value")
        raise InvalidArgument(f"Invalid {field}{'.' + location if location else ''}: {message}")


def _pair_documents(id_proofs: List[UploadFile], govt_id_proofs: List[UploadFile]) -> List[IdentityDocuments]:
    count = max(len(id_proofs), len(govt_id_proofs))
    return [
        IdentityDocuments(
            id_proof=id_proofs[index] if index < len(id_proofs) else None,
            govt_id_proof=govt_id_proofs[index] if index < len(govt_id_proofs) else None,
        )
        for index in range(count)
    ]


@router.post("/admin/confirmations/confirm", response_model=ConfirmationResponse)
def confirm_user(
    payload: ConfirmRequest,
    background_tasks: BackgroundTasks,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    result = confirm_participant(
        db,
        payload.participant_id,
        payload.event_id,
        bucket=payload.bucket,
        registration_id=payload.registration_id,
    )
    background_tasks.add_task(notify_confirmation, result.email, result.event_name, result.participant_id, result.bucket)
    log_admin_action(
        db,
        admin,
        "Confirm participant",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": result.event_id, "participant_id": result.participant_id, "bucket": result.bucket},
    )
    return ConfirmationResponse(
        message="User confirmed successfully",
        event_id=result.event_id,
        bucket=result.bucket,
        participant_id=result.participant_id,
        slots_remaining=result.slots_remaining,
        points_awarded=result.points_awarded,
    )


@router.post("/admin/confirmations/replace", response_model=ReplacementResponse)
def replace_confirmed_user(
    payload: ReplaceRequest,
    background_tasks: BackgroundTasks,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    result = replace_confirmed(
        db,
        payload.participant_id,
        payload.event_id,
        payload.replacement_participant_id,
        bucket=payload.bucket,
        registration_id=payload.registration_id,
    )
    background_tasks.add_task(
        notify_confirmation, result.arriving_email, result.event_name, result.arriving_id, result.bucket
    )
    log_admin_action(
        db,
        admin,
        "Replace confirmed participant",
        request.method if request else None,
        request.url.path if request else None,
        {
            "event_id": result.event_id,
            "bucket": result.bucket,
            "departing_id": result.departing_id,
            "arriving_id": result.arriving_id,
        },
    )
    return ReplacementResponse(
        message="User replaced successfully",
        event_id=result.event_id,
        bucket=result.bucket,
        departing_id=result.departing_id,
        arriving_id=result.arriving_id,
        slots_remaining=result.slots_remaining,
    )


@router.post("/admin/substitutions/solo", response_model=SubstitutionResponse)
def substitute_solo_entry(
    participant_id: str = Form(...),
    event_id: int = Form(...),
    is_dummy: bool = Form(...),
    substitute_data: str = Form(...),
    to_be_replaced: Optional[str] = Form(None),
    id_proof: Optional[UploadFile] = File(None),
    govt_id_proof: Optional[UploadFile] = File(None),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    substitute = _parse_json_field(ParticipantIdentity, substitute_data, "substitute_data")
    departing = _parse_json_field(DepartingIdentity, to_be_replaced, "to_be_replaced")
    result = substitute_solo(
        db,
        participant_id,
        event_id,
        is_dummy,
        substitute,
        departing=departing,
        documents=IdentityDocuments(id_proof=id_proof, govt_id_proof=govt_id_proof),
    )
    log_admin_action(
        db,
        admin,
        "Substitute solo entry",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": event_id, "owner_id": result.owner_id, "is_dummy": is_dummy},
    )
    return SubstitutionResponse(
        message="Substitution successful",
        substituted=result.substituted,
        participant_ids=result.participant_ids,
    )


@router.post("/admin/substitutions/team", response_model=SubstitutionResponse)
def substitute_team_entries(
    participant_id: str = Form(...),
    event_id: int = Form(...),
    is_dummy: bool = Form(...),
    substitute_data: str = Form(...),
    to_be_replaced: Optional[str] = Form(None),
    team_member_id_proofs: List[UploadFile] = File(default=[]),
    team_member_govt_id_proofs: List[UploadFile] = File(default=[]),
    npa_member_id_proofs: List[UploadFile] = File(default=[]),
    npa_member_govt_id_proofs: List[UploadFile] = File(default=[]),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    substitutes = _parse_json_field(TeamSubstituteData, substitute_data, "substitute_data")
    departing = _parse_json_field(TeamDepartingData, to_be_replaced, "to_be_replaced")
    documents = {
        MemberRole.TEAM: _pair_documents(team_member_id_proofs, team_member_govt_id_proofs),
        MemberRole.NPA: _pair_documents(npa_member_id_proofs, npa_member_govt_id_proofs),
    }
    result = substitute_team(
        db,
        participant_id,
        event_id,
        is_dummy,
        substitutes,
        departing=departing,
        documents=documents,
    )
    log_admin_action(
        db,
        admin,
        "Substitute team entries",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": event_id, "owner_id": result.owner_id, "substituted": result.substituted},
    )
    return SubstitutionResponse(
        message="Substitution successful",
        substituted=result.substituted,
        participant_ids=result.participant_ids,
    )


@router.get("/admin/confirmations", response_model=List[EventConfirmationListing])
def get_users_for_confirmation(
    event_id: Optional[int] = Query(None),
    _: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_event_confirmations(db, event_id)


@router.get("/admin/confirmations/export")
def export_confirmations(
    event_id: Optional[int] = Query(None),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    listings = list_event_confirmations(db, event_id)
    output = build_confirmation_workbook(listings)
    filename = f"confirmations_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
    log_admin_action(
        db,
        admin,
        "Export confirmations",
        request.method if request else None,
        request.url.path if request else None,
        {"events": len(listings)},
    )
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/admin/walk-ins/solo", response_model=WalkInResponse)
def create_walk_in_for_solo(
    payload: WalkInSoloRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    result = admit_walk_in_solo(db, payload.participant, payload.event_id, bucket=payload.bucket)
    log_admin_action(
        db,
        admin,
        "Admit walk-in for solo event",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": result.event_id, "bucket": result.bucket, "otse_ids": result.otse_ids},
    )
    return WalkInResponse(
        message="OTSE for solo event created successfully",
        event_id=result.event_id,
        bucket=result.bucket,
        otse_ids=result.otse_ids,
        slots_remaining=result.slots_remaining,
    )


@router.post("/admin/walk-ins/team", response_model=WalkInResponse)
def create_walk_in_for_team(
    payload: WalkInTeamRequest,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
    request: Request = None,
):
    result = admit_walk_in_team(db, payload.registerer, payload.team_name, payload.event_id, payload.team_members)
    log_admin_action(
        db,
        admin,
        "Admit walk-in team",
        request.method if request else None,
        request.url.path if request else None,
        {"event_id": result.event_id, "team_name": payload.team_name, "otse_ids": result.otse_ids},
    )
    return WalkInResponse(
        message="OTSE for team event created successfully",
        event_id=result.event_id,
        bucket=result.bucket,
        otse_ids=result.otse_ids,
        slots_remaining=result.slots_remaining,
    )
