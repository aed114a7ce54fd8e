"""
Dispute API Routes

Authenticated dashboard endpoints for a user's stored disputes.
Handles creation (single and bulk), analytics, progress actions, the
checklist, letter generation, stage advance and escalation.
"""
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..models.workflow import DisputeAction, DisputeStatus, normalize_status
from ..services.disputes import DisputeService
from ..services.workflow import EscalationLetterGenerator, get_template_descriptor


router = APIRouter(prefix="/disputes", tags=["disputes"])


def get_escalation_generator() -> Optional[EscalationLetterGenerator]:
    """
    Escalation letter writer. None until the application wires one in
    through `app.dependency_overrides`.
    """
    return None


def _raise_on_error(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(status_code=result.get("code", 400), detail=result["error"])
    return result


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateDisputeRequest(BaseModel):
    """Request to create a new dispute."""
    creditor_name: str = Field(..., min_length=1, description="Creditor or collector name")
    bureau: str = Field(..., description="EXPERIAN, EQUIFAX, TRANSUNION or ALL")
    dispute_reason: str = Field(..., min_length=1, description="Why the item is disputed")
    account_number: Optional[str] = None
    custom_reason: Optional[str] = None
    dispute_type: Optional[str] = Field(None, description="e.g. inaccurate_reporting, identity_theft")


class UpdateDisputeRequest(BaseModel):
    """Editable details and sub-workflow flags. Status is not accepted here."""
    creditor_name: Optional[str] = None
    account_number: Optional[str] = None
    dispute_reason: Optional[str] = None
    custom_reason: Optional[str] = None
    dispute_type: Optional[str] = None
    status: Optional[str] = None

    dv_sent: Optional[bool] = None
    dv_response_received: Optional[bool] = None
    dv_response_quality: Optional[str] = None  # unknown, deficient, sufficient
    cra_dispute_sent: Optional[bool] = None
    cra_response_received: Optional[bool] = None
    cra_response_result: Optional[str] = None  # verified, deleted, corrected, no_response
    mov_sent: Optional[bool] = None
    direct_dispute_sent: Optional[bool] = None
    inaccuracy_persists: Optional[bool] = None


class ProgressActionRequest(BaseModel):
    """User-reported progress action."""
    action: DisputeAction
    tracking_number: Optional[str] = None


class AdvanceDisputeStageRequest(BaseModel):
    expected_version: Optional[int] = Field(None, description="Version the client last saw")


class BulkCreateDisputesRequest(BaseModel):
    """Entries use the CreateDisputeRequest fields; the service validates each one."""
    disputes: Optional[Any] = None


class ChecklistItemUpdateRequest(BaseModel):
    completed: bool


# =============================================================================
# USER-AUTHORIZED ENDPOINTS
# =============================================================================

@router.post("", response_model=dict, status_code=201)
async def create_dispute(
    request: CreateDisputeRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Create a new dispute in DRAFT.

    Limited to three disputes per bureau in any 30-day window.
    """
    service = DisputeService(db)

    result = service.create_dispute(
        user_id=current_user.id,
        creditor_name=request.creditor_name,
        bureau=request.bureau,
        dispute_reason=request.dispute_reason,
        account_number=request.account_number,
        custom_reason=request.custom_reason,
        dispute_type=request.dispute_type,
    )

    return _raise_on_error(result)


@router.get("", response_model=dict)
async def list_disputes(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    List the user's disputes. Legacy status names are accepted as filters.
    """
    status_filter: Optional[DisputeStatus] = None
    if status:
        status_filter = normalize_status(status)
        if status_filter is None:
            raise HTTPException(status_code=400, detail=f"Unknown status: {status}")

    service = DisputeService(db)
    disputes = service.get_user_disputes(current_user.id, status=status_filter)

    return {"count": len(disputes), "disputes": disputes}


@router.post("/bulk", response_model=dict, status_code=201)
async def create_disputes_bulk(
    request: Optional[BulkCreateDisputesRequest] = None,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Create up to 20 disputes in one request.

    The three-per-bureau limit applies to the batch as a whole; one bad
    entry rejects everything.
    """
    service = DisputeService(db)
    disputes = request.disputes if request is not None else None
    return _raise_on_error(service.create_disputes_bulk(current_user.id, disputes))


@router.get("/analytics", response_model=dict)
async def get_dispute_analytics(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """Status, bureau and reason breakdowns, success rate and a 6-month trend."""
    service = DisputeService(db)
    return service.get_analytics(current_user.id)


@router.patch("/checklist/{item_id}", response_model=dict)
async def update_checklist_item(
    item_id: str,
    request: ChecklistItemUpdateRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    service = DisputeService(db)
    return _raise_on_error(service.update_checklist_item(item_id, current_user.id, request.completed))


@router.get("/{dispute_id}", response_model=dict)
async def get_dispute(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    service = DisputeService(db)
    return _raise_on_error(service.get_dispute(dispute_id, current_user.id))


@router.patch("/{dispute_id}", response_model=dict)
async def update_dispute(
    dispute_id: str,
    request: UpdateDisputeRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Edit dispute details and sub-workflow flags.

    Status changes go through POST /disputes/{id}/progress.
    """
    service = DisputeService(db)
    updates = request.model_dump(exclude_none=True)
    return _raise_on_error(service.update_dispute(dispute_id, current_user.id, updates))


@router.delete("/{dispute_id}", response_model=dict)
async def delete_dispute(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Soft delete. The dispute still counts toward the bureau limit.
    """
    service = DisputeService(db)
    return _raise_on_error(service.delete_dispute(dispute_id, current_user.id))


# =============================================================================
# PROGRESS
# =============================================================================

@router.get("/{dispute_id}/progress", response_model=dict)
async def get_progress(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Display stage (0-7) derived from the recorded timestamps.
    """
    service = DisputeService(db)
    return _raise_on_error(service.get_progress(dispute_id, current_user.id))


@router.post("/{dispute_id}/progress", response_model=dict)
async def update_progress(
    dispute_id: str,
    request: ProgressActionRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Apply a progress action (mark_mailed, mark_delivered, ...).

    User-authorized action - records the matching timestamp.
    """
    service = DisputeService(db)

    result = service.update_progress(
        dispute_id=dispute_id,
        user_id=current_user.id,
        action=request.action,
        tracking_number=request.tracking_number,
    )

    return _raise_on_error(result)


# =============================================================================
# LETTERS AND STAGES
# =============================================================================

@router.get("/{dispute_id}/checklist", response_model=dict)
async def get_checklist(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """Checklist items in order. The default list is created on first read."""
    service = DisputeService(db)
    return _raise_on_error(service.get_checklist(dispute_id, current_user.id))


@router.get("/{dispute_id}/stage", response_model=dict)
async def get_stage(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Current template stage and its descriptor.
    """
    service = DisputeService(db)
    dispute = _raise_on_error(service.get_dispute(dispute_id, current_user.id))
    descriptor = get_template_descriptor(dispute["template_stage"])

    return {
        "dispute_id": dispute_id,
        "template_stage": dispute["template_stage"],
        "template_info": descriptor.to_dict() if descriptor else None,
        "template_stage_started_at": dispute["template_stage_started_at"],
        "escalation_allowed": dispute["escalation_allowed"],
    }


@router.post("/{dispute_id}/generate-letter", response_model=dict)
async def generate_letter(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
    escalation_generator: Optional[EscalationLetterGenerator] = Depends(get_escalation_generator),
):
    """
    Generate the letter for the dispute's current stage from the user's profile.
    """
    service = DisputeService(db, escalation_generator=escalation_generator)
    return _raise_on_error(service.generate_letter(dispute_id, current_user.id))


@router.post("/{dispute_id}/advance-stage", response_model=dict)
async def advance_stage(
    dispute_id: str,
    request: Optional[AdvanceDisputeStageRequest] = None,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    """
    Move to the next template stage.

    AI_ESCALATION is only reachable after VERIFIED or NO_RESPONSE.
    """
    service = DisputeService(db)
    expected_version = request.expected_version if request else None

    result = service.advance_stage(dispute_id, current_user.id, expected_version=expected_version)

    return _raise_on_error(result)


@router.post("/{dispute_id}/escalation-letter", response_model=dict)
async def generate_escalation_letter(
    dispute_id: str,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
    escalation_generator: Optional[EscalationLetterGenerator] = Depends(get_escalation_generator),
):
    """
    Generate the AI escalation letter.

    Requires open escalation and a permitted next step from the
    validation / CRA history.
    """
    service = DisputeService(db, escalation_generator=escalation_generator)
    return _raise_on_error(service.generate_escalation_letter(dispute_id, current_user.id))
