"""
Template API Routes

API-key endpoints around the five-step letter workflow.
Stateless: nothing here reads or writes the database.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..auth import verify_api_key
from ..models.workflow import DisputeTemplateData, DisputeTemplateStage
from ..services.workflow import (
    DISPUTE_TEMPLATE_STAGES, RENDERABLE_STAGES, advance_stage, coerce_stage,
    describe_workflow, render_letter,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/disputes", tags=["templates"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class AdvanceStageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Validated by coerce_stage
    current_stage: Optional[Any] = Field(None, alias="currentStage")


class GenerateLetterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_stage: Optional[Any] = Field(None, alias="templateStage")
    user_data: Optional[Any] = Field(None, alias="userData")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/templates", response_model=dict)
async def list_templates():
    """
    Stage list with titles, descriptions and wait periods.

    Public - no API key required.
    """
    return describe_workflow()


@router.post("/advance-stage", response_model=dict)
async def advance_template_stage(
    request: Optional[AdvanceStageRequest] = None,
    _: bool = Depends(verify_api_key),
):
    """
    Compute the stage after `currentStage` with its descriptor and progress.
    """
    if request is None:
        request = AdvanceStageRequest()
    result = advance_stage(request.current_stage)

    if not result.success:
        detail = {"error": result.error}
        if coerce_stage(request.current_stage) is None:
            detail["valid_stages"] = [stage.value for stage in DISPUTE_TEMPLATE_STAGES]
        else:
            detail["current_stage"] = request.current_stage
        raise HTTPException(status_code=400, detail=detail)

    return result.to_dict()


@router.post("/generate-letter", response_model=dict)
async def generate_template_letter(
    request: Optional[GenerateLetterRequest] = None,
    _: bool = Depends(verify_api_key),
):
    """
    Render a template letter from caller-supplied data.

    AI_ESCALATION letters need an authenticated dispute and are refused here.
    """
    if request is None:
        request = GenerateLetterRequest()
    stage = coerce_stage(request.template_stage)
    if stage is None:
        raise HTTPException(status_code=400, detail={
            "error": "Invalid template stage",
            "valid_stages": [s.value for s in RENDERABLE_STAGES],
        })

    if stage == DisputeTemplateStage.AI_ESCALATION:
        raise HTTPException(status_code=403, detail={
            "error": "AI escalation requires authenticated access",
            "message": "AI-generated escalation letters are only available through the RiseOra application.",
        })

    user_data = request.user_data if isinstance(request.user_data, dict) else {}
    data = DisputeTemplateData.from_dict(user_data)
    missing = data.missing_required_fields()
    if missing:
        raise HTTPException(status_code=400, detail={
            "error": "Missing required user data",
            "missing": missing,
        })

    result = render_letter(stage, data)
    if not result.success:
        raise HTTPException(status_code=400, detail={"error": result.error})

    logger.info(f"Rendered {stage.value} letter via template API")
    return {
        "success": True,
        "template_stage": stage.value,
        "letter_content": result.content,
    }


# Dashboard routes share the /disputes prefix; without these, other verbs on
# the template paths would fall through to /disputes/{dispute_id}.
@router.api_route("/templates", methods=["POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
@router.api_route("/advance-stage", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
@router.api_route("/generate-letter", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def method_not_allowed():
    raise HTTPException(status_code=405, detail="Method not allowed")
