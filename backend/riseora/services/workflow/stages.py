"""
Stage Sequencer

The five-step letter workflow plus the optional AI escalation step.
Ordering is fixed; the next stage is a pure ordinal lookup.
"""
from typing import Any, Dict, List, Optional

from ...models.workflow import DisputeTemplateStage, StageAdvance, TemplateDescriptor


# =============================================================================
# STAGE CONFIGURATION
# =============================================================================

DISPUTE_TEMPLATE_STAGES: List[DisputeTemplateStage] = list(DisputeTemplateStage)

# Stages the template renderer can produce without the escalation generator
RENDERABLE_STAGES: List[DisputeTemplateStage] = [
    stage for stage in DISPUTE_TEMPLATE_STAGES
    if stage != DisputeTemplateStage.AI_ESCALATION
]

TEMPLATE_DESCRIPTIONS: Dict[DisputeTemplateStage, TemplateDescriptor] = {
    DisputeTemplateStage.INVESTIGATION_REQUEST: TemplateDescriptor(
        title="Investigation Request Letter",
        description=(
            "Initial dispute letter requesting investigation under 15 U.S.C. Sec. 1681i(a). "
            "Bureau has 30 days to respond."
        ),
        wait_days=30,
    ),
    DisputeTemplateStage.PERSONAL_INFO_REMOVER: TemplateDescriptor(
        title="Personal Information Removal Letter",
        description="Request removal of outdated or incorrect personal information from your credit file.",
        wait_days=30,
    ),
    DisputeTemplateStage.VALIDATION_OF_DEBT: TemplateDescriptor(
        title="Validation of Debt Letter",
        description="Demand verification that the debt is valid and belongs to you under the FDCPA.",
        wait_days=30,
    ),
    DisputeTemplateStage.FACTUAL_LETTER: TemplateDescriptor(
        title="Factual Dispute Letter",
        description="Dispute with specific factual errors and documentation requests.",
        wait_days=30,
    ),
    DisputeTemplateStage.TERMINATION_LETTER: TemplateDescriptor(
        title="Termination / Final Demand Letter",
        description="Final demand for removal citing continued reporting violations and potential legal action.",
        wait_days=15,
    ),
    DisputeTemplateStage.AI_ESCALATION: TemplateDescriptor(
        title="AI-Generated Escalation",
        description="Custom escalation letter generated based on dispute history. Requires authenticated access.",
        wait_days=0,
    ),
}

WORKFLOW_NAME = "5-Step Dispute Template Process"


# =============================================================================
# LOOKUPS
# =============================================================================

def coerce_stage(value: Any) -> Optional[DisputeTemplateStage]:
    """Return the stage for an enum member or its string value, else None."""
    if isinstance(value, DisputeTemplateStage):
        return value
    if isinstance(value, str):
        try:
            return DisputeTemplateStage(value)
        except ValueError:
            return None
    return None


def is_valid_stage(value: Any) -> bool:
    return coerce_stage(value) is not None


def get_next_stage(current_stage: Any) -> Optional[DisputeTemplateStage]:
    """
    Stage immediately after current_stage.

    Returns None when current_stage is the last stage OR is not a stage at all.
    Callers that need to tell those apart must check is_valid_stage first.
    """
    stage = coerce_stage(current_stage)
    if stage is None:
        return None

    index = DISPUTE_TEMPLATE_STAGES.index(stage)
    if index >= len(DISPUTE_TEMPLATE_STAGES) - 1:
        return None
    return DISPUTE_TEMPLATE_STAGES[index + 1]


def get_template_descriptor(stage: Any) -> Optional[TemplateDescriptor]:
    stage = coerce_stage(stage)
    if stage is None:
        return None
    return TEMPLATE_DESCRIPTIONS[stage]


def percent_complete(stage: DisputeTemplateStage) -> int:
    """Share of the workflow reached once `stage` is the current stage."""
    step = DISPUTE_TEMPLATE_STAGES.index(stage) + 1
    return round(step / len(DISPUTE_TEMPLATE_STAGES) * 100)


def advance_stage(current_stage: Any) -> StageAdvance:
    """Compute the transition out of current_stage without raising."""
    previous = current_stage.value if isinstance(current_stage, DisputeTemplateStage) else current_stage

    if not is_valid_stage(current_stage):
        return StageAdvance(previous_stage=previous, error="Invalid current stage")

    next_stage = get_next_stage(current_stage)
    if next_stage is None:
        return StageAdvance(previous_stage=previous, error="Already at final stage")

    return StageAdvance(
        previous_stage=previous,
        next_stage=next_stage,
        descriptor=TEMPLATE_DESCRIPTIONS[next_stage],
        step=DISPUTE_TEMPLATE_STAGES.index(next_stage) + 1,
        total_steps=len(DISPUTE_TEMPLATE_STAGES),
        percent_complete=percent_complete(next_stage),
    )


def describe_workflow() -> Dict[str, Any]:
    """Public description of the stage list."""
    return {
        "stages": [stage.value for stage in DISPUTE_TEMPLATE_STAGES],
        "descriptions": {
            stage.value: descriptor.to_dict()
            for stage, descriptor in TEMPLATE_DESCRIPTIONS.items()
        },
        "total_steps": len(DISPUTE_TEMPLATE_STAGES),
        "workflow": WORKFLOW_NAME,
        "note": "Full dispute generation requires authenticated access through the RiseOra application.",
    }
