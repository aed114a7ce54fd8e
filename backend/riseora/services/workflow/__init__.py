"""
Dispute Workflow Engine

Pure functions over plain data:
- stages: ordered template stages and next-stage lookup
- templates: letter rendering per stage
- guards: creation / escalation eligibility
- progress: display stage derived from stored timestamps
- transitions: user progress actions and allowed statuses
- escalation: follow-up letter selection for escalated disputes
"""

from .stages import (
    DISPUTE_TEMPLATE_STAGES,
    RENDERABLE_STAGES,
    TEMPLATE_DESCRIPTIONS,
    advance_stage,
    coerce_stage,
    describe_workflow,
    get_next_stage,
    get_template_descriptor,
    is_valid_stage,
)
from .templates import INVALID_STAGE_MESSAGE, format_letter_date, render_letter
from .bureaus import get_bureau_address
from .guards import (
    MAX_DISPUTES_PER_BUREAU,
    can_create_dispute,
    can_enter_escalation_stage,
    escalation_allowed,
    is_first_dispute,
)
from .progress import STAGE_LABELS, describe_progress, get_dispute_stage, get_stage_label
from .transitions import (
    can_apply,
    get_allowed_actions,
    get_investigation_deadline_days,
    get_target_status,
    is_terminal_status,
    is_valid_transition,
)
from .escalation import EscalationLetterGenerator, resolve_escalation_path

__all__ = [
    # Stages
    'DISPUTE_TEMPLATE_STAGES',
    'RENDERABLE_STAGES',
    'TEMPLATE_DESCRIPTIONS',
    'advance_stage',
    'coerce_stage',
    'describe_workflow',
    'get_next_stage',
    'get_template_descriptor',
    'is_valid_stage',
    # Letters
    'INVALID_STAGE_MESSAGE',
    'format_letter_date',
    'render_letter',
    'get_bureau_address',
    # Guards
    'MAX_DISPUTES_PER_BUREAU',
    'can_create_dispute',
    'can_enter_escalation_stage',
    'escalation_allowed',
    'is_first_dispute',
    # Progress
    'STAGE_LABELS',
    'describe_progress',
    'get_dispute_stage',
    'get_stage_label',
    # Transitions
    'can_apply',
    'get_allowed_actions',
    'get_investigation_deadline_days',
    'get_target_status',
    'is_terminal_status',
    'is_valid_transition',
    # Escalation
    'EscalationLetterGenerator',
    'resolve_escalation_path',
]
