"""
Eligibility Guards

Stateless predicates gating user actions. Counters and time windows are
computed by the caller (see DisputeService).
"""
from typing import Any

from ...models.workflow import DisputeStatus, normalize_status


MAX_DISPUTES_PER_BUREAU = 3
BUREAU_WINDOW_DAYS = 30

ESCALATION_ELIGIBLE_STATUSES = ("VERIFIED", "NO_RESPONSE")


def can_create_dispute(disputes_per_bureau_last_30_days: int) -> bool:
    """At most three disputes per bureau in a rolling 30-day window."""
    return disputes_per_bureau_last_30_days < MAX_DISPUTES_PER_BUREAU


def is_first_dispute(total_disputes: int) -> bool:
    return total_disputes == 0


def escalation_allowed(status: Any) -> bool:
    """
    Escalation opens only after the bureau verified the item (refused to
    remove it) or never responded.
    """
    if isinstance(status, DisputeStatus):
        status = status.value
    return status in ESCALATION_ELIGIBLE_STATUSES


def can_enter_escalation_stage(status: Any) -> bool:
    """A stored dispute may move into AI_ESCALATION once escalation is open."""
    return escalation_allowed(status) or normalize_status(status) == DisputeStatus.ESCALATION_AVAILABLE
