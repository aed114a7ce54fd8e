"""
Dispute Status Transitions

User-reported progress actions and the status each one is allowed from.
Timestamps that accompany an action are written by DisputeService.
"""
from typing import Any, Dict, List, Optional, Tuple

from ...models.workflow import DisputeAction, DisputeStatus, normalize_status
from .guards import escalation_allowed


# =============================================================================
# TRANSITION TABLE
# =============================================================================

STATUS_CONFIG: Dict[DisputeStatus, Dict[str, Any]] = {
    DisputeStatus.DRAFT: {
        "description": "Dispute created, letter not finalized",
        "allowed_actions": [DisputeAction.MARK_READY],
    },
    DisputeStatus.READY_TO_MAIL: {
        "description": "Letter printed and ready to send",
        "allowed_actions": [DisputeAction.MARK_MAILED],
    },
    DisputeStatus.MAILED: {
        "description": "Letter mailed to the bureau",
        "allowed_actions": [DisputeAction.ADD_TRACKING, DisputeAction.MARK_DELIVERED],
    },
    DisputeStatus.DELIVERED: {
        "description": "Bureau received the letter",
        "allowed_actions": [DisputeAction.START_INVESTIGATION],
    },
    DisputeStatus.IN_INVESTIGATION: {
        "description": "Bureau investigation window running",
        "allowed_actions": [DisputeAction.MARK_RESPONSE_RECEIVED, DisputeAction.MARK_NO_RESPONSE],
    },
    DisputeStatus.RESPONSE_RECEIVED: {
        "description": "Bureau answered, outcome not yet recorded",
        "allowed_actions": [DisputeAction.MARK_REMOVED, DisputeAction.MARK_VERIFIED],
    },
    DisputeStatus.REMOVED: {
        "description": "Item removed from the report",
        "allowed_actions": [DisputeAction.MARK_RESOLVED, DisputeAction.MARK_CLOSED],
    },
    DisputeStatus.VERIFIED: {
        "description": "Bureau verified the item",
        "allowed_actions": [DisputeAction.MARK_ESCALATION],
    },
    DisputeStatus.NO_RESPONSE: {
        "description": "No answer within the investigation window",
        "allowed_actions": [DisputeAction.MARK_ESCALATION],
    },
    DisputeStatus.ESCALATION_AVAILABLE: {
        "description": "Escalation letter may be generated",
        "allowed_actions": [DisputeAction.MARK_CLOSED],
    },
    DisputeStatus.ESCALATED: {
        "description": "Escalation letter generated",
        "allowed_actions": [DisputeAction.MARK_RESOLVED, DisputeAction.MARK_CLOSED],
    },
    DisputeStatus.RESOLVED: {
        "description": "Dispute resolved",
        "allowed_actions": [DisputeAction.MARK_CLOSED],
    },
    DisputeStatus.CLOSED: {
        "description": "Dispute closed",
        "allowed_actions": [],
    },
    DisputeStatus.DELETED: {
        "description": "Dispute removed by the user",
        "allowed_actions": [],
    },
}

ACTION_TARGETS: Dict[DisputeAction, Optional[DisputeStatus]] = {
    DisputeAction.MARK_READY: DisputeStatus.READY_TO_MAIL,
    DisputeAction.MARK_MAILED: DisputeStatus.MAILED,
    DisputeAction.ADD_TRACKING: None,  # status unchanged
    DisputeAction.MARK_DELIVERED: DisputeStatus.DELIVERED,
    DisputeAction.START_INVESTIGATION: DisputeStatus.IN_INVESTIGATION,
    DisputeAction.MARK_RESPONSE_RECEIVED: DisputeStatus.RESPONSE_RECEIVED,
    DisputeAction.MARK_NO_RESPONSE: DisputeStatus.NO_RESPONSE,
    DisputeAction.MARK_REMOVED: DisputeStatus.REMOVED,
    DisputeAction.MARK_VERIFIED: DisputeStatus.VERIFIED,
    DisputeAction.MARK_ESCALATION: DisputeStatus.ESCALATION_AVAILABLE,
    DisputeAction.MARK_RESOLVED: DisputeStatus.RESOLVED,
    DisputeAction.MARK_CLOSED: DisputeStatus.CLOSED,
}

TERMINAL_STATUSES = (DisputeStatus.CLOSED, DisputeStatus.DELETED)

IDENTITY_THEFT_DEADLINE_DAYS = 45
STANDARD_DEADLINE_DAYS = 30


# =============================================================================
# LOOKUPS
# =============================================================================

def coerce_action(value: Any) -> Optional[DisputeAction]:
    if isinstance(value, DisputeAction):
        return value
    try:
        return DisputeAction(value)
    except ValueError:
        return None


def get_allowed_actions(status: Any) -> List[DisputeAction]:
    canonical = normalize_status(status)
    if canonical is None:
        return []
    return list(STATUS_CONFIG[canonical]["allowed_actions"])


def is_valid_transition(status: Any, action: Any) -> bool:
    action = coerce_action(action)
    return action is not None and action in get_allowed_actions(status)


def get_target_status(action: Any) -> Optional[DisputeStatus]:
    action = coerce_action(action)
    if action is None:
        return None
    return ACTION_TARGETS[action]


def can_apply(status: Any, action: Any) -> Tuple[bool, str]:
    """
    Check an action against the table and the escalation guard.

    Returns (allowed, reason)
    """
    resolved = coerce_action(action)
    if resolved is None:
        return False, "Invalid action"

    if not is_valid_transition(status, resolved):
        shown = status.value if isinstance(status, DisputeStatus) else status
        return False, f"Cannot perform '{resolved.value}' when dispute is in '{shown}' status"

    if resolved == DisputeAction.MARK_ESCALATION and not escalation_allowed(normalize_status(status)):
        return False, "Escalation is only available after VERIFIED or NO_RESPONSE status"

    return True, "Transition allowed"


def is_terminal_status(status: Any) -> bool:
    return normalize_status(status) in TERMINAL_STATUSES


def get_investigation_deadline_days(dispute_type: Optional[str]) -> int:
    """Identity theft disputes get the extended 45-day window."""
    return IDENTITY_THEFT_DEADLINE_DAYS if dispute_type == "identity_theft" else STANDARD_DEADLINE_DAYS
