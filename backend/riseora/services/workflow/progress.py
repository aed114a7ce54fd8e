"""
Display Progress

Derives a 0-7 progress ordinal from the workflow timestamps stored on a
dispute. The ordinal is independent of the persisted status field; the two
may disagree and nothing here reconciles them.
"""
from typing import Any, List, Mapping

from ...models.workflow import DisputeStatus, normalize_status


STAGE_LABELS: List[str] = [
    "Draft",
    "Letter Generated",
    "Printed & Ready",  # no stored field maps here
    "Tracking Added",
    "Mailed",
    "Delivered",
    "Response Received",
    "Resolved",
]

FINAL_STATUSES = (DisputeStatus.RESOLVED, DisputeStatus.ESCALATED)


def _field(dispute: Any, name: str) -> Any:
    if isinstance(dispute, Mapping):
        return dispute.get(name)
    return getattr(dispute, name, None)


def get_dispute_stage(dispute: Any) -> int:
    """
    Highest-priority condition wins; the checks are not cumulative.

    Accepts an ORM row or a plain mapping with snake_case keys.
    """
    if normalize_status(_field(dispute, "status")) in FINAL_STATUSES:
        return 7
    if _field(dispute, "response_received_at"):
        return 6
    if _field(dispute, "delivered_at"):
        return 5
    if _field(dispute, "mailed_at"):
        return 4
    if _field(dispute, "tracking_number"):
        return 3
    if _field(dispute, "letter_content"):
        return 1
    return 0


def get_stage_label(stage: int) -> str:
    if not isinstance(stage, int) or isinstance(stage, bool) or stage < 0 or stage >= len(STAGE_LABELS):
        return "Unknown"
    return STAGE_LABELS[stage]


def describe_progress(dispute: Any) -> dict:
    stage = get_dispute_stage(dispute)
    return {
        "stage": stage,
        "label": get_stage_label(stage),
        "total_stages": len(STAGE_LABELS) - 1,
    }
