"""
RiseOra - Dispute Workflow Domain Models

Plain data structures shared by the workflow engine, the services and the
routers. Nothing in here touches the database.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


# =============================================================================
# ENUMS
# =============================================================================

class DisputeTemplateStage(str, Enum):
    """Letter stages. Declaration order IS the workflow order."""
    INVESTIGATION_REQUEST = "INVESTIGATION_REQUEST"
    PERSONAL_INFO_REMOVER = "PERSONAL_INFO_REMOVER"
    VALIDATION_OF_DEBT = "VALIDATION_OF_DEBT"
    FACTUAL_LETTER = "FACTUAL_LETTER"
    TERMINATION_LETTER = "TERMINATION_LETTER"
    AI_ESCALATION = "AI_ESCALATION"


class Bureau(str, Enum):
    EXPERIAN = "EXPERIAN"
    EQUIFAX = "EQUIFAX"
    TRANSUNION = "TRANSUNION"
    ALL = "ALL"


class DisputeStatus(str, Enum):
    """Canonical dispute lifecycle."""
    DRAFT = "DRAFT"
    READY_TO_MAIL = "READY_TO_MAIL"
    MAILED = "MAILED"
    DELIVERED = "DELIVERED"
    IN_INVESTIGATION = "IN_INVESTIGATION"
    RESPONSE_RECEIVED = "RESPONSE_RECEIVED"
    REMOVED = "REMOVED"
    VERIFIED = "VERIFIED"
    NO_RESPONSE = "NO_RESPONSE"
    ESCALATION_AVAILABLE = "ESCALATION_AVAILABLE"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    DELETED = "DELETED"  # soft delete


# Older status vocabulary still present in stored rows and client payloads.
# Values that exist in both vocabularies are not listed.
LEGACY_STATUS_MAP: Dict[str, DisputeStatus] = {
    "GENERATED": DisputeStatus.READY_TO_MAIL,
    "SENT": DisputeStatus.MAILED,
    "IN_PROGRESS": DisputeStatus.IN_INVESTIGATION,
}


def normalize_status(value: Any) -> Optional[DisputeStatus]:
    """Map a status (canonical or legacy, enum or string) onto DisputeStatus."""
    if isinstance(value, DisputeStatus):
        return value
    if not isinstance(value, str) or not value:
        return None
    key = value.strip().upper()
    if key in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[key]
    try:
        return DisputeStatus(key)
    except ValueError:
        return None


class DisputeAction(str, Enum):
    """User-reported progress actions."""
    MARK_READY = "mark_ready"
    MARK_MAILED = "mark_mailed"
    ADD_TRACKING = "add_tracking"
    MARK_DELIVERED = "mark_delivered"
    START_INVESTIGATION = "start_investigation"
    MARK_RESPONSE_RECEIVED = "mark_response_received"
    MARK_NO_RESPONSE = "mark_no_response"
    MARK_REMOVED = "mark_removed"
    MARK_VERIFIED = "mark_verified"
    MARK_ESCALATION = "mark_escalation"
    MARK_RESOLVED = "mark_resolved"
    MARK_CLOSED = "mark_closed"


class NotificationType(str, Enum):
    STATUS_UPDATE = "STATUS_UPDATE"
    DEADLINE_APPROACHING = "DEADLINE_APPROACHING"
    NO_RESPONSE = "NO_RESPONSE"
    FIRST_DISPUTE = "FIRST_DISPUTE"


class EscalationLetterType(str, Enum):
    FCRA_611_CRA_DISPUTE = "FCRA_611_CRA_DISPUTE"
    MOV_REQUEST = "MOV_REQUEST"
    DIRECT_DISPUTE_FURNISHER = "DIRECT_DISPUTE_FURNISHER"
    NO_LETTER_REGULATORY_ONLY = "NO_LETTER_REGULATORY_ONLY"


# =============================================================================
# TEMPLATE DATA
# =============================================================================

@dataclass(frozen=True)
class TemplateDescriptor:
    """Static reference data for one letter stage."""
    title: str
    description: str
    wait_days: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "wait_days": self.wait_days,
        }


REQUIRED_TEMPLATE_FIELDS = ("full_name", "creditor_name", "bureau", "dispute_reason")

# Wire names used by the web client
_CAMEL_KEYS = {
    "fullName": "full_name",
    "birthYear": "birth_year",
    "creditorName": "creditor_name",
    "accountNumber": "account_number",
    "disputeReason": "dispute_reason",
    "customReason": "custom_reason",
    "dateOpened": "date_opened",
    "ssnLast4": "ssn4",
}


@dataclass
class DisputeTemplateData:
    """Consumer-supplied parameters needed to render a letter body."""
    full_name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    ssn4: Optional[str] = None
    birth_year: Optional[str] = None
    creditor_name: str = ""
    account_number: Optional[str] = None
    bureau: str = ""
    dispute_reason: str = ""
    custom_reason: Optional[str] = None
    balance: Optional[str] = None
    date_opened: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DisputeTemplateData":
        """Build from a snake_case or camelCase mapping. Unknown keys are ignored."""
        known = set(cls.__dataclass_fields__)
        values: Dict[str, Any] = {}
        for key, value in payload.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in known or value is None:
                continue
            values[name] = value if isinstance(value, str) else str(value)
        return cls(**values)

    def missing_required_fields(self) -> List[str]:
        return [name for name in REQUIRED_TEMPLATE_FIELDS if not getattr(self, name)]


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class LetterResult:
    """Outcome of rendering a letter. Check `success` instead of the text."""
    stage: Optional[DisputeTemplateStage]
    content: str = ""
    error: Optional[str] = None
    deferred: bool = False  # AI_ESCALATION: body comes from an external generator

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class StageAdvance:
    """Outcome of moving from one template stage to the next."""
    previous_stage: Optional[str]
    next_stage: Optional[DisputeTemplateStage] = None
    descriptor: Optional[TemplateDescriptor] = None
    step: int = 0
    total_steps: int = 0
    percent_complete: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"error": self.error, "current_stage": self.previous_stage}
        return {
            "success": True,
            "previous_stage": self.previous_stage,
            "current_stage": self.next_stage.value,
            "template_info": self.descriptor.to_dict(),
            "progress": {
                "step": self.step,
                "total_steps": self.total_steps,
                "percent_complete": self.percent_complete,
            },
        }


@dataclass(frozen=True)
class EscalationPath:
    """Which single follow-up letter the sub-workflow flags permit."""
    letter_type: Optional[EscalationLetterType] = None
    context: str = ""
    blocked_reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.blocked_reason is None and self.letter_type is not None
