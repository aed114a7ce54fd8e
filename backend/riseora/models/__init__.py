"""RiseOra - Data Models"""
from .workflow import (
    # Enums
    DisputeTemplateStage, Bureau, DisputeStatus, DisputeAction, NotificationType,
    EscalationLetterType,
    # Template data
    TemplateDescriptor, DisputeTemplateData,
    # Results
    LetterResult, StageAdvance, EscalationPath,
    # Status vocabulary
    LEGACY_STATUS_MAP, normalize_status,
)

__all__ = [
    "DisputeTemplateStage", "Bureau", "DisputeStatus", "DisputeAction", "NotificationType",
    "EscalationLetterType",
    "TemplateDescriptor", "DisputeTemplateData",
    "LetterResult", "StageAdvance", "EscalationPath",
    "LEGACY_STATUS_MAP", "normalize_status",
]
