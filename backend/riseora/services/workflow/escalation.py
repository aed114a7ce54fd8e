"""
Escalation Path

Decides which single follow-up letter a dispute may receive once escalation
is open (VERIFIED, NO_RESPONSE or ESCALATION_AVAILABLE), based on the
debt-validation / CRA sub-workflow flags.

The letter body itself comes from an EscalationLetterGenerator supplied by
the application (an AI service in production). This module only decides
whether, and for which letter type, that generator may be called.
"""
from typing import Any, Mapping, Protocol

from ...models.workflow import DisputeTemplateData, EscalationLetterType, EscalationPath
from .guards import can_enter_escalation_stage


def _flag(dispute: Any, name: str) -> Any:
    if isinstance(dispute, Mapping):
        return dispute.get(name)
    return getattr(dispute, name, None)


def resolve_escalation_path(dispute: Any) -> EscalationPath:
    """
    Walk the sub-workflow flags in order and return the one permitted step.

    Blocked results carry a user-facing reason instead of a letter type.
    """
    if not can_enter_escalation_stage(_flag(dispute, "status")):
        return EscalationPath(
            blocked_reason="Escalation is only available after VERIFIED or NO_RESPONSE status"
        )

    dv_sent = bool(_flag(dispute, "dv_sent"))
    dv_response_received = bool(_flag(dispute, "dv_response_received"))
    cra_sent = bool(_flag(dispute, "cra_dispute_sent"))
    cra_received = bool(_flag(dispute, "cra_response_received"))
    cra_result = _flag(dispute, "cra_response_result")
    mov_sent = bool(_flag(dispute, "mov_sent"))
    direct_sent = bool(_flag(dispute, "direct_dispute_sent"))
    inaccuracy_persists = bool(_flag(dispute, "inaccuracy_persists"))

    if not dv_sent or not dv_response_received:
        return EscalationPath(blocked_reason=(
            "We need more information to determine the appropriate next step. Please update your "
            "dispute status to indicate that a debt validation request was sent and a response was received."
        ))

    if (_flag(dispute, "dv_response_quality") or "unknown") == "unknown" \
            and _flag(dispute, "dispute_type") == "inaccurate_reporting":
        return EscalationPath(blocked_reason=(
            "Please update the quality of the validation response received "
            "(deficient or sufficient) before generating guidance."
        ))

    if not inaccuracy_persists or cra_result in ("deleted", "corrected"):
        return EscalationPath(blocked_reason="This dispute has been resolved. No further guidance is needed.")

    if not cra_sent:
        return EscalationPath(
            letter_type=EscalationLetterType.FCRA_611_CRA_DISPUTE,
            context=(
                "Debt validation is complete. The next and only allowed step is an "
                "FCRA §611 dispute with the credit bureaus."
            ),
        )

    if not cra_received:
        return EscalationPath(blocked_reason=(
            "Your CRA dispute has been sent but no response has been recorded yet. Please update "
            "the dispute once you receive a response from the credit bureau."
        ))

    if cra_result == "no_response" and not direct_sent:
        return EscalationPath(
            letter_type=EscalationLetterType.DIRECT_DISPUTE_FURNISHER,
            context=(
                "The CRA failed to respond within the required timeframe. The next step is a direct "
                "dispute to the furnisher under FCRA §623(a)(8)."
            ),
        )

    if cra_result == "verified" and not mov_sent:
        return EscalationPath(
            letter_type=EscalationLetterType.MOV_REQUEST,
            context=(
                "The CRA verified the account. The next step is a Method of Verification "
                "request under FCRA §611(a)(7)."
            ),
        )

    if mov_sent and not direct_sent:
        return EscalationPath(
            letter_type=EscalationLetterType.DIRECT_DISPUTE_FURNISHER,
            context=(
                "Method of Verification was requested. The next step is a direct dispute to the "
                "furnisher under FCRA §623(a)(8)."
            ),
        )

    if direct_sent:
        return EscalationPath(
            letter_type=EscalationLetterType.NO_LETTER_REGULATORY_ONLY,
            context=(
                "All dispute steps have been exhausted. Next steps are regulatory complaints "
                "(CFPB, State AG, FTC) and legal consultation."
            ),
        )

    return EscalationPath(blocked_reason=(
        "Unable to determine the appropriate next step. Please review your dispute status and "
        "ensure all fields are updated correctly."
    ))


# =============================================================================
# GENERATOR CONTRACT
# =============================================================================

class EscalationLetterGenerator(Protocol):
    """
    External collaborator that writes the AI_ESCALATION letter body.

    Input: the stored dispute, the consumer's template data and the resolved
    escalation path. Output: plain letter text.
    """

    def generate(self, dispute: Any, template_data: DisputeTemplateData, path: EscalationPath) -> str:
        ...
