"""
Dispute Service

Main orchestration service for stored disputes.
Applies the workflow engine (stages, letters, guards, transitions) to
DisputeDB rows and records notifications for the user.

AUTHORITY MODEL:
- USER-AUTHORIZED: create (single or bulk), edit, progress actions, checklist,
  letter generation, stage advance, escalation, soft delete
- Ownership is checked on every call; soft-deleted disputes behave as missing

Every public method returns a dict. Failures carry "error" and an HTTP-style
"code" that the routers pass through.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...models.db_models import DisputeChecklistDB, DisputeDB, UserDB
from ...models.workflow import (
    Bureau, DisputeAction, DisputeStatus, DisputeTemplateData, DisputeTemplateStage,
    EscalationLetterType, NotificationType, normalize_status,
)
from ..workflow import (
    TEMPLATE_DESCRIPTIONS, advance_stage, can_apply, can_create_dispute,
    can_enter_escalation_stage, coerce_stage, describe_progress, escalation_allowed,
    get_allowed_actions, get_investigation_deadline_days, get_target_status,
    is_first_dispute, render_letter, resolve_escalation_path,
)
from ..workflow.escalation import EscalationLetterGenerator
from ..workflow.guards import BUREAU_WINDOW_DAYS, MAX_DISPUTES_PER_BUREAU
from ..workflow.transitions import coerce_action
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


# Fields a user may edit directly. Status and workflow timestamps only change
# through progress actions.
EDITABLE_FIELDS = (
    "creditor_name",
    "account_number",
    "dispute_reason",
    "custom_reason",
    "dispute_type",
    "dv_sent",
    "dv_response_received",
    "dv_response_quality",
    "cra_dispute_sent",
    "cra_response_received",
    "cra_response_result",
    "mov_sent",
    "direct_dispute_sent",
    "inaccuracy_persists",
)

PROTECTED_FIELDS = (
    "status",
    "mailed_at",
    "tracking_number",
    "delivered_at",
    "response_deadline",
    "response_received_at",
    "template_stage",
    "letter_content",
)

MAX_BULK_DISPUTES = 20

# Seeded the first time a dispute's checklist is read
DEFAULT_DISPUTE_CHECKLIST = (
    ("Review your credit report", "Confirm the creditor, account number and the details you are disputing."),
    ("Generate your dispute letter", "Create the letter for the current stage and read it through."),
    ("Print and sign the letter", "Sign by hand and attach copies of your ID and supporting documents."),
    ("Mail by certified mail", "Request a return receipt and keep the tracking number."),
    ("Record the mailing date", "Mark the dispute as mailed so the response window is tracked."),
    ("Confirm delivery", "Mark the dispute as delivered once the return receipt arrives."),
    ("Record the bureau's response", "Log the outcome when the bureau answers, or escalate if it does not."),
)

# Analytics buckets
RESOLVED_STATUSES = (DisputeStatus.REMOVED, DisputeStatus.CLOSED, DisputeStatus.RESOLVED)
SETTLED_STATUSES = (
    DisputeStatus.REMOVED,
    DisputeStatus.VERIFIED,
    DisputeStatus.CLOSED,
    DisputeStatus.NO_RESPONSE,
    DisputeStatus.RESOLVED,
)
TREND_MONTHS = 6
TOP_REASONS = 5


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_template_data(user: UserDB, dispute: DisputeDB) -> DisputeTemplateData:
    """Letter parameters from the user's profile and the stored dispute."""
    return DisputeTemplateData(
        full_name=user.full_name,
        address=user.street_address or "",
        city=user.city or "",
        state=user.state or "",
        zip=user.zip_code or "",
        ssn4=user.ssn_last_4 or None,
        birth_year=str(user.date_of_birth.year) if user.date_of_birth else None,
        creditor_name=dispute.creditor_name,
        account_number=dispute.account_number or None,
        bureau=dispute.bureau,
        dispute_reason=dispute.dispute_reason,
        custom_reason=dispute.custom_reason or None,
    )


# =============================================================================
# DISPUTE SERVICE
# =============================================================================

class DisputeService:
    """
    Main service for dispute management.

    Orchestrates:
    - Bureau throttling and first-dispute onboarding
    - Progress actions and their timestamps
    - Template letter generation and stage advance
    - Escalation letter generation via the injected generator
    """

    def __init__(self, db_session: Session, escalation_generator: Optional[EscalationLetterGenerator] = None):
        """Initialize with database session."""
        self.db = db_session
        self.notifications = NotificationService(db_session)
        self.escalation_generator = escalation_generator

    # =========================================================================
    # COUNTERS
    # =========================================================================

    def count_disputes_by_bureau_last_30_days(
        self,
        user_id: str,
        bureau: str,
        now: Optional[datetime] = None,
    ) -> int:
        """Disputes created against `bureau` in the trailing window, soft-deleted included."""
        now = now or datetime.utcnow()
        window_start = now - relativedelta(days=BUREAU_WINDOW_DAYS)

        return self.db.query(DisputeDB).filter(
            DisputeDB.user_id == user_id,
            DisputeDB.bureau == bureau,
            DisputeDB.created_at >= window_start,
        ).count()

    def count_total_disputes(self, user_id: str) -> int:
        return self.db.query(DisputeDB).filter(DisputeDB.user_id == user_id).count()

    # =========================================================================
    # DISPUTE CREATION
    # =========================================================================

    def create_dispute(
        self,
        user_id: str,
        creditor_name: str,
        bureau: str,
        dispute_reason: str,
        account_number: Optional[str] = None,
        custom_reason: Optional[str] = None,
        dispute_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create a new dispute in DRAFT.

        User-authorized action. Rejected once the user has opened
        MAX_DISPUTES_PER_BUREAU disputes against the bureau in the window.
        """
        now = now or datetime.utcnow()
        bureau_code = (bureau or "").strip().upper()

        if bureau_code not in {b.value for b in Bureau}:
            return {"error": f"Invalid bureau: {bureau}", "code": 400}

        recent = self.count_disputes_by_bureau_last_30_days(user_id, bureau_code, now)
        if not can_create_dispute(recent):
            logger.info(f"Dispute creation throttled for user {user_id} at {bureau_code} ({recent} recent)")
            return {
                "error": (
                    f"You have reached the limit of {MAX_DISPUTES_PER_BUREAU} disputes per bureau "
                    f"in the last {BUREAU_WINDOW_DAYS} days for {bureau_code}."
                ),
                "code": 400,
            }

        first = is_first_dispute(self.count_total_disputes(user_id))

        dispute = self._build_dispute(
            user_id=user_id,
            creditor_name=creditor_name,
            bureau=bureau_code,
            dispute_reason=dispute_reason,
            account_number=account_number,
            custom_reason=custom_reason,
            dispute_type=dispute_type,
            now=now,
        )
        self.db.add(dispute)

        if first:
            self._notify_first_dispute(dispute)

        self.db.commit()
        logger.info(f"Dispute {dispute.id} created for user {user_id} against {bureau_code}")

        result = self.to_dict(dispute)
        result["is_first_dispute"] = first
        return result

    def create_disputes_bulk(
        self,
        user_id: str,
        disputes: List[Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create several DRAFT disputes in one commit.

        User-authorized action. All or nothing: one invalid entry, or a bureau
        whose recent count plus the new entries would pass
        MAX_DISPUTES_PER_BUREAU, rejects the whole batch.
        """
        now = now or datetime.utcnow()

        if not isinstance(disputes, list) or not disputes:
            return {"error": "Disputes array is required", "code": 400}
        if len(disputes) > MAX_BULK_DISPUTES:
            return {"error": f"Maximum {MAX_BULK_DISPUTES} disputes allowed per request", "code": 400}

        valid_bureaus = {b.value for b in Bureau}
        entries = []
        for item in disputes:
            if not isinstance(item, dict):
                return {"error": "Each dispute must have creditor_name, bureau, and dispute_reason", "code": 400}
            creditor_name = str(item.get("creditor_name") or "").strip()
            bureau_code = str(item.get("bureau") or "").strip().upper()
            dispute_reason = str(item.get("dispute_reason") or "").strip()

            if not creditor_name or not bureau_code or not dispute_reason:
                return {"error": "Each dispute must have creditor_name, bureau, and dispute_reason", "code": 400}
            if bureau_code not in valid_bureaus:
                return {"error": f"Invalid bureau: {item.get('bureau')}", "code": 400}
            if dispute_reason.lower() == "other" and not item.get("custom_reason"):
                return {"error": "Custom reason required when dispute reason is 'other'", "code": 400}

            entries.append({
                "creditor_name": creditor_name,
                "bureau": bureau_code,
                "dispute_reason": dispute_reason,
                "account_number": item.get("account_number"),
                "custom_reason": item.get("custom_reason"),
                "dispute_type": item.get("dispute_type"),
            })

        new_per_bureau: Dict[str, int] = {}
        for entry in entries:
            new_per_bureau[entry["bureau"]] = new_per_bureau.get(entry["bureau"], 0) + 1

        for bureau_code, new_count in new_per_bureau.items():
            existing = self.count_disputes_by_bureau_last_30_days(user_id, bureau_code, now)
            if existing + new_count > MAX_DISPUTES_PER_BUREAU:
                logger.info(
                    f"Bulk creation throttled for user {user_id} at {bureau_code} "
                    f"({existing} recent + {new_count} new)"
                )
                return {
                    "error": (
                        f"Creating these disputes would exceed the limit of {MAX_DISPUTES_PER_BUREAU} "
                        f"per bureau in {BUREAU_WINDOW_DAYS} days for {bureau_code}."
                    ),
                    "code": 400,
                }

        first = is_first_dispute(self.count_total_disputes(user_id))

        created = []
        for entry in entries:
            dispute = self._build_dispute(user_id=user_id, now=now, **entry)
            self.db.add(dispute)
            created.append(dispute)

        if first:
            self._notify_first_dispute(created[0])

        self.db.commit()
        logger.info(f"Bulk-created {len(created)} disputes for user {user_id}")

        return {
            "disputes": [self.to_dict(d) for d in created],
            "count": len(created),
            "is_first_dispute": first,
        }

    def _build_dispute(
        self,
        user_id: str,
        creditor_name: str,
        bureau: str,
        dispute_reason: str,
        now: datetime,
        account_number: Optional[str] = None,
        custom_reason: Optional[str] = None,
        dispute_type: Optional[str] = None,
    ) -> DisputeDB:
        return DisputeDB(
            id=str(uuid4()),
            user_id=user_id,
            creditor_name=creditor_name,
            account_number=account_number,
            bureau=bureau,
            status=DisputeStatus.DRAFT.value,
            dispute_reason=dispute_reason,
            custom_reason=custom_reason,
            dispute_type=dispute_type,
            template_stage=DisputeTemplateStage.INVESTIGATION_REQUEST.value,
            template_stage_started_at=now,
            created_at=now,
            updated_at=now,
        )

    def _notify_first_dispute(self, dispute: DisputeDB) -> None:
        self.notifications.create(
            user_id=dispute.user_id,
            notification_type=NotificationType.FIRST_DISPUTE,
            title="Your First Dispute",
            message=(
                f"You started your first dispute with {dispute.creditor_name}. Generate your Investigation "
                f"Request letter, mail it by certified mail, and record the mailing date so we can "
                f"track the 30-day response window for you."
            ),
            dispute_id=dispute.id,
        )

    # =========================================================================
    # READS
    # =========================================================================

    def _get_owned(self, dispute_id: str, user_id: str) -> Tuple[Optional[DisputeDB], Optional[Dict[str, Any]]]:
        dispute = self.db.query(DisputeDB).filter(DisputeDB.id == dispute_id).first()
        if not dispute or normalize_status(dispute.status) == DisputeStatus.DELETED:
            return None, {"error": "Dispute not found", "code": 404}
        if dispute.user_id != user_id:
            return None, {"error": "Forbidden", "code": 403}
        return dispute, None

    def _get_user(self, user_id: str) -> Optional[UserDB]:
        return self.db.query(UserDB).filter(UserDB.id == user_id).first()

    def get_dispute(self, dispute_id: str, user_id: str) -> Dict[str, Any]:
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error
        return self.to_dict(dispute)

    def get_user_disputes(self, user_id: str, status: Optional[DisputeStatus] = None) -> List[Dict[str, Any]]:
        """All live disputes for a user, newest first. Legacy statuses match their canonical form."""
        disputes = self.db.query(DisputeDB).filter(
            DisputeDB.user_id == user_id
        ).order_by(DisputeDB.created_at.desc()).all()

        results = []
        for dispute in disputes:
            canonical = normalize_status(dispute.status)
            if canonical == DisputeStatus.DELETED:
                continue
            if status is not None and canonical != status:
                continue
            results.append(self.to_dict(dispute))
        return results

    def get_progress(self, dispute_id: str, user_id: str) -> Dict[str, Any]:
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error
        return {"dispute_id": dispute.id, **describe_progress(dispute)}

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    def get_analytics(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Dashboard summary over the user's live disputes.

        Success rate counts REMOVED disputes only. Resolution time runs from
        mailing to the recorded response, or to now when none was recorded.
        """
        now = now or datetime.utcnow()
        disputes = [
            d for d in self.db.query(DisputeDB).filter(
                DisputeDB.user_id == user_id
            ).order_by(DisputeDB.created_at.asc()).all()
            if normalize_status(d.status) != DisputeStatus.DELETED
        ]
        statuses = {d.id: normalize_status(d.status) for d in disputes}

        status_counts: Dict[str, int] = {}
        bureau_counts: Dict[str, int] = {}
        reason_counts: Dict[str, int] = {}
        for d in disputes:
            canonical = statuses[d.id]
            label = canonical.value if canonical else d.status
            status_counts[label] = status_counts.get(label, 0) + 1
            bureau_counts[d.bureau] = bureau_counts.get(d.bureau, 0) + 1
            reason = d.dispute_reason or "Other"
            reason_counts[reason] = reason_counts.get(reason, 0) + 1

        resolved = [d for d in disputes if statuses[d.id] in RESOLVED_STATUSES]
        removed = [d for d in disputes if statuses[d.id] == DisputeStatus.REMOVED]
        verified = [d for d in disputes if statuses[d.id] == DisputeStatus.VERIFIED]
        in_progress = [d for d in disputes if statuses[d.id] not in SETTLED_STATUSES]

        avg_resolution_days = 0
        timed = [d for d in resolved if d.mailed_at]
        if timed:
            total_days = sum(
                math.ceil(((d.response_received_at or now) - d.mailed_at) / timedelta(days=1))
                for d in timed
            )
            avg_resolution_days = _round_half_up(total_days / len(timed))

        monthly_trend = []
        month_start = datetime(now.year, now.month, 1)
        for offset in range(TREND_MONTHS - 1, -1, -1):
            start = month_start - relativedelta(months=offset)
            end = start + relativedelta(months=1)
            monthly_trend.append({
                "month": start.strftime("%b"),
                "created": sum(1 for d in disputes if d.created_at and start <= d.created_at < end),
                "resolved": sum(
                    1 for d in resolved
                    if d.response_received_at and start <= d.response_received_at < end
                ),
            })

        top_reasons = sorted(reason_counts.items(), key=lambda item: -item[1])[:TOP_REASONS]

        return {
            "summary": {
                "total": len(disputes),
                "in_progress": len(in_progress),
                "removed": len(removed),
                "verified": len(verified),
                "success_rate": _round_half_up(len(removed) / len(disputes) * 100) if disputes else 0,
                "avg_resolution_days": avg_resolution_days,
            },
            "status_breakdown": [
                {"status": status.replace("_", " "), "count": count}
                for status, count in status_counts.items()
            ],
            "bureau_breakdown": [
                {"bureau": bureau, "count": count} for bureau, count in bureau_counts.items()
            ],
            "monthly_trend": monthly_trend,
            "reason_breakdown": [{"reason": reason, "count": count} for reason, count in top_reasons],
        }

    # =========================================================================
    # CHECKLIST
    # =========================================================================

    def get_checklist(self, dispute_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """The dispute's checklist, seeded with DEFAULT_DISPUTE_CHECKLIST on first read."""
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        items = self.db.query(DisputeChecklistDB).filter(
            DisputeChecklistDB.dispute_id == dispute.id
        ).order_by(DisputeChecklistDB.order_index).all()

        if not items:
            now = now or datetime.utcnow()
            for index, (label, description) in enumerate(DEFAULT_DISPUTE_CHECKLIST):
                item = DisputeChecklistDB(
                    id=str(uuid4()),
                    dispute_id=dispute.id,
                    label=label,
                    description=description,
                    order_index=index,
                    completed=False,
                    created_at=now,
                )
                self.db.add(item)
                items.append(item)
            self.db.commit()
            logger.info(f"Created default checklist for dispute {dispute.id}")

        completed = sum(1 for item in items if item.completed)
        return {
            "dispute_id": dispute.id,
            "items": [self.checklist_item_to_dict(item) for item in items],
            "completed_count": completed,
            "total_count": len(items),
        }

    def update_checklist_item(
        self,
        item_id: str,
        user_id: str,
        completed: bool,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Tick or untick a checklist item on one of the user's disputes."""
        now = now or datetime.utcnow()
        item = self.db.query(DisputeChecklistDB).filter(DisputeChecklistDB.id == item_id).first()
        if item is None:
            return {"error": "Checklist item not found", "code": 404}

        _, error = self._get_owned(item.dispute_id, user_id)
        if error:
            return error

        if completed:
            item.completed_at = item.completed_at or now
        else:
            item.completed_at = None
        item.completed = completed

        self.db.commit()
        return self.checklist_item_to_dict(item)

    # =========================================================================
    # EDITS
    # =========================================================================

    def update_dispute(self, dispute_id: str, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Edit dispute details and sub-workflow flags."""
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        protected = [name for name in updates if name in PROTECTED_FIELDS]
        if protected:
            return {
                "error": "Status cannot be changed directly. Use the progress actions to update dispute status.",
                "code": 400,
            }

        for name, value in updates.items():
            if name in EDITABLE_FIELDS:
                setattr(dispute, name, value)

        self.db.commit()
        return self.to_dict(dispute)

    def delete_dispute(self, dispute_id: str, user_id: str) -> Dict[str, Any]:
        """Soft delete - the row stays, status becomes DELETED."""
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        dispute.status = DisputeStatus.DELETED.value
        self.db.commit()
        logger.info(f"Dispute {dispute.id} soft-deleted by user {user_id}")
        return {"dispute_id": dispute.id, "status": DisputeStatus.DELETED.value}

    # =========================================================================
    # PROGRESS ACTIONS
    # =========================================================================

    def update_progress(
        self,
        dispute_id: str,
        user_id: str,
        action: str,
        tracking_number: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Apply a user-reported progress action.

        User-authorized action - the user reports mailing, delivery and
        bureau responses; the matching timestamp is recorded here.
        """
        now = now or datetime.utcnow()
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        allowed, reason = can_apply(dispute.status, action)
        if not allowed:
            return {"error": reason, "code": 400}

        resolved = coerce_action(action)

        if resolved == DisputeAction.ADD_TRACKING and not tracking_number:
            return {"error": "Tracking number is required", "code": 400}

        target = get_target_status(resolved)
        if target is not None:
            dispute.status = target.value

        if resolved == DisputeAction.MARK_MAILED:
            dispute.mailed_at = now
            if tracking_number:
                dispute.tracking_number = tracking_number
        elif resolved == DisputeAction.ADD_TRACKING:
            dispute.tracking_number = tracking_number
        elif resolved == DisputeAction.MARK_DELIVERED:
            dispute.delivered_at = now
        elif resolved == DisputeAction.START_INVESTIGATION:
            days = get_investigation_deadline_days(dispute.dispute_type)
            dispute.response_deadline = now + relativedelta(days=days)
        elif resolved == DisputeAction.MARK_RESPONSE_RECEIVED:
            dispute.response_received_at = now

        shown = target.value if target is not None else resolved.value
        self.notifications.create(
            user_id=user_id,
            notification_type=NotificationType.STATUS_UPDATE,
            title="Dispute Status Updated",
            message=f'Your dispute with {dispute.creditor_name} has been updated to "{shown}".',
            dispute_id=dispute.id,
        )

        self.db.commit()
        logger.info(f"Dispute {dispute.id}: {resolved.value} -> {dispute.status}")
        return self.to_dict(dispute)

    # =========================================================================
    # LETTERS
    # =========================================================================

    def generate_letter(self, dispute_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Render the letter for the dispute's current template stage and store it."""
        now = now or datetime.utcnow()
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        stage = coerce_stage(dispute.template_stage) or DisputeTemplateStage.INVESTIGATION_REQUEST
        if stage == DisputeTemplateStage.AI_ESCALATION:
            return self.generate_escalation_letter(dispute_id, user_id, now=now)

        user = self._get_user(user_id)
        if user is None:
            return {"error": "User not found", "code": 404}

        data = build_template_data(user, dispute)
        missing = data.missing_required_fields()
        if missing:
            return {"error": f"Missing required fields: {', '.join(missing)}", "code": 400}

        result = render_letter(stage, data, today=now.date())
        if not result.success:
            return {"error": result.error, "code": 400}

        dispute.letter_content = result.content
        dispute.template_stage_started_at = now
        self.db.commit()
        logger.info(f"Generated {stage.value} letter for dispute {dispute.id}")

        return {
            "dispute_id": dispute.id,
            "letter_content": result.content,
            "template_stage": stage.value,
            "template_info": TEMPLATE_DESCRIPTIONS[stage].to_dict(),
        }

    def advance_stage(
        self,
        dispute_id: str,
        user_id: str,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Move the dispute to the next template stage.

        Entering AI_ESCALATION requires open escalation. The stored letter is
        kept; the user regenerates it for the new stage when ready.
        At most one of several concurrent advances succeeds.
        """
        now = now or datetime.utcnow()
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        if expected_version is not None and expected_version != dispute.version:
            return {"error": "Dispute was modified by another request", "code": 409}

        current = dispute.template_stage or DisputeTemplateStage.INVESTIGATION_REQUEST.value
        advance = advance_stage(current)
        if not advance.success:
            if advance.error == "Already at final stage":
                return {
                    "error": "Already at final stage. Consider escalating or closing the dispute.",
                    "code": 400,
                }
            return {"error": advance.error, "code": 400}

        if advance.next_stage == DisputeTemplateStage.AI_ESCALATION \
                and not can_enter_escalation_stage(dispute.status):
            return {
                "error": "Escalation is only available after VERIFIED or NO_RESPONSE status",
                "code": 403,
            }

        dispute.template_stage = advance.next_stage.value
        dispute.template_stage_started_at = now

        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning(f"Concurrent stage advance rejected for dispute {dispute_id}")
            return {"error": "Dispute was modified by another request", "code": 409}

        logger.info(f"Dispute {dispute.id} advanced {current} -> {advance.next_stage.value}")
        result = advance.to_dict()
        result["dispute"] = self.to_dict(dispute)
        return result

    def generate_escalation_letter(
        self,
        dispute_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Generate the AI_ESCALATION letter through the escalation generator.

        Only for disputes with open escalation and a permitted escalation path.
        """
        now = now or datetime.utcnow()
        dispute, error = self._get_owned(dispute_id, user_id)
        if error:
            return error

        if self.escalation_generator is None:
            return {"error": "Escalation letter generation is not configured", "code": 503}

        if not can_enter_escalation_stage(dispute.status):
            return {
                "error": "Escalation is only available after VERIFIED or NO_RESPONSE status",
                "code": 403,
            }

        path = resolve_escalation_path(dispute)
        if not path.allowed:
            return {"error": path.blocked_reason, "code": 400}

        user = self._get_user(user_id)
        if user is None:
            return {"error": "User not found", "code": 404}

        data = build_template_data(user, dispute)
        try:
            content = self.escalation_generator.generate(dispute, data, path)
        except Exception as e:
            logger.error(f"Escalation generator failed for dispute {dispute.id}: {e}")
            return {"error": "Failed to generate escalation letter", "code": 502}

        stage = DisputeTemplateStage.AI_ESCALATION
        dispute.letter_content = content
        dispute.template_stage = stage.value
        dispute.template_stage_started_at = now
        dispute.status = DisputeStatus.ESCALATED.value

        self.notifications.create(
            user_id=user_id,
            notification_type=NotificationType.STATUS_UPDATE,
            title="Escalation Letter Ready",
            message=f"Your escalation letter for {dispute.creditor_name} is ready to review.",
            dispute_id=dispute.id,
        )
        self.db.commit()
        logger.info(f"Generated escalation letter ({path.letter_type.value}) for dispute {dispute.id}")

        return {
            "dispute_id": dispute.id,
            "letter_content": content,
            "template_stage": stage.value,
            "letter_type": path.letter_type.value,
            "regulatory_only": path.letter_type == EscalationLetterType.NO_LETTER_REGULATORY_ONLY,
            "template_info": TEMPLATE_DESCRIPTIONS[stage].to_dict(),
        }

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @staticmethod
    def checklist_item_to_dict(item: DisputeChecklistDB) -> Dict[str, Any]:
        return {
            "id": item.id,
            "dispute_id": item.dispute_id,
            "label": item.label,
            "description": item.description,
            "order_index": item.order_index,
            "completed": bool(item.completed),
            "completed_at": _iso(item.completed_at),
        }

    @staticmethod
    def to_dict(dispute: DisputeDB) -> Dict[str, Any]:
        stage = coerce_stage(dispute.template_stage)
        return {
            "id": dispute.id,
            "user_id": dispute.user_id,
            "creditor_name": dispute.creditor_name,
            "account_number": dispute.account_number,
            "bureau": dispute.bureau,
            "status": dispute.status,
            "dispute_reason": dispute.dispute_reason,
            "custom_reason": dispute.custom_reason,
            "dispute_type": dispute.dispute_type,
            "letter_content": dispute.letter_content,
            "template_stage": dispute.template_stage,
            "template_info": TEMPLATE_DESCRIPTIONS[stage].to_dict() if stage else None,
            "template_stage_started_at": _iso(dispute.template_stage_started_at),
            "mailed_at": _iso(dispute.mailed_at),
            "tracking_number": dispute.tracking_number,
            "delivered_at": _iso(dispute.delivered_at),
            "response_deadline": _iso(dispute.response_deadline),
            "response_received_at": _iso(dispute.response_received_at),
            "dv_sent": bool(dispute.dv_sent),
            "dv_response_received": bool(dispute.dv_response_received),
            "dv_response_quality": dispute.dv_response_quality,
            "cra_dispute_sent": bool(dispute.cra_dispute_sent),
            "cra_response_received": bool(dispute.cra_response_received),
            "cra_response_result": dispute.cra_response_result,
            "mov_sent": bool(dispute.mov_sent),
            "direct_dispute_sent": bool(dispute.direct_dispute_sent),
            "inaccuracy_persists": bool(dispute.inaccuracy_persists),
            "version": dispute.version,
            "progress": describe_progress(dispute),
            "allowed_actions": [a.value for a in get_allowed_actions(dispute.status)],
            "escalation_allowed": escalation_allowed(normalize_status(dispute.status)),
            "created_at": _iso(dispute.created_at),
            "updated_at": _iso(dispute.updated_at),
        }
