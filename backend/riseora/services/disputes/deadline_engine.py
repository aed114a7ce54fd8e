"""
Deadline Engine

AUTHORITY: SYSTEM
Watches bureau response deadlines and notifies the user.

Key behaviors:
- A dispute needs a reminder once its response deadline is within the
  owner's reminder lead days (5 by default) and no response has been
  recorded. Owners with in-app notifications off are skipped
- DEADLINE_APPROACHING is sent at most once per 24 hours per dispute
- NO_RESPONSE is sent once, after the deadline passes, for mailed disputes

Reminder wording can come from an injected ReminderMessageGenerator (an AI
service in production). Generator failures fall back to fixed wording.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ...models.db_models import DisputeDB, NotificationDB
from ...models.workflow import DisputeStatus, NotificationType
from .notification_service import DEFAULT_REMINDER_LEAD_DAYS, MAX_REMINDER_LEAD_DAYS, NotificationService

logger = logging.getLogger(__name__)


# =============================================================================
# DEADLINE CONFIGURATION
# =============================================================================

REMINDER_WINDOW_DAYS = DEFAULT_REMINDER_LEAD_DAYS  # Used when the user has no stored settings
REMINDER_COOLDOWN_HOURS = 24    # Minimum gap between DEADLINE_APPROACHING reminders

# Disputes in these statuses no longer get reminders
INACTIVE_STATUSES = (
    DisputeStatus.RESOLVED.value,
    DisputeStatus.CLOSED.value,
    DisputeStatus.DELETED.value,
)


class ReminderMessageGenerator(Protocol):
    """
    External collaborator that words a deadline reminder.

    Receives a context dict (creditor_name, bureau, status,
    days_until_deadline) and returns {"title": ..., "message": ...}.
    """

    def generate(self, context: Dict[str, Any]) -> Dict[str, str]:
        ...


def fallback_reminder_message(context: Dict[str, Any]) -> Dict[str, str]:
    creditor = context["creditor_name"]
    return {
        "title": f"Deadline Approaching: {creditor}",
        "message": (
            f"Your dispute with {creditor} ({context['bureau']}) has {context['days_until_deadline']} "
            f"days until the 30-day response deadline. Keep track of your certified mail receipt and "
            f"be ready to escalate if no response is received."
        ),
    }


def no_response_message(dispute: DisputeDB) -> Dict[str, str]:
    return {
        "title": f"No Response: {dispute.creditor_name}",
        "message": (
            f"The 30-day deadline has passed for your dispute with {dispute.creditor_name} "
            f"({dispute.bureau}) without a response. Under FCRA Section 611, the bureau must delete "
            f"or correct the disputed item. Consider sending a follow-up letter or escalating your complaint."
        ),
    }


def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days remaining, rounded up."""
    return math.ceil((deadline - now) / timedelta(days=1))


# =============================================================================
# DEADLINE ENGINE
# =============================================================================

class DeadlineEngine:
    """
    Finds disputes approaching or past their response deadline and creates
    the matching notifications.
    """

    def __init__(self, db_session: Session, message_generator: Optional[ReminderMessageGenerator] = None):
        """Initialize with database session."""
        self.db = db_session
        self.notifications = NotificationService(db_session)
        self.message_generator = message_generator

    def get_disputes_needing_reminders(self, now: Optional[datetime] = None) -> List[DisputeDB]:
        """
        Disputes whose deadline falls inside their owner's reminder window.

        The window is the user's reminder_lead_days (REMINDER_WINDOW_DAYS when
        unset). Users who turned in-app notifications off are skipped.
        """
        now = now or datetime.utcnow()
        widest_end = now + relativedelta(days=MAX_REMINDER_LEAD_DAYS)

        candidates = self.db.query(DisputeDB).filter(
            DisputeDB.response_deadline.isnot(None),
            DisputeDB.response_deadline < widest_end,
            DisputeDB.response_received_at.is_(None),
            DisputeDB.status.notin_(INACTIVE_STATUSES),
        ).all()

        settings = self.notifications.get_settings_for_users(list({d.user_id for d in candidates}))

        disputes = []
        for dispute in candidates:
            user_settings = settings.get(dispute.user_id)
            lead_days = REMINDER_WINDOW_DAYS
            if user_settings is not None:
                if user_settings.in_app_enabled is False:
                    continue
                lead_days = user_settings.reminder_lead_days or REMINDER_WINDOW_DAYS
            if dispute.response_deadline < now + relativedelta(days=lead_days):
                disputes.append(dispute)
        return disputes

    def _has_notification(
        self,
        dispute: DisputeDB,
        notification_type: NotificationType,
        since: Optional[datetime] = None,
    ) -> bool:
        query = self.db.query(NotificationDB).filter(
            NotificationDB.dispute_id == dispute.id,
            NotificationDB.type == notification_type,
        )
        if since is not None:
            query = query.filter(NotificationDB.created_at > since)
        return query.first() is not None

    def build_reminder(self, dispute: DisputeDB, now: datetime) -> Dict[str, str]:
        context = {
            "dispute_id": dispute.id,
            "creditor_name": dispute.creditor_name,
            "bureau": dispute.bureau,
            "status": dispute.status,
            "days_until_deadline": days_until(dispute.response_deadline, now),
        }
        if self.message_generator is not None:
            try:
                message = self.message_generator.generate(context)
                if message.get("title") and message.get("message"):
                    return {"title": message["title"], "message": message["message"]}
                logger.warning(f"Reminder generator returned incomplete message for dispute {dispute.id}")
            except Exception as e:
                logger.error(f"Reminder generator failed for dispute {dispute.id}: {e}")
        return fallback_reminder_message(context)

    def check_dispute(self, dispute: DisputeDB, now: datetime) -> Optional[NotificationType]:
        """
        Create at most one notification for a dispute.

        Returns the notification type created, if any.
        """
        if dispute.response_deadline >= now:
            since = now - timedelta(hours=REMINDER_COOLDOWN_HOURS)
            if self._has_notification(dispute, NotificationType.DEADLINE_APPROACHING, since=since):
                return None
            content = self.build_reminder(dispute, now)
            self.notifications.create(
                user_id=dispute.user_id,
                notification_type=NotificationType.DEADLINE_APPROACHING,
                title=content["title"],
                message=content["message"],
                dispute_id=dispute.id,
                created_at=now,
            )
            logger.info(f"Created deadline reminder for dispute {dispute.id}")
            return NotificationType.DEADLINE_APPROACHING

        if dispute.mailed_at is None:
            return None
        if self._has_notification(dispute, NotificationType.NO_RESPONSE):
            return None

        content = no_response_message(dispute)
        self.notifications.create(
            user_id=dispute.user_id,
            notification_type=NotificationType.NO_RESPONSE,
            title=content["title"],
            message=content["message"],
            dispute_id=dispute.id,
            created_at=now,
        )
        logger.info(f"Created no-response notification for dispute {dispute.id}")
        return NotificationType.NO_RESPONSE


class DeadlineScheduler:
    """
    Periodic reminder run.

    AUTHORITY: SYSTEM - triggered by the internal scheduler endpoint.
    """

    def __init__(self, db_session: Session, message_generator: Optional[ReminderMessageGenerator] = None):
        """Initialize with database session."""
        self.db = db_session
        self.engine = DeadlineEngine(db_session, message_generator=message_generator)

    def run_reminder_check(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        reminders_created = 0
        no_response_created = 0
        errors = []

        disputes = self.engine.get_disputes_needing_reminders(now)

        for dispute in disputes:
            try:
                created = self.engine.check_dispute(dispute, now)
            except Exception as e:
                logger.error(f"Reminder check failed for dispute {dispute.id}: {e}")
                errors.append({"dispute_id": dispute.id, "error": str(e)})
                continue

            if created == NotificationType.DEADLINE_APPROACHING:
                reminders_created += 1
            elif created == NotificationType.NO_RESPONSE:
                no_response_created += 1

        # Commit all changes
        self.db.commit()

        return {
            "run_date": now.isoformat(),
            "disputes_checked": len(disputes),
            "reminders_created": reminders_created,
            "no_response_created": no_response_created,
            "errors": errors,
        }
