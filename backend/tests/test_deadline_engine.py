"""
Test Suite: Deadline Engine

Tests the reminder scan:
1. Which disputes are picked up
2. DEADLINE_APPROACHING cooldown
3. NO_RESPONSE sent once
4. Reminder generator fallback
5. Per-user reminder lead days and notification settings
"""
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from riseora.models.db_models import DisputeDB, NotificationDB
from riseora.models.workflow import NotificationType
from riseora.services.disputes import DeadlineEngine, DeadlineScheduler, NotificationService, ReminderMessageGenerator
from riseora.services.disputes.deadline_engine import days_until

NOW = datetime(2026, 3, 1, 12, 0, 0)


def add_dispute(db_session, user, **fields):
    values = {
        "id": str(uuid4()),
        "user_id": user.id,
        "creditor_name": "Acme Collections",
        "bureau": "EXPERIAN",
        "status": "IN_INVESTIGATION",
        "dispute_reason": "Balance is wrong",
        "mailed_at": NOW - timedelta(days=28),
        "response_deadline": NOW + timedelta(days=3),
        "created_at": NOW - timedelta(days=30),
    }
    values.update(fields)
    dispute = DisputeDB(**values)
    db_session.add(dispute)
    db_session.commit()
    return dispute


def notifications(db_session, notification_type):
    return db_session.query(NotificationDB).filter(NotificationDB.type == notification_type).all()


class TestSelection:

    def test_within_window(self, db_session, user):
        dispute = add_dispute(db_session, user)
        found = DeadlineEngine(db_session).get_disputes_needing_reminders(NOW)
        assert [d.id for d in found] == [dispute.id]

    def test_excluded(self, db_session, user):
        add_dispute(db_session, user, response_deadline=NOW + timedelta(days=10))
        add_dispute(db_session, user, response_received_at=NOW)
        add_dispute(db_session, user, status="RESOLVED")
        add_dispute(db_session, user, status="DELETED")
        add_dispute(db_session, user, response_deadline=None)

        assert DeadlineEngine(db_session).get_disputes_needing_reminders(NOW) == []


class TestReminderLeadDays:
    """Per-user reminder window from notification settings."""

    def test_longer_lead_days_widen_window(self, db_session, user):
        NotificationService(db_session).update_settings(user.id, reminder_lead_days=10)
        dispute = add_dispute(db_session, user, response_deadline=NOW + timedelta(days=8))

        found = DeadlineEngine(db_session).get_disputes_needing_reminders(NOW)

        assert [d.id for d in found] == [dispute.id]

    def test_shorter_lead_days_narrow_window(self, db_session, user):
        NotificationService(db_session).update_settings(user.id, reminder_lead_days=2)
        add_dispute(db_session, user, response_deadline=NOW + timedelta(days=3))

        assert DeadlineEngine(db_session).get_disputes_needing_reminders(NOW) == []

    def test_default_window_without_settings(self, db_session, user, other_user):
        NotificationService(db_session).update_settings(other_user.id, reminder_lead_days=10)
        add_dispute(db_session, user, response_deadline=NOW + timedelta(days=8))
        reminded = add_dispute(db_session, other_user, response_deadline=NOW + timedelta(days=8))

        found = DeadlineEngine(db_session).get_disputes_needing_reminders(NOW)

        assert [d.id for d in found] == [reminded.id]

    def test_in_app_disabled_skipped(self, db_session, user):
        NotificationService(db_session).update_settings(user.id, in_app_enabled=False)
        add_dispute(db_session, user)

        result = DeadlineScheduler(db_session).run_reminder_check(NOW)

        assert result["disputes_checked"] == 0
        assert notifications(db_session, NotificationType.DEADLINE_APPROACHING) == []


class TestNotificationSettings:

    def test_defaults_created_on_first_read(self, db_session, user):
        settings = NotificationService(db_session).get_settings(user.id)
        assert settings["reminder_lead_days"] == 5
        assert settings["email_enabled"] is True
        assert settings["in_app_enabled"] is True

    def test_partial_update_keeps_other_fields(self, db_session, user):
        service = NotificationService(db_session)
        service.update_settings(user.id, email_enabled=False)
        settings = service.update_settings(user.id, reminder_lead_days=7)

        assert settings["email_enabled"] is False
        assert settings["reminder_lead_days"] == 7

    @pytest.mark.parametrize("lead_days", [0, -1, 31])
    def test_lead_days_out_of_range(self, db_session, user, lead_days):
        result = NotificationService(db_session).update_settings(user.id, reminder_lead_days=lead_days)
        assert result["code"] == 400


class TestReminderRun:

    def test_approaching_reminder_cooldown(self, db_session, user):
        add_dispute(db_session, user)
        scheduler = DeadlineScheduler(db_session)

        assert scheduler.run_reminder_check(NOW)["reminders_created"] == 1
        assert scheduler.run_reminder_check(NOW + timedelta(hours=1))["reminders_created"] == 0
        assert scheduler.run_reminder_check(NOW + timedelta(hours=25))["reminders_created"] == 1
        assert len(notifications(db_session, NotificationType.DEADLINE_APPROACHING)) == 2

    def test_fallback_wording(self, db_session, user):
        add_dispute(db_session, user)
        DeadlineScheduler(db_session).run_reminder_check(NOW)

        reminder = notifications(db_session, NotificationType.DEADLINE_APPROACHING)[0]
        assert reminder.title == "Deadline Approaching: Acme Collections"
        assert "has 3 days until" in reminder.message

    def test_no_response_sent_once(self, db_session, user):
        add_dispute(db_session, user, response_deadline=NOW - timedelta(days=1))
        scheduler = DeadlineScheduler(db_session)

        first = scheduler.run_reminder_check(NOW)
        second = scheduler.run_reminder_check(NOW + timedelta(days=2))

        assert first["no_response_created"] == 1
        assert second["no_response_created"] == 0
        assert len(notifications(db_session, NotificationType.NO_RESPONSE)) == 1

    def test_unmailed_past_deadline_is_skipped(self, db_session, user):
        add_dispute(db_session, user, mailed_at=None, response_deadline=NOW - timedelta(days=1))
        result = DeadlineScheduler(db_session).run_reminder_check(NOW)
        assert result["disputes_checked"] == 1
        assert result["no_response_created"] == 0


class TestReminderGenerator:

    def test_contract_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            ReminderMessageGenerator()

    def test_generator_wording(self, db_session, user):
        add_dispute(db_session, user)
        generator = MagicMock(spec=ReminderMessageGenerator)
        generator.generate.return_value = {"title": "Heads up", "message": "Three days left."}

        DeadlineScheduler(db_session, message_generator=generator).run_reminder_check(NOW)

        context = generator.generate.call_args[0][0]
        assert context["days_until_deadline"] == 3
        assert notifications(db_session, NotificationType.DEADLINE_APPROACHING)[0].title == "Heads up"

    def test_generator_failure_falls_back(self, db_session, user):
        add_dispute(db_session, user)
        generator = MagicMock(spec=ReminderMessageGenerator)
        generator.generate.side_effect = RuntimeError("model unavailable")

        result = DeadlineScheduler(db_session, message_generator=generator).run_reminder_check(NOW)

        assert result["reminders_created"] == 1
        assert result["errors"] == []
        reminder = notifications(db_session, NotificationType.DEADLINE_APPROACHING)[0]
        assert reminder.title.startswith("Deadline Approaching")

    def test_incomplete_generator_output_falls_back(self, db_session, user):
        add_dispute(db_session, user)
        generator = MagicMock(spec=ReminderMessageGenerator)
        generator.generate.return_value = {"title": "Only a title"}

        DeadlineScheduler(db_session, message_generator=generator).run_reminder_check(NOW)

        reminder = notifications(db_session, NotificationType.DEADLINE_APPROACHING)[0]
        assert reminder.title == "Deadline Approaching: Acme Collections"


def test_days_until_rounds_up():
    assert days_until(NOW + timedelta(days=2, hours=1), NOW) == 3
    assert days_until(NOW + timedelta(days=2), NOW) == 2
