"""
Dispute Services

Stateful orchestration over the workflow engine:
- DisputeService: dispute lifecycle, checklist and analytics for a user
- NotificationService: in-app notifications and notification settings
- DeadlineEngine / DeadlineScheduler: response-deadline reminders
"""

from .dispute_service import DisputeService, build_template_data
from .notification_service import NotificationService
from .deadline_engine import DeadlineEngine, DeadlineScheduler, ReminderMessageGenerator

__all__ = [
    'DisputeService',
    'build_template_data',
    'NotificationService',
    'DeadlineEngine',
    'DeadlineScheduler',
    'ReminderMessageGenerator',
]
