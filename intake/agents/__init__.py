"""Default agent implementations wired into the event dispatcher."""

from intake.agents.assessment import AssessmentAgent
from intake.agents.outreach import LoggingNotifier, Notification, Notifier, OutreachAgent
from intake.agents.reconciliation import ReconciliationAgent, match_by_expected_type

__all__ = [
    "AssessmentAgent",
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "OutreachAgent",
    "ReconciliationAgent",
    "match_by_expected_type",
]
