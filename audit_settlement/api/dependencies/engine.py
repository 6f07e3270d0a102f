"""Engine service dependencies.

Route handlers receive services through these functions so tests can
swap the whole engine with ``set_engine`` (or override a dependency on
the app).
"""

from audit_settlement.application.services import (
    AssignmentLifecycleService,
    ReportSubmissionService,
)
from audit_settlement.bootstrap import get_engine
from audit_settlement.workers import ScheduledJobRunner


def get_report_submission_service() -> ReportSubmissionService:
    return get_engine().submissions


def get_assignment_service() -> AssignmentLifecycleService:
    return get_engine().assignments


def get_scheduled_job_runner() -> ScheduledJobRunner:
    return get_engine().scheduler
