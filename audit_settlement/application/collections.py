"""Collection names and well-known document ids used by the engine."""

AUDITORS = "auditors"
AUDIT_REQUESTS = "audit_requests"
AUDIT_ASSIGNMENTS = "audit_assignments"
AUDITS = "audits"
AUDIT_REPORTS = "audit_reports"
AUDIT_ESCALATIONS = "audit_escalations"
AUDITOR_COMPENSATIONS = "auditor_compensations"
PROJECTS = "projects"
CONTRIBUTIONS = "contributions"
CONTRIBUTORS = "contributors"
ESCROW_RECORDS = "escrow_records"
INTEREST_CALCULATIONS = "interest_calculations"
INTEREST_BATCH_RESULTS = "interest_batch_results"
OPERATORS = "operators"
PLATFORM_STATS = "platform_stats"
SCHEDULED_EXECUTIONS = "scheduled_executions"
SUPPORT_TICKETS = "support_tickets"

GLOBAL_STATS_ID = "global"


def monthly_stats_id(year_month: str) -> str:
    """Stats document id for a ``YYYY-MM`` month."""
    return f"monthly_{year_month}"
