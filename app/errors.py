# app/errors.py
"""
Report lifecycle error taxonomy.

User-facing operations raise these synchronously. The reclamation job
never raises them for a single document: per-document failures are
counted in the run summary instead.
"""


class LifecycleError(Exception):
    """Base class for report lifecycle errors."""


class ReportNotFound(LifecycleError):
    def __init__(self, report_id):
        super().__init__(f"Report {report_id} not found")
        self.report_id = report_id


class InvalidTransition(LifecycleError):
    """Stage regression, skip, or a transition lost to a concurrent change. State is unchanged."""


class ReportDeleted(LifecycleError):
    """The report is soft-deleted and must be recovered before it can be edited."""

    def __init__(self, report_id):
        super().__init__(f"Report {report_id} is deleted")
        self.report_id = report_id


class RecoveryWindowExpired(LifecycleError):
    """Recovery attempted after the recovery window elapsed."""

    def __init__(self, report_id):
        super().__init__(f"Report {report_id} is no longer recoverable")
        self.report_id = report_id


class Forbidden(LifecycleError):
    """Caller lacks the capability required for the operation."""


class TransientWriteFailure(LifecycleError):
    """A single document write failed inside a batched write."""

    def __init__(self, report_id, cause: Exception | None = None):
        message = f"Write failed for report {report_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.report_id = report_id
        self.cause = cause
