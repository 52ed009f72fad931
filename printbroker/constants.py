"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Print job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (claimed by a worker)
    - PROCESSING -> COMPLETED (spooler accepted the job)
    - PROCESSING -> FAILED (fetch, provisioning or spooler error)

    No transition re-enters PENDING.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses a worker may report once it holds a claim
TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Default values
DEFAULT_PRINTER_PROTOCOL = "ipp"
DEFAULT_CLEANUP_MAX_AGE_DAYS = 7
PRINTER_DRIVER_ENV_PREFIX = "PRINTER_DRIVER_"

# API constants
API_V1_PREFIX = "/v1"
API_KEY_HEADER = "x-api-key"

# Metrics names
METRIC_JOBS_SUBMITTED = "print_jobs_submitted_total"
METRIC_JOBS_FINISHED = "print_jobs_finished_total"
METRIC_PRINT_DURATION = "print_job_duration_seconds"
METRIC_CLAIMS = "print_job_claims_total"
METRIC_PROVISIONS = "printer_provisions_total"
METRIC_CLEANUP_DELETED = "cleanup_deleted_total"

# Trace span names
SPAN_CLAIM_JOB = "claim_job"
SPAN_EXECUTE_JOB = "execute_print_job"
SPAN_PROVISION_PRINTER = "provision_printer"
