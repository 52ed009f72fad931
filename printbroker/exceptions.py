"""
Error taxonomy for the print broker.

Job-level failures (JobFailure subclasses) are data: the worker records them
on the job and keeps running. Only ConfigError is fatal.
"""


class PrintBrokerError(Exception):
    """Base class for all broker errors."""


class ConfigError(PrintBrokerError):
    """Required connection or target configuration is missing."""


class ClaimRace(PrintBrokerError):
    """Another worker claimed the job first."""

    def __init__(self, job_id):
        super().__init__(f"Job {job_id} was claimed by another worker")
        self.job_id = job_id


class JobFailure(PrintBrokerError):
    """A terminal failure for a single print job."""


class FetchFailure(JobFailure):
    """The job payload could not be downloaded."""


class ProvisionFailure(JobFailure):
    """Registering the missing print destination failed."""


class PrintFailure(JobFailure):
    """The spooler rejected the job."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
