"""Bootstrap gate, scheduler and periodic jobs."""

from scrubjay.jobs.bootstrap import DEFAULT_BOOTSTRAP_TIMEOUT, BootstrapReconciler
from scrubjay.jobs.jobs import DispatchJob, IngestJob, Job, PruneJob
from scrubjay.jobs.scheduler import JobScheduler, ScheduleInfo

__all__ = [
    "DEFAULT_BOOTSTRAP_TIMEOUT",
    "BootstrapReconciler",
    "DispatchJob",
    "IngestJob",
    "Job",
    "JobScheduler",
    "PruneJob",
    "ScheduleInfo",
]
