from servicedesk.tickets.assignment import TechnicianRoster
from servicedesk.tickets.job_queue import (
    FileJobQueue,
    InMemoryJobQueue,
    JobKind,
    JobStatus,
    PostgresJobQueue,
    ScheduledJob,
)
from servicedesk.tickets.store import InMemoryTicketStore, TicketStore
from servicedesk.tickets.ticket_service import TicketService, run_job_worker

__all__ = [
    "TicketService", "run_job_worker",
    "TicketStore", "InMemoryTicketStore",
    "ScheduledJob", "JobKind", "JobStatus",
    "InMemoryJobQueue", "FileJobQueue", "PostgresJobQueue",
    "TechnicianRoster",
]
