"""
Service ticket lifecycle.

Creates tickets with derived priority and response time, applies
updates through the status state machine, appends to the communication
log and runs the delayed side effects (auto-assignment, customer
notification, follow-up) from the durable job queue.

Every read-modify-write goes through a version check on the store and
is retried a bounded number of times when another writer wins.

Usage:
    service = TicketService(InMemoryTicketStore(), InMemoryJobQueue())
    ticket = await service.create_ticket(request)
    await service.process_due_jobs()
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from servicedesk.config import TicketConfig, settings
from servicedesk.detection.phrases import PARTS_KEYWORDS, contains_any
from servicedesk.errors import ConcurrentUpdateError, TicketNotFoundError
from servicedesk.schemas.ticket import (
    CommunicationEntry,
    CommunicationType,
    DeliveryStatus,
    Direction,
    Priority,
    ServiceTicket,
    ServiceType,
    TicketCreationRequest,
    TicketFilters,
    TicketStats,
    TicketStatus,
    TicketUpdate,
    Urgency,
)
from servicedesk.tickets.assignment import TechnicianRoster
from servicedesk.tickets.job_queue import JobKind, JobQueue, ScheduledJob
from servicedesk.tickets.state_machine import is_terminal, validate_transition
from servicedesk.tickets.store import TicketStore
from servicedesk.utils import utcnow, validate_phone

logger = logging.getLogger(__name__)

EMERGENCY_RESPONSE_TIME = "Within 2 hours"

RESPONSE_TIMES: dict[Priority, str] = {
    Priority.CRITICAL: "Within 4 hours",
    Priority.HIGH: "Within 24 hours",
    Priority.MEDIUM: "Within 48 hours",
    Priority.LOW: "Within 3-5 business days",
}

# Changes to these fields get an automatic log entry
AUDITED_FIELDS = ("status", "priority", "assigned_technician")

FOLLOW_UP_NOTE = "Automatic follow-up: Ticket requires attention"
NOTIFICATION_NOTE = "Customer notification sent"


# --- Derived fields ---


def calculate_priority(urgency: Urgency, service_type: ServiceType) -> Priority:
    if service_type is ServiceType.EMERGENCY:
        return Priority.CRITICAL
    if urgency is Urgency.CRITICAL:
        return Priority.CRITICAL
    if urgency is Urgency.HIGH:
        return Priority.HIGH
    if urgency is Urgency.MEDIUM:
        return Priority.MEDIUM if service_type is ServiceType.AC_REPAIR else Priority.LOW
    return Priority.LOW


def calculate_response_time(priority: Priority, service_type: ServiceType) -> str:
    if service_type is ServiceType.EMERGENCY:
        return EMERGENCY_RESPONSE_TIME
    return RESPONSE_TIMES[priority]


def is_emergency(priority: Priority, service_type: ServiceType) -> bool:
    return priority is Priority.CRITICAL or service_type is ServiceType.EMERGENCY


def requires_parts(problem_description: str) -> bool:
    """Advisory guess that the repair will need parts ordered."""
    return contains_any(problem_description, PARTS_KEYWORDS)


def parse_availability(preferred_date: Optional[str], preferred_time: Optional[str]) -> list[str]:
    if preferred_date and preferred_time:
        return [f"{preferred_date} {preferred_time}"]
    if preferred_date:
        return [f"{preferred_date} (Any time)"]
    return ["Flexible scheduling"]


def generate_tags(request: TicketCreationRequest) -> list[str]:
    tags = [request.service_type.value.replace("_", "-"), request.appliance.type.value]
    if request.appliance.brand:
        tags.append(request.appliance.brand.lower())
    if request.location:
        tags.append(request.location.strip().lower())
    tags.append(f"source-{request.source.value}")
    if request.urgency is not Urgency.MEDIUM:
        tags.append(f"urgency-{request.urgency.value}")
    if request.related_failed_call_id:
        tags.append("failed-call")
    return list(dict.fromkeys(tags))


def _derived_fields(urgency: Urgency, service_type: ServiceType) -> dict:
    priority = calculate_priority(urgency, service_type)
    return {
        "priority": priority,
        "estimated_response_time": calculate_response_time(priority, service_type),
        "is_emergency": is_emergency(priority, service_type),
    }


def _entry(
    content: str,
    type: CommunicationType = CommunicationType.INTERNAL_NOTE,
    direction: Direction = Direction.INTERNAL,
    author: str = "system",
    status: Optional[DeliveryStatus] = None,
) -> CommunicationEntry:
    return CommunicationEntry(type=type, direction=direction, content=content, author=author, status=status)


class TicketService:
    """Owns ticket creation, mutation, queries and scheduled side effects."""

    def __init__(
        self,
        store: TicketStore,
        queue: JobQueue,
        config: Optional[TicketConfig] = None,
        roster: Optional[TechnicianRoster] = None,
    ) -> None:
        self._store = store
        self._queue = queue
        self._config = config or settings.tickets
        self._roster = roster or TechnicianRoster()
        self._handlers: dict[JobKind, Callable[[str], Awaitable[None]]] = {
            JobKind.AUTO_ASSIGN: self._auto_assign,
            JobKind.NOTIFY: self._notify_customer,
            JobKind.FOLLOW_UP: self._follow_up,
        }

    # --- Creation ---

    async def create_ticket(self, request: TicketCreationRequest) -> ServiceTicket:
        """
        Open a ticket and schedule its side effects.

        Raises:
            TicketValidationError: The store rejected a required field.
            TicketStoreError: The store is unavailable.
        """
        now = utcnow()
        number = await self._store.next_ticket_number(now.year)
        ticket = ServiceTicket(
            ticket_number=number,
            customer_name=request.customer_name.strip(),
            phone_number=validate_phone(request.phone_number) or request.phone_number,
            email=request.email,
            location=(request.location or "").strip(),
            service_type=request.service_type,
            appliance=request.appliance,
            problem_description=request.problem_description.strip(),
            urgency=request.urgency,
            preferred_date=request.preferred_date,
            preferred_time=request.preferred_time,
            availability=parse_availability(request.preferred_date, request.preferred_time),
            source=request.source,
            customer_notes=request.customer_notes,
            communication_log=[_entry(f"Ticket created from {request.source.value}")],
            created_at=now,
            updated_at=now,
            related_failed_call_id=request.related_failed_call_id,
            requires_part_ordering=requires_parts(request.problem_description),
            tags=generate_tags(request),
            **_derived_fields(request.urgency, request.service_type),
        )
        created = await self._store.create(ticket)
        logger.info(
            "Ticket %s created (priority=%s, service=%s)",
            created.ticket_number, created.priority.value, created.service_type.value,
        )
        await self._schedule_side_effects(created, now)
        return created

    async def _schedule_side_effects(self, ticket: ServiceTicket, now: datetime) -> None:
        follow_up = timedelta(minutes=self._config.follow_up_minutes(ticket.priority.value))
        jobs = [
            ScheduledJob(kind=JobKind.AUTO_ASSIGN, ticket_id=ticket.id,
                         run_at=now + timedelta(seconds=self._config.auto_assign_delay_sec)),
            ScheduledJob(kind=JobKind.NOTIFY, ticket_id=ticket.id,
                         run_at=now + timedelta(seconds=self._config.notification_delay_sec)),
            ScheduledJob(kind=JobKind.FOLLOW_UP, ticket_id=ticket.id, run_at=now + follow_up),
        ]
        for job in jobs:
            try:
                await self._queue.enqueue(job)
            except Exception:
                # The ticket exists; a lost side effect must not undo it
                logger.exception("Could not queue %s job for %s", job.kind.value, ticket.ticket_number)

    # --- Queries ---

    async def get_ticket(self, ticket_id: str) -> Optional[ServiceTicket]:
        return await self._store.get(ticket_id)

    async def find_by_number(self, ticket_number: str) -> Optional[ServiceTicket]:
        return await self._store.get_by_number(ticket_number)

    async def get_tickets(self, filters: Optional[TicketFilters] = None) -> list[ServiceTicket]:
        """Tickets matching ``filters``, newest first."""
        return await self._store.list(filters)

    async def get_stats(self) -> TicketStats:
        tickets = await self._store.list()
        total = len(tickets)
        by_status = Counter(t.status.value for t in tickets)
        completed = by_status.get(TicketStatus.COMPLETED.value, 0)
        return TicketStats(
            total=total,
            by_status=dict(by_status),
            by_priority=dict(Counter(t.priority.value for t in tickets)),
            by_service_type=dict(Counter(t.service_type.value for t in tickets)),
            completion_rate=round(completed / total * 100, 1) if total else 0.0,
        )

    # --- Mutation ---

    async def _retry_on_conflict(
        self,
        ticket_id: str,
        write_once: Callable[[], Awaitable[ServiceTicket]],
    ) -> ServiceTicket:
        """
        Run ``write_once`` until it stops losing version races.

        Raises:
            ConcurrentUpdateError: Lost the race on every attempt.
        """
        attempts = self._config.max_update_retries
        attempt = 0
        while True:
            attempt += 1
            try:
                return await write_once()
            except ConcurrentUpdateError:
                if attempt >= attempts:
                    raise
                logger.debug("Version conflict on %s, retry %d/%d", ticket_id, attempt, attempts)

    async def _read(self, ticket_id: str) -> ServiceTicket:
        current = await self._store.get(ticket_id)
        if current is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return current

    async def _mutate(
        self,
        ticket_id: str,
        change: Callable[[ServiceTicket], Optional[ServiceTicket]],
    ) -> ServiceTicket:
        """
        Read, apply ``change`` and write back with a version check.

        ``change`` returns the new ticket, or None when nothing changes.
        It may run more than once, so it must not have side effects.

        Raises:
            TicketNotFoundError: No such ticket.
            ConcurrentUpdateError: Lost the race on every attempt.
        """

        async def write_once() -> ServiceTicket:
            current = await self._read(ticket_id)
            updated = change(current)
            if updated is None:
                return current
            updated = updated.model_copy(update={"updated_at": utcnow()})
            return await self._store.update(updated, expected_version=current.version)

        return await self._retry_on_conflict(ticket_id, write_once)

    async def update_ticket(
        self,
        ticket_id: str,
        update: TicketUpdate,
        author: str = "system",
        note: Optional[str] = None,
    ) -> ServiceTicket:
        """
        Apply the explicitly set fields of ``update``.

        Changing urgency or service type recomputes priority, response
        time and the emergency flag together.

        Raises:
            InvalidStatusTransitionError: The status change is not allowed.
            TicketNotFoundError: No such ticket.
        """
        changes = update.model_dump(exclude_unset=True)

        def apply(ticket: ServiceTicket) -> Optional[ServiceTicket]:
            fields = {k: v for k, v in changes.items() if getattr(ticket, k) != v}
            new_status = fields.get("status")
            if new_status is not None:
                validate_transition(ticket.status, new_status)
                if new_status is TicketStatus.COMPLETED:
                    fields["completed_at"] = utcnow()
            if "urgency" in fields or "service_type" in fields:
                derived = _derived_fields(
                    fields.get("urgency", ticket.urgency),
                    fields.get("service_type", ticket.service_type),
                )
                fields.update({k: v for k, v in derived.items() if getattr(ticket, k) != v})
            if "problem_description" in fields:
                fields["requires_part_ordering"] = requires_parts(fields["problem_description"])
            if "preferred_date" in fields or "preferred_time" in fields:
                fields["availability"] = parse_availability(
                    fields.get("preferred_date", ticket.preferred_date),
                    fields.get("preferred_time", ticket.preferred_time),
                )
            if not fields and not note:
                return None

            log = list(ticket.communication_log)
            audited = [k for k in AUDITED_FIELDS if k in fields]
            if audited:
                log.append(_entry(f"Ticket updated: {', '.join(audited)}", author=author))
            if note:
                log.append(_entry(note, author=author))
            fields["communication_log"] = log
            return ticket.model_copy(update=fields)

        updated = await self._mutate(ticket_id, apply)
        logger.info("Ticket %s updated: %s", updated.ticket_number, sorted(changes))
        if is_terminal(updated.status):
            await self._queue.cancel_for_ticket(updated.id)
        return updated

    async def add_communication(
        self,
        ticket_id: str,
        content: str,
        type: CommunicationType = CommunicationType.INTERNAL_NOTE,
        direction: Direction = Direction.INTERNAL,
        author: str = "system",
        status: Optional[DeliveryStatus] = None,
    ) -> ServiceTicket:
        """Append one entry to the communication log. Earlier entries are never touched."""
        entry = _entry(content, type=type, direction=direction, author=author, status=status)

        def append(ticket: ServiceTicket) -> ServiceTicket:
            return ticket.model_copy(update={"communication_log": [*ticket.communication_log, entry]})

        return await self._mutate(ticket_id, append)

    async def cancel_ticket(self, ticket_id: str, reason: str, author: str = "customer") -> ServiceTicket:
        """
        Soft-cancel a ticket and drop its pending side effects.

        The transition is checked against the exact version being
        overwritten, so a ticket completed meanwhile stays completed.

        Raises:
            InvalidStatusTransitionError: The ticket is already closed.
            TicketNotFoundError: No such ticket.
            ConcurrentUpdateError: Lost the race on every attempt.
        """

        async def cancel_once() -> ServiceTicket:
            current = await self._read(ticket_id)
            validate_transition(current.status, TicketStatus.CANCELLED)
            return await self._store.soft_delete(ticket_id, reason, expected_version=current.version)

        await self._retry_on_conflict(ticket_id, cancel_once)
        cancelled = await self.add_communication(ticket_id, f"Ticket cancelled: {reason}", author=author)
        dropped = await self._queue.cancel_for_ticket(ticket_id)
        logger.info("Ticket %s cancelled, %d pending job(s) dropped", cancelled.ticket_number, dropped)
        return cancelled

    # --- Scheduled side effects ---

    async def process_due_jobs(self, now: Optional[datetime] = None) -> int:
        """
        Run every job due at ``now``. Failed jobs are retried with a linear
        back-off until the attempt limit, then marked failed.

        Returns:
            Number of jobs that completed.
        """
        now = now or utcnow()
        done = 0
        for job in await self._queue.claim_due(now):
            try:
                await self._handlers[job.kind](job.ticket_id)
            except TicketNotFoundError:
                logger.warning("Job %s dropped: ticket %s no longer exists", job.id, job.ticket_id)
                await self._queue.fail(job.id, "ticket not found")
                continue
            except Exception as e:
                logger.exception("Job %s (%s) failed on attempt %d", job.id, job.kind.value, job.attempts)
                if job.attempts < self._config.max_job_attempts:
                    retry_at = now + timedelta(seconds=self._config.job_retry_backoff_sec * job.attempts)
                    await self._queue.fail(job.id, str(e), retry_at=retry_at)
                else:
                    await self._queue.fail(job.id, str(e))
                continue
            await self._queue.complete(job.id)
            done += 1
        return done

    async def _auto_assign(self, ticket_id: str) -> None:
        def assign(ticket: ServiceTicket) -> Optional[ServiceTicket]:
            if ticket.status is not TicketStatus.NEW or ticket.assigned_technician:
                return None
            technician = self._roster.next_technician(ticket.location)
            return ticket.model_copy(update={
                "assigned_technician": technician,
                "status": TicketStatus.ACKNOWLEDGED,
                "communication_log": [
                    *ticket.communication_log, _entry(f"Auto-assigned to {technician}"),
                ],
            })

        ticket = await self._mutate(ticket_id, assign)
        logger.info("Ticket %s assigned to %s", ticket.ticket_number, ticket.assigned_technician)

    async def _notify_customer(self, ticket_id: str) -> None:
        ticket = await self.add_communication(
            ticket_id,
            NOTIFICATION_NOTE,
            type=CommunicationType.SMS,
            direction=Direction.OUTBOUND,
            status=DeliveryStatus.SENT,
        )
        logger.debug("Notification logged for %s", ticket.ticket_number)

    async def _follow_up(self, ticket_id: str) -> None:
        def flag(ticket: ServiceTicket) -> Optional[ServiceTicket]:
            if is_terminal(ticket.status):
                return None
            return ticket.model_copy(update={
                "follow_up_required": True,
                "communication_log": [*ticket.communication_log, _entry(FOLLOW_UP_NOTE)],
            })

        ticket = await self._mutate(ticket_id, flag)
        logger.info("Follow-up check ran for %s (status=%s)", ticket.ticket_number, ticket.status.value)


async def run_job_worker(
    service: TicketService,
    stop_event: asyncio.Event,
    interval: float = 1.0,
) -> None:
    """Poll for due jobs until ``stop_event`` is set."""
    logger.info("Job worker started (interval=%.1fs)", interval)
    while not stop_event.is_set():
        try:
            await service.process_due_jobs()
        except Exception:
            logger.exception("Job worker pass failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
    logger.info("Job worker stopped")
