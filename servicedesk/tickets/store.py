"""
Ticket persistence.

``TicketStore`` is the narrow CRUD surface the service depends on. The
in-memory implementation backs the demo and tests; a database-backed
store only needs to honour the same contract, including the version
check on ``update``.

Tickets are copied on the way in and out, so callers never share an
instance with the store and a stale copy cannot leak into it.
"""

import asyncio
import logging
from typing import Optional, Protocol

from servicedesk.config import settings
from servicedesk.errors import (
    ConcurrentUpdateError,
    TicketNotFoundError,
    TicketStoreError,
    TicketValidationError,
)
from servicedesk.schemas.ticket import ServiceTicket, TicketFilters, TicketStatus
from servicedesk.utils import utcnow, validate_phone

logger = logging.getLogger(__name__)


class TicketStore(Protocol):
    """CRUD surface over service tickets."""

    async def next_ticket_number(self, year: Optional[int] = None) -> str: ...

    async def create(self, ticket: ServiceTicket) -> ServiceTicket: ...

    async def get(self, ticket_id: str) -> Optional[ServiceTicket]: ...

    async def get_by_number(self, ticket_number: str) -> Optional[ServiceTicket]: ...

    async def update(self, ticket: ServiceTicket, expected_version: int) -> ServiceTicket: ...

    async def list(self, filters: Optional[TicketFilters] = None) -> list[ServiceTicket]: ...

    async def soft_delete(self, ticket_id: str, reason: str, expected_version: int) -> ServiceTicket: ...


def validate_new_ticket(ticket: ServiceTicket) -> None:
    """
    Reject tickets that lack the fields every record must carry.

    Raises:
        TicketValidationError: Naming the first offending field.
    """
    if not ticket.customer_name.strip():
        raise TicketValidationError("name", "Customer name is required")
    if validate_phone(ticket.phone_number) is None:
        raise TicketValidationError("phone", "Valid 10-digit phone number is required")
    if not ticket.problem_description.strip():
        raise TicketValidationError("problem", "Problem description is required")


def matches(ticket: ServiceTicket, filters: TicketFilters) -> bool:
    if filters.status is not None and ticket.status != filters.status:
        return False
    if filters.priority is not None and ticket.priority != filters.priority:
        return False
    if filters.service_type is not None and ticket.service_type != filters.service_type:
        return False
    if filters.assigned_technician is not None and ticket.assigned_technician != filters.assigned_technician:
        return False
    if filters.customer_phone is not None:
        if validate_phone(ticket.phone_number) != validate_phone(filters.customer_phone):
            return False
    if filters.customer_name is not None:
        if filters.customer_name.strip().lower() not in ticket.customer_name.lower():
            return False
    if filters.ticket_number is not None and ticket.ticket_number.upper() != filters.ticket_number.upper():
        return False
    if filters.created_from is not None and ticket.created_at < filters.created_from:
        return False
    if filters.created_to is not None and ticket.created_at > filters.created_to:
        return False
    return True


class InMemoryTicketStore:
    """Process-local ticket store with a per-year number sequence."""

    def __init__(self, prefix: Optional[str] = None) -> None:
        self._prefix = prefix or settings.tickets.number_prefix
        self._tickets: dict[str, ServiceTicket] = {}
        self._sequences: dict[int, int] = {}
        self._lock = asyncio.Lock()

    async def next_ticket_number(self, year: Optional[int] = None) -> str:
        year = year or utcnow().year
        async with self._lock:
            self._sequences[year] = self._sequences.get(year, 0) + 1
            seq = self._sequences[year]
        return f"{self._prefix}-{year}-{seq:04d}"

    async def create(self, ticket: ServiceTicket) -> ServiceTicket:
        validate_new_ticket(ticket)
        async with self._lock:
            if ticket.id in self._tickets:
                raise TicketStoreError(f"Ticket {ticket.id} already exists")
            stored = ticket.model_copy(deep=True)
            self._tickets[stored.id] = stored
        logger.debug("Stored ticket %s", stored.ticket_number)
        return stored.model_copy(deep=True)

    async def get(self, ticket_id: str) -> Optional[ServiceTicket]:
        ticket = self._tickets.get(ticket_id)
        return ticket.model_copy(deep=True) if ticket else None

    async def get_by_number(self, ticket_number: str) -> Optional[ServiceTicket]:
        wanted = ticket_number.upper()
        for ticket in self._tickets.values():
            if ticket.ticket_number.upper() == wanted:
                return ticket.model_copy(deep=True)
        return None

    async def update(self, ticket: ServiceTicket, expected_version: int) -> ServiceTicket:
        """
        Replace a ticket if nobody else wrote it since ``expected_version``.

        Raises:
            TicketNotFoundError: The ticket does not exist.
            ConcurrentUpdateError: The stored version moved on.
        """
        async with self._lock:
            current = self._tickets.get(ticket.id)
            if current is None:
                raise TicketNotFoundError(f"Ticket {ticket.id} not found")
            if current.version != expected_version:
                raise ConcurrentUpdateError(ticket.id, expected_version, current.version)
            stored = ticket.model_copy(deep=True, update={"version": expected_version + 1})
            self._tickets[ticket.id] = stored
        return stored.model_copy(deep=True)

    async def list(self, filters: Optional[TicketFilters] = None) -> list[ServiceTicket]:
        filters = filters or TicketFilters()
        # Insertion order breaks ties between tickets created in the same instant
        ordered = list(enumerate(self._tickets.values()))
        ordered.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        found = [t for _, t in ordered if matches(t, filters)]
        if filters.limit is not None:
            found = found[:filters.limit]
        return [t.model_copy(deep=True) for t in found]

    async def soft_delete(self, ticket_id: str, reason: str, expected_version: int) -> ServiceTicket:
        """
        Mark a ticket cancelled. Records are never removed.

        Raises:
            TicketNotFoundError: The ticket does not exist.
            ConcurrentUpdateError: The stored version moved on.
        """
        async with self._lock:
            current = self._tickets.get(ticket_id)
            if current is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")
            if current.version != expected_version:
                raise ConcurrentUpdateError(ticket_id, expected_version, current.version)
            now = utcnow()
            stored = current.model_copy(deep=True, update={
                "status": TicketStatus.CANCELLED,
                "cancellation_reason": reason,
                "updated_at": now,
                "version": current.version + 1,
            })
            self._tickets[ticket_id] = stored
        logger.info("Ticket %s soft-deleted: %s", stored.ticket_number, reason)
        return stored.model_copy(deep=True)

