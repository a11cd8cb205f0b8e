"""Shared test fixtures and helpers."""

import json
from typing import Any, Optional, Union

import pytest

from servicedesk.ai.client import DisabledTextClient
from servicedesk.errors import AIServiceError, TicketStoreError
from servicedesk.schemas.conversation import ConversationContext
from servicedesk.schemas.results import TaskAction, TaskDetails, TaskIntent
from servicedesk.schemas.ticket import (
    Appliance,
    ApplianceType,
    ServiceType,
    TicketCreationRequest,
    TicketSource,
    Urgency,
)
from servicedesk.tickets.job_queue import InMemoryJobQueue
from servicedesk.tickets.store import InMemoryTicketStore
from servicedesk.tickets.ticket_service import TicketService


class FakeTextClient:
    """Replays scripted replies in order and records every prompt.

    A reply that is an exception is raised instead of returned. Once the
    script runs out every call fails like an unreachable service.
    """

    def __init__(self, replies: Optional[list[Union[str, dict, Exception]]] = None) -> None:
        self.replies = list(replies or [])
        self.prompts: list[str] = []
        self.contexts: list[Optional[dict[str, Any]]] = []

    async def generate(self, prompt: str, context: Optional[dict[str, Any]] = None) -> str:
        self.prompts.append(prompt)
        self.contexts.append(context)
        if not self.replies:
            raise AIServiceError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FailingStore(InMemoryTicketStore):
    """Ticket store whose every read and write fails."""

    async def next_ticket_number(self, year=None):
        raise TicketStoreError("database unavailable")

    async def create(self, ticket):
        raise TicketStoreError("database unavailable")

    async def get(self, ticket_id):
        raise TicketStoreError("database unavailable")

    async def get_by_number(self, ticket_number):
        raise TicketStoreError("database unavailable")

    async def update(self, ticket, expected_version):
        raise TicketStoreError("database unavailable")

    async def list(self, filters=None):
        raise TicketStoreError("database unavailable")

    async def soft_delete(self, ticket_id, reason, expected_version):
        raise TicketStoreError("database unavailable")


@pytest.fixture
def store():
    return InMemoryTicketStore(prefix="CWS")


@pytest.fixture
def queue():
    return InMemoryJobQueue()


@pytest.fixture
def service(store, queue):
    return TicketService(store, queue)


@pytest.fixture
def offline_client():
    return DisabledTextClient()


@pytest.fixture
def context():
    return ConversationContext(session_id="CHAT-test")


def make_request(
    customer_name: str = "Gautham",
    phone_number: str = "9544654402",
    location: Optional[str] = "Thiruvalla",
    problem_description: str = "AC not cooling properly",
    service_type: ServiceType = ServiceType.AC_REPAIR,
    urgency: Urgency = Urgency.MEDIUM,
    appliance: Optional[Appliance] = None,
    **kwargs,
) -> TicketCreationRequest:
    """Helper to create a TicketCreationRequest with sensible defaults."""
    return TicketCreationRequest(
        customer_name=customer_name,
        phone_number=phone_number,
        location=location,
        problem_description=problem_description,
        service_type=service_type,
        urgency=urgency,
        appliance=appliance or Appliance(type=ApplianceType.AC),
        source=kwargs.pop("source", TicketSource.CHAT),
        **kwargs,
    )


def make_intent(
    action: Optional[TaskAction],
    confidence: int = 80,
    **details,
) -> TaskIntent:
    """Helper to create a TaskIntent with the given task details."""
    return TaskIntent(action=action, confidence=confidence, details=TaskDetails(**details))
