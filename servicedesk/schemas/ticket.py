"""Service ticket data models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ServiceType(str, Enum):
    AC_REPAIR = "ac_repair"
    REFRIGERATOR_REPAIR = "refrigerator_repair"
    INSTALLATION = "installation"
    MAINTENANCE = "maintenance"
    EMERGENCY = "emergency"
    CONSULTATION = "consultation"


class ApplianceType(str, Enum):
    AC = "ac"
    REFRIGERATOR = "refrigerator"
    OTHER = "other"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketStatus(str, Enum):
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class TicketSource(str, Enum):
    CHAT = "chat"
    PHONE = "phone"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    WEBSITE = "website"
    WALK_IN = "walk_in"


class CommunicationType(str, Enum):
    CALL = "call"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    CHAT = "chat"
    INTERNAL_NOTE = "internal_note"


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    INTERNAL = "internal"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class Appliance(BaseModel):
    """The appliance a ticket is about."""
    type: ApplianceType = ApplianceType.OTHER
    brand: Optional[str] = None
    model: Optional[str] = None
    age: Optional[str] = None


class CommunicationEntry(BaseModel):
    """Immutable entry in a ticket's communication log."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_now)
    type: CommunicationType = CommunicationType.INTERNAL_NOTE
    direction: Direction = Direction.INTERNAL
    content: str
    author: str = "system"
    status: Optional[DeliveryStatus] = None


class ServiceTicket(BaseModel):
    """
    Durable customer service request.

    ``priority``, ``estimated_response_time`` and ``is_emergency`` are derived
    from ``(urgency, service_type)`` and only change through an update that
    recomputes all three. ``version`` increases on every stored write.
    """
    id: str = Field(default_factory=_new_id)
    ticket_number: str

    customer_name: str
    phone_number: str
    email: Optional[str] = None
    location: str = ""

    service_type: ServiceType
    appliance: Appliance = Field(default_factory=Appliance)
    problem_description: str
    urgency: Urgency = Urgency.MEDIUM

    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    availability: list[str] = Field(default_factory=list)

    status: TicketStatus = TicketStatus.NEW
    priority: Priority

    assigned_technician: Optional[str] = None
    technician_notes: Optional[str] = None

    source: TicketSource = TicketSource.CHAT
    customer_notes: Optional[str] = None
    communication_log: list[CommunicationEntry] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    related_failed_call_id: Optional[str] = None
    follow_up_required: bool = True

    is_emergency: bool = False
    requires_part_ordering: bool = False
    estimated_response_time: str

    tags: list[str] = Field(default_factory=list)
    cancellation_reason: Optional[str] = None
    version: int = 1


class TicketCreationRequest(BaseModel):
    """Fields required to open a ticket."""
    customer_name: str
    phone_number: str
    email: Optional[str] = None
    location: Optional[str] = None
    service_type: ServiceType = ServiceType.AC_REPAIR
    appliance: Appliance = Field(default_factory=Appliance)
    problem_description: str
    urgency: Urgency = Urgency.MEDIUM
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    source: TicketSource = TicketSource.CHAT
    customer_notes: Optional[str] = None
    related_failed_call_id: Optional[str] = None


class TicketUpdate(BaseModel):
    """Partial update; only fields explicitly set are applied."""
    status: Optional[TicketStatus] = None
    urgency: Optional[Urgency] = None
    service_type: Optional[ServiceType] = None
    problem_description: Optional[str] = None
    assigned_technician: Optional[str] = None
    technician_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    scheduled_at: Optional[datetime] = None


class TicketFilters(BaseModel):
    """Query filters for listing tickets. Unset fields do not filter."""
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    service_type: Optional[ServiceType] = None
    assigned_technician: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    ticket_number: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    limit: Optional[int] = Field(default=None, ge=1)


class TicketStats(BaseModel):
    """Aggregate counts across all tickets."""
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_service_type: dict[str, int] = Field(default_factory=dict)
    completion_rate: float = 0.0
