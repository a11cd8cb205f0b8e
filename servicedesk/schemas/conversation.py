"""Customer details and per-session conversation state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ConversationStage(str, Enum):
    GREETING = "greeting"
    INQUIRY = "inquiry"
    DETAILS = "details"
    RESOLUTION = "resolution"
    ESCALATION = "escalation"


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass
class CustomerInfo:
    """Customer details gathered progressively over a conversation."""
    name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    email: Optional[str] = None

    def missing(self) -> list[str]:
        return [f for f in ("name", "phone", "location") if not getattr(self, f)]


@dataclass
class ChatMessage:
    sender: Sender
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ConversationContext:
    """
    Per-session aggregate owned exclusively by one chat session.

    Created at session start, mutated by every detector and analyzer
    call, discarded when the session ends. ``messages`` holds only the
    recent window; ``message_count`` counts every message seen.
    """
    session_id: str = ""
    customer_info: CustomerInfo = field(default_factory=CustomerInfo)
    inquiry_details: dict[str, str] = field(default_factory=dict)
    stage: ConversationStage = ConversationStage.GREETING
    messages: list[ChatMessage] = field(default_factory=list)
    message_count: int = 0
    current_intent: Optional[str] = None
    # Set while a detected failed call is still waiting for customer fields
    pending_failed_call: Optional[str] = None
