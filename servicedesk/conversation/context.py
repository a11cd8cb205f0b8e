"""
Conversation context maintenance for one chat session.

Keeps the recent message window, merges extracted customer fields,
advances the conversation stage and decides when to escalate.

Usage:
    tracker = ConversationTracker(ConversationContext(session_id="CHAT-1"))
    tracker.add_message(Sender.USER, "My AC is leaking")
    adopted = merge_extraction(tracker.context, extraction)
    tracker.update_stage()
"""

import logging
from typing import Optional

from servicedesk.config import settings
from servicedesk.detection.extractor import detect_appliance
from servicedesk.detection.phrases import (
    BRANDS,
    COMPLAINT_KEYWORDS,
    HUMAN_REQUEST_KEYWORDS,
    SERVICE_REQUEST_KEYWORDS,
    contains_any,
)
from servicedesk.schemas.conversation import (
    ChatMessage,
    ConversationContext,
    ConversationStage,
    Sender,
)
from servicedesk.schemas.results import ExtractionResult

logger = logging.getLogger(__name__)

# Escalate when a conversation runs past this many messages unresolved
MAX_UNRESOLVED_MESSAGES = 12

GENERAL_INTENT = "general"
SERVICE_REQUEST_INTENT = "service_request"
FAILED_CALL_INTENT = "failed_call"


def merge_extraction(
    context: ConversationContext,
    extraction: ExtractionResult,
    threshold: Optional[float] = None,
) -> list[str]:
    """
    Adopt extracted fields into the session's customer info.

    A field is adopted only if its confidence meets the threshold and
    the target is still empty: the first confident value wins for the
    rest of the session. The problem lands in ``inquiry_details``.

    Returns:
        Names of the fields that were adopted.
    """
    threshold = settings.detection.field_confidence_threshold if threshold is None else threshold
    info = context.customer_info
    adopted: list[str] = []

    for field_name in ("name", "phone", "location"):
        value = getattr(extraction, field_name)
        confidence = getattr(extraction.confidence, field_name)
        if value and confidence >= threshold and not getattr(info, field_name):
            setattr(info, field_name, value)
            adopted.append(field_name)

    if (
        extraction.problem
        and extraction.confidence.problem >= threshold
        and not context.inquiry_details.get("problem")
    ):
        context.inquiry_details["problem"] = extraction.problem
        adopted.append("problem")

    if adopted:
        logger.debug("Adopted fields from %s extraction: %s", extraction.source.value, adopted)
    return adopted


class ConversationTracker:
    """Owns and mutates the ConversationContext of a single session."""

    def __init__(self, context: Optional[ConversationContext] = None) -> None:
        self.context = context or ConversationContext()
        self._window = settings.detection.message_window

    def add_message(self, sender: Sender, text: str) -> ChatMessage:
        message = ChatMessage(sender=sender, text=text)
        self.context.messages.append(message)
        self.context.message_count += 1
        if len(self.context.messages) > self._window:
            self.context.messages = self.context.messages[-self._window:]
        return message

    def history(self) -> list[ChatMessage]:
        return list(self.context.messages)

    def last_user_message(self) -> Optional[ChatMessage]:
        for message in reversed(self.context.messages):
            if message.sender is Sender.USER:
                return message
        return None

    def recognize_intent(self, text: str) -> str:
        """Record a coarse intent plus appliance/brand/urgency hints from ``text``."""
        lowered = text.lower()
        details = self.context.inquiry_details

        appliance = detect_appliance(text)
        if appliance != "Appliance" and "appliance_type" not in details:
            details["appliance_type"] = appliance.lower()
        for brand in BRANDS:
            if brand in lowered and "brand" not in details:
                details["brand"] = brand
                break
        if contains_any(lowered, ("emergency", "urgent", "immediately", "asap")):
            details["urgency"] = "high"

        intent = SERVICE_REQUEST_INTENT if contains_any(lowered, SERVICE_REQUEST_KEYWORDS) else GENERAL_INTENT
        if intent != GENERAL_INTENT or not self.context.current_intent:
            self.context.current_intent = intent
        return intent

    def mark_failed_call(self) -> None:
        self.context.current_intent = FAILED_CALL_INTENT

    def mark_resolved(self, ticket_number: str) -> None:
        details = self.context.inquiry_details
        details["ticket_number"] = ticket_number
        # The problem and failed-call reference now belong to that ticket
        details.pop("problem", None)
        details.pop("failed_call_ref", None)
        self.context.stage = ConversationStage.RESOLUTION

    def _has_specific_details(self) -> bool:
        filled = [v for v in vars(self.context.customer_info).values() if v]
        return len(filled) >= 2 or len(self.context.inquiry_details) > 2

    def should_escalate(self) -> bool:
        if self.context.stage is ConversationStage.ESCALATION:
            return True
        last = self.last_user_message()
        if last and contains_any(last.text, COMPLAINT_KEYWORDS + HUMAN_REQUEST_KEYWORDS):
            return True
        return (
            self.context.message_count > MAX_UNRESOLVED_MESSAGES
            and self.context.stage is not ConversationStage.RESOLUTION
        )

    def update_stage(self) -> ConversationStage:
        """Advance greeting -> inquiry -> details -> resolution, or escalate."""
        ctx = self.context
        old = ctx.stage
        if ctx.stage is ConversationStage.GREETING:
            if ctx.current_intent and ctx.current_intent != GENERAL_INTENT:
                ctx.stage = ConversationStage.INQUIRY
        elif ctx.stage is ConversationStage.INQUIRY:
            if self._has_specific_details():
                ctx.stage = ConversationStage.DETAILS
        elif ctx.stage is ConversationStage.DETAILS:
            if ctx.inquiry_details.get("ticket_number"):
                ctx.stage = ConversationStage.RESOLUTION

        if self.should_escalate():
            ctx.stage = ConversationStage.ESCALATION

        if ctx.stage is not old:
            logger.debug("Conversation stage: %s -> %s", old.value, ctx.stage.value)
        return ctx.stage
