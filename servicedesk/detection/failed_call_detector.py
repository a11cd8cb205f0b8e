"""
Rule-first failed-call detector.

A message is matched against the shared phrase table (appointment
no-shows first, then failed calls, then the legacy callback phrases).
Only a positive match triggers field extraction, so ordinary messages
never cost an AI call.

Usage:
    detector = FailedCallDetector(CustomerInfoExtractor(client))
    signal = await detector.detect("Tried calling, no answer. I'm Ravi", context)
    if signal.detected and not signal.missing_fields:
        request = detector.build_ticket_request(signal)
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional

from servicedesk.conversation.context import merge_extraction
from servicedesk.detection.extractor import CustomerInfoExtractor, fallback_extract
from servicedesk.detection.phrases import (
    DETECTOR_URGENCY_HIGH,
    DETECTOR_URGENCY_LOW,
    contains_any,
    first_match,
)
from servicedesk.errors import TicketValidationError
from servicedesk.prompts.responses import missing_info_request
from servicedesk.schemas.conversation import ConversationContext, CustomerInfo
from servicedesk.schemas.results import (
    ExtractionResult,
    FailedCallSignal,
    ResultSource,
    UrgencyLevel,
)
from servicedesk.schemas.ticket import TicketCreationRequest, TicketSource, Urgency
from servicedesk.tickets.catalog import infer_appliance, infer_service_type
from servicedesk.utils import validate_phone

logger = logging.getLogger(__name__)

# Validation thresholds for ticket creation
MIN_NAME_LENGTH = 2
MIN_LOCATION_LENGTH = 3
MIN_PROBLEM_LENGTH = 5

_SIGNAL_TO_TICKET_URGENCY = {
    UrgencyLevel.HIGH: Urgency.HIGH,
    UrgencyLevel.MEDIUM: Urgency.MEDIUM,
    UrgencyLevel.LOW: Urgency.LOW,
}


def classify_urgency(message: str) -> UrgencyLevel:
    """High and low keyword tiers are disjoint; anything else is medium."""
    if contains_any(message, DETECTOR_URGENCY_HIGH):
        return UrgencyLevel.HIGH
    if contains_any(message, DETECTOR_URGENCY_LOW):
        return UrgencyLevel.LOW
    return UrgencyLevel.MEDIUM


def identify_missing_fields(customer: CustomerInfo, problem: Optional[str]) -> list[str]:
    missing: list[str] = []
    if not customer.name:
        missing.append("name")
    if not customer.phone:
        missing.append("phone number")
    if not customer.location:
        missing.append("location")
    if not problem or len(problem.strip()) < MIN_PROBLEM_LENGTH:
        missing.append("problem description")
    return missing


class FailedCallDetector:
    """Detects failed contact attempts and gathers what a ticket needs."""

    def __init__(self, extractor: CustomerInfoExtractor) -> None:
        self._extractor = extractor

    async def detect(self, message: str, context: ConversationContext) -> FailedCallSignal:
        rule = first_match(message)
        if rule is None:
            return FailedCallSignal(detected=False)

        logger.info("Failed-call trigger matched: '%s' (%s)", rule.phrase, rule.category.value)
        context.pending_failed_call = rule.phrase
        context.inquiry_details.setdefault("failed_call_ref", f"FC-{uuid.uuid4().hex[:8].upper()}")
        return await self._build_signal(message, context, rule.phrase)

    async def continue_collection(self, message: str, context: ConversationContext) -> FailedCallSignal:
        """Extract from a follow-up message while a detected failed call awaits details."""
        if not context.pending_failed_call:
            return FailedCallSignal(detected=False)
        return await self._build_signal(message, context, context.pending_failed_call)

    @staticmethod
    def offers_details(message: str) -> bool:
        """Whether a message carries any ticket field, judged by the regex rules alone."""
        found = fallback_extract(message)
        return any((found.name, found.phone, found.location, found.problem))

    async def _build_signal(
        self, message: str, context: ConversationContext, trigger: str,
    ) -> FailedCallSignal:
        extraction = await self._extractor.extract(message)
        merge_extraction(context, extraction)

        problem = context.inquiry_details.get("problem")
        customer = replace(context.customer_info)
        rule = first_match(trigger)
        return FailedCallSignal(
            detected=True,
            trigger_phrase=trigger,
            category=rule.category.trigger_category if rule else None,
            customer_data=customer,
            missing_fields=identify_missing_fields(customer, problem),
            problem_description=problem,
            location=customer.location,
            urgency_level=self._urgency(message, extraction),
            reference=context.inquiry_details.get("failed_call_ref"),
        )

    @staticmethod
    def _urgency(message: str, extraction: ExtractionResult) -> UrgencyLevel:
        level = classify_urgency(message)
        if level is UrgencyLevel.MEDIUM and extraction.source is ResultSource.AI:
            if extraction.urgency in (Urgency.HIGH, Urgency.CRITICAL):
                return UrgencyLevel.HIGH
            if extraction.urgency is Urgency.LOW:
                return UrgencyLevel.LOW
        return level

    @staticmethod
    def generate_missing_info_request(missing_fields: list[str]) -> str:
        return missing_info_request(missing_fields)

    @staticmethod
    def build_ticket_request(signal: FailedCallSignal) -> TicketCreationRequest:
        """
        Turn a complete signal into a ticket creation request.

        Raises:
            TicketValidationError: A required field is missing or malformed.
        """
        customer = signal.customer_data
        name = (customer.name or "").strip()
        if len(name) < MIN_NAME_LENGTH:
            raise TicketValidationError(
                "name", "Customer name is required and must be at least 2 characters"
            )

        phone = validate_phone(customer.phone)
        if phone is None:
            raise TicketValidationError("phone", "Valid 10-digit phone number is required")

        location = (signal.location or customer.location or "").strip()
        if len(location) < MIN_LOCATION_LENGTH:
            raise TicketValidationError(
                "location", "Location is required and must be at least 3 characters"
            )

        problem = (signal.problem_description or "").strip()
        if len(problem) < MIN_PROBLEM_LENGTH:
            raise TicketValidationError(
                "problem", "Problem description is required and must be at least 5 characters"
            )

        urgency = _SIGNAL_TO_TICKET_URGENCY[signal.urgency_level]
        return TicketCreationRequest(
            customer_name=name,
            phone_number=phone,
            email=customer.email,
            location=location,
            service_type=infer_service_type(problem, urgency),
            appliance=infer_appliance(problem),
            problem_description=problem,
            urgency=urgency,
            source=TicketSource.CHAT,
            customer_notes=f"Reported via chat: {signal.trigger_phrase}" if signal.trigger_phrase else None,
            related_failed_call_id=signal.reference,
        )
