"""
AI-assisted message analysis with a keyword fallback.

``analyze`` and ``detect_task_intent`` ask the AI text service for a
JSON verdict. Any failure (call error, timeout, missing or unusable
JSON) drops to keyword heuristics that always return a complete result.
"""

import logging
import re
from typing import Optional

from servicedesk.ai.client import TextGenerationClient
from servicedesk.ai.json_extraction import parse_payload
from servicedesk.config import settings
from servicedesk.detection.phrases import (
    ANALYZER_URGENCY_TIERS,
    FAILED_CALL_RULES,
    TASK_ACTION_KEYWORDS,
    TASK_PATTERNS,
    RuleCategory,
    contains_any,
    first_match,
)
from servicedesk.errors import AIResponseError, AIServiceError
from servicedesk.notifications import call_now, call_support, contact_options, whatsapp
from servicedesk.prompts.analysis_prompts import build_analysis_prompt, build_task_intent_prompt
from servicedesk.prompts.responses import failed_call_reply, strategy_reply, task_management_reply
from servicedesk.schemas.ai_payloads import AnalysisPayload, TaskIntentPayload
from servicedesk.schemas.conversation import ChatMessage, ConversationContext
from servicedesk.schemas.results import (
    AnalysisResult,
    ContextualResponse,
    QuickReply,
    ResponseStrategy,
    ResultSource,
    TaskAction,
    TaskDetails,
    TaskIntent,
    TaskType,
)
from servicedesk.schemas.ticket import Urgency
from servicedesk.utils import validate_phone

logger = logging.getLogger(__name__)

ALL_CATEGORIES = frozenset(RuleCategory)

_NAME_HINT = re.compile(r"\b(?:my name is|name is|i am|i'm)\s+([A-Za-z]+)", re.IGNORECASE)
_PHONE_HINT = re.compile(r"(?<!\d)((?:\+?91[\s-]?)?[6-9]\d{9})(?!\d)")


def fallback_analysis(message: str) -> AnalysisResult:
    """Keyword heuristic used whenever the AI path fails. Never raises."""
    is_failed_call = first_match(message, FAILED_CALL_RULES, ALL_CATEGORIES) is not None
    needs_task = contains_any(message, TASK_PATTERNS)

    urgency = Urgency.MEDIUM
    for level, keywords in ANALYZER_URGENCY_TIERS:
        if contains_any(message, keywords):
            urgency = Urgency(level)
            break

    return AnalysisResult(
        is_failed_call_scenario=is_failed_call,
        failed_call_confidence=70 if is_failed_call else 10,
        failed_call_reason="Pattern-based detection" if is_failed_call else "No patterns detected",
        needs_task_management=needs_task,
        task_type=TaskType.CREATE if needs_task else None,
        task_confidence=60 if needs_task else 10,
        primary_intent="failed_call_callback" if is_failed_call else "general_inquiry",
        urgency_level=urgency,
        customer_frustration=6 if is_failed_call else 2,
        service_expectation="Quick response and resolution",
        implicit_needs=["callback", "communication"] if is_failed_call else [],
        suggested_action="Initiate callback process" if is_failed_call else "Provide general assistance",
        response_strategy=ResponseStrategy.EMPATHETIC if is_failed_call else ResponseStrategy.SOLUTION_FOCUSED,
        source=ResultSource.FALLBACK,
    )


def fallback_task_intent(message: str) -> TaskIntent:
    """Keyword guess at the ticket operation; action stays None when nothing fits."""
    lowered = message.lower()
    details = TaskDetails()
    name = _NAME_HINT.search(message)
    if name:
        details.customer_name = name.group(1)
    phone = _PHONE_HINT.search(message)
    if phone:
        details.phone_number = validate_phone(phone.group(1))

    for action, keywords in TASK_ACTION_KEYWORDS:
        matched = next((k for k in keywords if k in lowered), None)
        if matched:
            return TaskIntent(
                action=TaskAction(action),
                confidence=60,
                details=details,
                reasoning=f"Keyword match: '{matched}'",
                source=ResultSource.FALLBACK,
            )
    return TaskIntent(
        action=None, confidence=0, details=details,
        reasoning="No task keywords found", source=ResultSource.FALLBACK,
    )


class MessageAnalyzer:
    """Classifies messages for failed-call likelihood, task intent and mood."""

    def __init__(self, client: TextGenerationClient) -> None:
        self._client = client

    async def analyze(
        self,
        message: str,
        context: ConversationContext,
        history: Optional[list[ChatMessage]] = None,
    ) -> AnalysisResult:
        prompt = build_analysis_prompt(message, context, history)
        try:
            reply = await self._client.generate(prompt)
            payload = parse_payload(reply, AnalysisPayload)
        except (AIServiceError, AIResponseError) as e:
            logger.warning("Message analysis fell back to keywords: %s", e)
            return fallback_analysis(message)

        return AnalysisResult(
            is_failed_call_scenario=payload.is_failed_call_scenario,
            failed_call_confidence=payload.failed_call_confidence,
            failed_call_reason=payload.failed_call_reason,
            needs_task_management=payload.needs_task_management,
            task_type=TaskType(payload.task_type) if payload.task_type else None,
            task_confidence=payload.task_confidence,
            primary_intent=payload.primary_intent,
            secondary_intents=payload.secondary_intents,
            urgency_level=Urgency(payload.urgency_level),
            customer_frustration=payload.customer_frustration,
            service_expectation=payload.service_expectation,
            implicit_needs=payload.implicit_needs,
            suggested_action=payload.suggested_action,
            response_strategy=ResponseStrategy(payload.response_strategy),
            source=ResultSource.AI,
        )

    async def detect_task_intent(self, message: str, context: ConversationContext) -> TaskIntent:
        try:
            reply = await self._client.generate(
                build_task_intent_prompt(message),
                {"session_id": context.session_id, "stage": context.stage.value},
            )
            payload = parse_payload(reply, TaskIntentPayload)
        except (AIServiceError, AIResponseError) as e:
            logger.warning("Task intent detection fell back to keywords: %s", e)
            return fallback_task_intent(message)

        d = payload.task_details
        return TaskIntent(
            action=TaskAction(payload.action) if payload.action else None,
            confidence=payload.confidence,
            details=TaskDetails(
                customer_name=d.customer_name,
                phone_number=validate_phone(d.phone_number),
                description=d.description,
                priority=d.priority,
                status=d.status,
                location=d.location,
            ),
            reasoning=payload.reasoning,
            source=ResultSource.AI,
        )

    @staticmethod
    def generate_contextual_response(
        analysis: AnalysisResult, customer_name: Optional[str] = None,
    ) -> ContextualResponse:
        name = customer_name or "there"
        detection = settings.detection

        if analysis.is_failed_call_scenario and analysis.failed_call_confidence > detection.failed_call_reply_threshold:
            return ContextualResponse(
                text=failed_call_reply(analysis.customer_frustration, name),
                quick_replies=[call_now(), whatsapp(), QuickReply("Schedule Callback", value="schedule_callback")],
            )

        if analysis.needs_task_management and analysis.task_confidence > detection.task_confidence_threshold:
            return ContextualResponse(
                text=task_management_reply(analysis.task_type, name),
                quick_replies=[
                    QuickReply("Create Request", value="create_task"),
                    QuickReply("Check Status", value="check_status"),
                    call_support(),
                ],
            )

        return ContextualResponse(
            text=f"I understand, {name}. {strategy_reply(analysis.response_strategy)}",
            quick_replies=contact_options(),
        )
