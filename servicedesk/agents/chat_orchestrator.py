"""
Chat orchestrator: one customer message in, one structured reply out.

Per message the pipeline runs, in order:
  1. Failed-call detection (or continued field collection while a
     detected failed call still lacks details; ticket requests made
     meanwhile go to the task agent and collection resumes after)
  2. Ticket creation once the failed call has every required field
  3. Task intent detection and dispatch to the task agent
  4. Message analysis and a contextual reply

Every failure is turned into a reply; ``handle_message`` never raises.

Usage:
    orchestrator = ChatOrchestrator.create(client, service)
    reply = await orchestrator.handle_message("Tried calling, nobody answered")
    print(reply.text)
"""

import logging
import uuid
from typing import Optional

from servicedesk.agents.task_agent import TaskManagementAgent
from servicedesk.ai.client import TextGenerationClient
from servicedesk.config import settings
from servicedesk.conversation.context import ConversationTracker
from servicedesk.detection.extractor import CustomerInfoExtractor
from servicedesk.detection.failed_call_detector import FailedCallDetector
from servicedesk.detection.message_analyzer import MessageAnalyzer
from servicedesk.errors import TicketValidationError
from servicedesk.logging_context import set_session_id
from servicedesk.notifications import contact_options
from servicedesk.prompts.responses import ticket_created_reply
from servicedesk.schemas.conversation import ConversationContext, Sender
from servicedesk.schemas.results import (
    ChatReply,
    FailedCallSignal,
    NextAction,
    OperationResult,
    TaskAction,
    TaskIntent,
)
from servicedesk.tickets.ticket_service import TicketService

logger = logging.getLogger(__name__)

# Signal field name -> label used in missing-information prompts
SIGNAL_FIELD_LABELS = {
    "name": "name",
    "phone": "phone number",
    "location": "location",
    "problem": "problem description",
}

ESCALATION_ACTIONS = frozenset({NextAction.ESCALATE_TO_HUMAN, NextAction.ESCALATE_TO_PHONE})


class ChatOrchestrator:
    """Runs the detection, ticket and reply pipeline for one chat session."""

    def __init__(
        self,
        detector: FailedCallDetector,
        analyzer: MessageAnalyzer,
        agent: TaskManagementAgent,
        service: TicketService,
        tracker: Optional[ConversationTracker] = None,
    ) -> None:
        self._detector = detector
        self._analyzer = analyzer
        self._agent = agent
        self._service = service
        self._tracker = tracker or ConversationTracker(
            ConversationContext(session_id=f"CHAT-{uuid.uuid4().hex[:8]}")
        )

    @classmethod
    def create(
        cls,
        client: TextGenerationClient,
        service: TicketService,
        session_id: Optional[str] = None,
    ) -> "ChatOrchestrator":
        """Wire a session from an AI client and a ticket service."""
        tracker = None
        if session_id:
            tracker = ConversationTracker(ConversationContext(session_id=session_id))
        return cls(
            detector=FailedCallDetector(CustomerInfoExtractor(client)),
            analyzer=MessageAnalyzer(client),
            agent=TaskManagementAgent(service),
            service=service,
            tracker=tracker,
        )

    @property
    def context(self) -> ConversationContext:
        return self._tracker.context

    async def handle_message(self, text: str) -> ChatReply:
        set_session_id(self.context.session_id)
        try:
            reply = await self._respond(text)
        except Exception:
            logger.exception("Message handling failed")
            reply = ChatReply(
                text=(
                    "Sorry, something went wrong on our side. Please call us at "
                    f"{settings.business.support_phone} and we'll help you right away."
                ),
                quick_replies=contact_options(),
                next_action=NextAction.ESCALATE_TO_PHONE,
            )
        self._tracker.add_message(Sender.BOT, reply.text)
        self._tracker.update_stage()
        return reply

    async def _respond(self, text: str) -> ChatReply:
        self._tracker.add_message(Sender.USER, text)
        self._tracker.recognize_intent(text)

        if self.context.pending_failed_call:
            detour = await self._task_during_collection(text)
            if detour is not None:
                return detour
            signal = await self._detector.continue_collection(text, self.context)
        else:
            signal = await self._detector.detect(text, self.context)
        if signal.detected:
            self._tracker.mark_failed_call()
            return await self._handle_failed_call(signal)

        intent = await self._analyzer.detect_task_intent(text, self.context)
        if self._confident(intent):
            result = await self._agent.handle(intent, text, self.context)
            return self._from_operation(result)

        # The current message is already the last history entry
        earlier = self._tracker.history()[:-1]
        analysis = await self._analyzer.analyze(text, self.context, earlier)
        response = self._analyzer.generate_contextual_response(analysis, self.context.customer_info.name)
        return ChatReply(
            text=response.text,
            quick_replies=response.quick_replies,
            analysis=analysis,
        )

    async def _task_during_collection(self, text: str) -> Optional[ChatReply]:
        """
        Serve a status, list, update or cancel request made while a failed
        call still lacks details. The collection stays open for the next
        message. Messages carrying any ticket field keep collecting.
        """
        if self._detector.offers_details(text):
            return None
        intent = await self._analyzer.detect_task_intent(text, self.context)
        if intent.action is TaskAction.CREATE or not self._confident(intent):
            return None
        logger.info("Task request during failed-call collection: %s", intent.action.value)
        result = await self._agent.handle(intent, text, self.context)
        return self._from_operation(result)

    @staticmethod
    def _confident(intent: TaskIntent) -> bool:
        return intent.action is not None and intent.confidence > settings.detection.task_confidence_threshold

    async def _handle_failed_call(self, signal: FailedCallSignal) -> ChatReply:
        if signal.missing_fields:
            logger.info("Failed call needs: %s", signal.missing_fields)
            return self._ask_for(signal.missing_fields, signal)

        try:
            request = self._detector.build_ticket_request(signal)
            ticket = await self._service.create_ticket(request)
        except TicketValidationError as e:
            logger.info("Failed-call ticket rejected on %s: %s", e.field, e.message)
            self._forget(e.field)
            return self._ask_for([SIGNAL_FIELD_LABELS.get(e.field, e.field)], signal)
        except Exception:
            logger.exception("Failed-call ticket creation failed")
            return ChatReply(
                text=(
                    "I couldn't register your request just now. Please call us at "
                    f"{settings.business.support_phone} and we'll call you back right away."
                ),
                quick_replies=contact_options(),
                next_action=NextAction.ESCALATE_TO_PHONE,
                signal=signal,
            )

        self.context.pending_failed_call = None
        self._tracker.mark_resolved(ticket.ticket_number)
        name = signal.customer_data.name or "there"
        return ChatReply(
            text=f"{ticket_created_reply(name, ticket.location)} Your ticket number is {ticket.ticket_number}.",
            quick_replies=contact_options(),
            ticket=ticket,
            next_action=NextAction.TASK_CREATED,
            signal=signal,
        )

    def _ask_for(self, fields: list[str], signal: FailedCallSignal) -> ChatReply:
        return ChatReply(
            text=self._detector.generate_missing_info_request(fields),
            next_action=NextAction.COLLECT_MISSING_INFO,
            signal=signal,
        )

    def _forget(self, field: str) -> None:
        """Drop a rejected value so the customer's next answer can replace it."""
        if field == "problem":
            self.context.inquiry_details.pop("problem", None)
        elif hasattr(self.context.customer_info, field):
            setattr(self.context.customer_info, field, None)

    def _from_operation(self, result: OperationResult) -> ChatReply:
        if result.success and result.next_action is NextAction.TASK_CREATED and result.ticket:
            self._tracker.mark_resolved(result.ticket.ticket_number)
        quick_replies = contact_options() if result.next_action in ESCALATION_ACTIONS else []
        return ChatReply(
            text=result.message,
            quick_replies=quick_replies,
            ticket=result.ticket,
            next_action=result.next_action,
        )
