"""
Task management agent: create, update, status, list and cancel tickets.

Searches never guess. Zero matches ask for identifying details, several
matches ask the customer to pick one, and only a single match is ever
updated or cancelled. Store failures become an apology with a phone
number instead of a technical error.

Usage:
    agent = TaskManagementAgent(service)
    result = await agent.handle(intent, "what's the status of CWS-2026-0007?", context)
    print(result.message, result.next_action)
"""

import logging
import re
from typing import Optional

from servicedesk.config import settings
from servicedesk.detection.phrases import (
    PRIORITY_DOWN_KEYWORDS,
    PRIORITY_UP_KEYWORDS,
    STATUS_UPDATE_KEYWORDS,
    contains_any,
)
from servicedesk.errors import InvalidStatusTransitionError, TicketValidationError
from servicedesk.prompts.responses import (
    STATUS_DESCRIPTIONS,
    agent_missing_info_message,
    multiple_tickets_status_message,
    ticket_list_message,
    ticket_status_message,
    ticket_summary_lines,
)
from servicedesk.schemas.conversation import ConversationContext
from servicedesk.schemas.results import NextAction, OperationResult, TaskAction, TaskIntent
from servicedesk.schemas.ticket import (
    Priority,
    ServiceTicket,
    TicketCreationRequest,
    TicketFilters,
    TicketSource,
    TicketStatus,
    TicketUpdate,
    Urgency,
)
from servicedesk.tickets.catalog import infer_appliance, infer_service_type
from servicedesk.tickets.ticket_service import TicketService
from servicedesk.utils import validate_phone

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "Customer"
PLACEHOLDER_DESCRIPTION = "Service request from chat"

TICKET_NUMBER_PATTERN = re.compile(r"\b[A-Z]{2,6}-\d{4}-\d{4,}\b", re.IGNORECASE)

# Labels used in missing-information prompts
FIELD_LABELS = {
    "name": "customer name",
    "phone": "phone number",
    "problem": "service description",
}


def parse_ticket_update(message: str, intent: TaskIntent) -> TicketUpdate:
    """Infer urgency and status changes from free text; intent details win."""
    changes: dict = {}
    if contains_any(message, PRIORITY_UP_KEYWORDS):
        changes["urgency"] = Urgency.HIGH
    elif contains_any(message, PRIORITY_DOWN_KEYWORDS):
        changes["urgency"] = Urgency.LOW

    for status, keywords in STATUS_UPDATE_KEYWORDS:
        if contains_any(message, keywords):
            changes["status"] = TicketStatus(status)
            break

    details = intent.details
    if details.description:
        changes["problem_description"] = details.description
    if details.priority:
        changes["urgency"] = Urgency(details.priority)
    return TicketUpdate(**changes)


def _status_or_none(value: Optional[str]) -> Optional[TicketStatus]:
    try:
        return TicketStatus(value) if value else None
    except ValueError:
        return None


def _escalation(message: str, action: NextAction, error: Exception) -> OperationResult:
    return OperationResult(success=False, message=message, next_action=action, error=str(error))


class TaskManagementAgent:
    """Runs ticket operations for one classified task intent."""

    def __init__(self, service: TicketService) -> None:
        self._service = service
        self._phone = settings.business.support_phone

    async def handle(self, intent: TaskIntent, message: str, context: ConversationContext) -> OperationResult:
        action = intent.action
        logger.info("Task intent %s (confidence %d)", action.value if action else None, intent.confidence)

        if action is TaskAction.CREATE:
            return await self.create_task(intent, context)
        if action in (TaskAction.EDIT, TaskAction.UPDATE):
            return await self.update_task(intent, message, context)
        if action is TaskAction.STATUS:
            return await self.check_status(intent, message, context)
        if action is TaskAction.LIST:
            return await self.list_tasks(intent, message, context)
        if action is TaskAction.DELETE:
            return await self.cancel_task(intent, message, context)

        return OperationResult(
            success=False,
            message="I'm not sure what task operation you'd like me to perform. Could you please clarify?",
            next_action=NextAction.CLARIFY_INTENT,
        )

    # --- Create ---

    async def create_task(self, intent: TaskIntent, context: ConversationContext) -> OperationResult:
        details = intent.details
        info = context.customer_info
        name = details.customer_name or info.name or PLACEHOLDER_NAME
        phone = validate_phone(details.phone_number) or validate_phone(info.phone)
        description = details.description or context.inquiry_details.get("problem") or PLACEHOLDER_DESCRIPTION
        location = details.location or info.location or context.inquiry_details.get("location")

        missing = []
        if name == PLACEHOLDER_NAME:
            missing.append(FIELD_LABELS["name"])
        if not phone:
            missing.append(FIELD_LABELS["phone"])
        if description == PLACEHOLDER_DESCRIPTION:
            missing.append(FIELD_LABELS["problem"])
        if missing:
            return self._missing_info(missing)

        urgency = Urgency(details.priority) if details.priority else Urgency.MEDIUM
        request = TicketCreationRequest(
            customer_name=name,
            phone_number=phone,
            email=info.email,
            location=location,
            service_type=infer_service_type(description, urgency),
            appliance=infer_appliance(description),
            problem_description=description,
            urgency=urgency,
            source=TicketSource.CHAT,
            related_failed_call_id=context.inquiry_details.get("failed_call_ref"),
        )
        try:
            ticket = await self._service.create_ticket(request)
        except TicketValidationError as e:
            logger.warning("Ticket rejected on %s: %s", e.field, e.message)
            return self._missing_info([FIELD_LABELS.get(e.field, e.field)])
        except Exception as e:
            logger.exception("Ticket creation failed")
            return _escalation(
                "I encountered an issue creating your service request. "
                "Let me connect you with our support team directly.",
                NextAction.ESCALATE_TO_HUMAN, e,
            )

        return OperationResult(
            success=True,
            message=(
                f"Perfect! I've created a new service request for {name}. Your request ID is "
                f"{ticket.ticket_number}. Our team will contact you soon to schedule the service."
            ),
            next_action=NextAction.TASK_CREATED,
            ticket=ticket,
        )

    def _missing_info(self, missing: list[str]) -> OperationResult:
        return OperationResult(
            success=False,
            message=agent_missing_info_message(missing),
            next_action=NextAction.COLLECT_MISSING_INFO,
            missing_info=missing,
        )

    # --- Search ---

    async def find_tickets(
        self,
        intent: TaskIntent,
        message: str,
        context: ConversationContext,
        with_filters: bool = False,
        limit: Optional[int] = None,
    ) -> list[ServiceTicket]:
        """
        Tickets the customer is referring to.

        A ticket number quoted in the message wins. Otherwise the phone
        number, or failing that the name, from the intent or the session
        identifies the customer. Without either nothing is returned.
        """
        quoted = TICKET_NUMBER_PATTERN.search(message)
        if quoted:
            ticket = await self._service.find_by_number(quoted.group(0).upper())
            return [ticket] if ticket else []

        details = intent.details
        phone = validate_phone(details.phone_number) or validate_phone(context.customer_info.phone)
        name = details.customer_name or context.customer_info.name
        if not phone and not name:
            return []

        filters = TicketFilters(
            customer_phone=phone,
            customer_name=None if phone else name,
            limit=limit,
        )
        if with_filters:
            filters.status = _status_or_none(details.status)
            if details.priority:
                filters.priority = Priority(details.priority)
        return await self._service.get_tickets(filters)

    # --- Update ---

    async def update_task(self, intent: TaskIntent, message: str, context: ConversationContext) -> OperationResult:
        try:
            matches = await self.find_tickets(intent, message, context)
            if not matches:
                return OperationResult(
                    success=False,
                    message=(
                        "I couldn't find any service requests matching your criteria. Could you "
                        "provide more details like your phone number or request ID?"
                    ),
                    next_action=NextAction.REQUEST_MORE_INFO,
                )
            if len(matches) > 1:
                return OperationResult(
                    success=False,
                    message="\n".join([
                        f"I found {len(matches)} service requests. Could you specify which one you'd "
                        "like to update? You can provide the request ID or more specific details.",
                        "",
                        *ticket_summary_lines(matches),
                    ]),
                    next_action=NextAction.CLARIFY_TASK_SELECTION,
                    tickets=matches,
                )

            ticket = matches[0]
            update = parse_ticket_update(message, intent)
            updated = await self._service.update_ticket(
                ticket.id, update, author="customer", note=f"Customer update via chat: {message}",
            )
        except InvalidStatusTransitionError as e:
            logger.info("Update refused: %s", e)
            return self._closed_ticket(matches[0])
        except Exception as e:
            logger.exception("Ticket update failed")
            return _escalation(
                "I had trouble updating your service request. "
                "Let me connect you with our support team to help with this update.",
                NextAction.ESCALATE_TO_HUMAN, e,
            )

        return OperationResult(
            success=True,
            message=(
                f"I've successfully updated your service request (ID: {updated.ticket_number}). "
                "The changes have been saved and our team will be notified."
            ),
            next_action=NextAction.TASK_UPDATED,
            ticket=updated,
        )

    # --- Status ---

    async def check_status(self, intent: TaskIntent, message: str, context: ConversationContext) -> OperationResult:
        try:
            matches = await self.find_tickets(intent, message, context, with_filters=True)
        except Exception as e:
            logger.exception("Status lookup failed")
            return _escalation(
                "I'm having trouble checking your request status right now. "
                f"Please call us at {self._phone} for an immediate status update.",
                NextAction.ESCALATE_TO_PHONE, e,
            )

        if not matches:
            return OperationResult(
                success=False,
                message=(
                    "I couldn't find any service requests for you. Could you provide your phone "
                    "number or request ID so I can check the status?"
                ),
                next_action=NextAction.REQUEST_IDENTIFICATION,
            )
        if len(matches) == 1:
            return OperationResult(
                success=True,
                message=ticket_status_message(matches[0]),
                next_action=NextAction.STATUS_PROVIDED,
                ticket=matches[0],
            )
        return OperationResult(
            success=True,
            message=multiple_tickets_status_message(matches),
            next_action=NextAction.MULTIPLE_TASKS_STATUS,
            tickets=matches,
        )

    # --- List ---

    async def list_tasks(self, intent: TaskIntent, message: str, context: ConversationContext) -> OperationResult:
        try:
            tickets = await self.find_tickets(
                intent, message, context, with_filters=True, limit=settings.tickets.list_limit,
            )
        except Exception as e:
            logger.exception("Ticket listing failed")
            return _escalation(
                "I'm having trouble retrieving your service requests. "
                f"Please call us at {self._phone} for assistance.",
                NextAction.ESCALATE_TO_PHONE, e,
            )

        if not tickets:
            return OperationResult(
                success=True,
                message=(
                    "I don't see any service requests for you currently. "
                    "Would you like me to create a new one?"
                ),
                next_action=NextAction.OFFER_TASK_CREATION,
            )
        return OperationResult(
            success=True,
            message=ticket_list_message(tickets),
            next_action=NextAction.TASKS_LISTED,
            tickets=tickets,
        )

    # --- Cancel ---

    async def cancel_task(self, intent: TaskIntent, message: str, context: ConversationContext) -> OperationResult:
        try:
            matches = await self.find_tickets(intent, message, context)
            if not matches:
                return OperationResult(
                    success=False,
                    message=(
                        "I couldn't find the service request you want to cancel. Could you "
                        "provide the request ID or your phone number?"
                    ),
                    next_action=NextAction.REQUEST_IDENTIFICATION,
                )
            if len(matches) > 1:
                return OperationResult(
                    success=False,
                    message="\n".join([
                        f"I found {len(matches)} requests. Which specific request would you like "
                        "to cancel? Please provide the request ID.",
                        "",
                        *ticket_summary_lines(matches),
                    ]),
                    next_action=NextAction.CLARIFY_TASK_SELECTION,
                    tickets=matches,
                )

            cancelled = await self._service.cancel_ticket(
                matches[0].id, reason="Cancelled by customer via chat",
            )
        except InvalidStatusTransitionError as e:
            logger.info("Cancellation refused: %s", e)
            return self._closed_ticket(matches[0])
        except Exception as e:
            logger.exception("Ticket cancellation failed")
            return _escalation(
                f"I had trouble cancelling your request. Please call us at {self._phone} to cancel directly.",
                NextAction.ESCALATE_TO_PHONE, e,
            )

        return OperationResult(
            success=True,
            message=(
                f"I've cancelled your service request (ID: {cancelled.ticket_number}). "
                "If you need service in the future, just let me know!"
            ),
            next_action=NextAction.TASK_CANCELLED,
            ticket=cancelled,
        )

    @staticmethod
    def _closed_ticket(ticket: ServiceTicket) -> OperationResult:
        status = STATUS_DESCRIPTIONS[ticket.status].split(" - ")[0].lower()
        return OperationResult(
            success=False,
            message=(
                f"Your service request {ticket.ticket_number} is already {status}, so I can't "
                "change it. Would you like me to create a new request instead?"
            ),
            next_action=NextAction.OFFER_TASK_CREATION,
            ticket=ticket,
        )
