"""User-facing reply templates."""

from typing import Optional

from servicedesk.schemas.results import ResponseStrategy, TaskType
from servicedesk.schemas.ticket import ServiceTicket, TicketStatus
from servicedesk.tickets.catalog import service_name, typical_duration

# Phrases used when asking for several fields at once
MISSING_FIELD_PHRASES: dict[str, str] = {
    "name": "your name",
    "phone number": "a 10-digit phone number",
    "location": "your location",
    "problem description": "the specific problem",
}

# Questions used when exactly one field is missing
SINGLE_FIELD_QUESTIONS: dict[str, str] = {
    "name": "Got it. What's your name?",
    "phone number": "Thanks. What's the best 10-digit number to reach you?",
    "location": "Thanks. Which area are you in?",
    "problem description": (
        "What's the specific problem with your AC or refrigerator? Please describe "
        "what's happening - is it not cooling, making noise, leaking, or something else?"
    ),
}

STATUS_DESCRIPTIONS: dict[TicketStatus, str] = {
    TicketStatus.NEW: "New - We've received your request and will contact you soon",
    TicketStatus.ACKNOWLEDGED: "Acknowledged - A technician has been assigned to your request",
    TicketStatus.SCHEDULED: "Scheduled - Your service appointment has been booked",
    TicketStatus.IN_PROGRESS: "In Progress - Our technician is working on your request",
    TicketStatus.COMPLETED: "Completed - Your service request has been resolved",
    TicketStatus.CANCELLED: "Cancelled - This request has been cancelled",
    TicketStatus.ON_HOLD: "On Hold - Your request is paused; we'll be in touch",
}


def missing_info_request(missing_fields: list[str]) -> str:
    if not missing_fields:
        return ""
    if len(missing_fields) == 1:
        field = missing_fields[0]
        return SINGLE_FIELD_QUESTIONS.get(
            field, f"Could you share {MISSING_FIELD_PHRASES.get(field, field)}?"
        )
    phrases = [MISSING_FIELD_PHRASES.get(f, f) for f in missing_fields]
    if len(phrases) == 2:
        return f"Could you share {phrases[0]} and {phrases[1]}?"
    return f"Could you share {', '.join(phrases[:-1])}, and {phrases[-1]}?"


def join_fields(fields: list[str]) -> str:
    """Join as 'a', 'a, and b' or 'a, b, and c'."""
    if len(fields) <= 1:
        return "".join(fields)
    if len(fields) == 2:
        return f"{fields[0]}, and {fields[1]}"
    return f"{', '.join(fields[:-1])}, and {fields[-1]}"


def agent_missing_info_message(missing: list[str]) -> str:
    return (
        f"To create your service request, I need a few more details: {join_fields(missing)}. "
        "Could you please provide this information?"
    )


def ticket_created_reply(name: str, location: Optional[str]) -> str:
    where = f" in {location}" if location else ""
    return f"Thanks, {name}. We'll be in touch shortly about your service{where}."


def failed_call_reply(frustration: int, name: str) -> str:
    if frustration >= 7:
        return (
            f"I sincerely apologize for the inconvenience, {name}. I can see you've been trying "
            "to reach us and that's frustrating. Let me make sure you get the immediate attention "
            "you deserve. I'm arranging for someone to call you back right away."
        )
    if frustration >= 4:
        return (
            f"Thank you for reaching out, {name}. I understand you tried calling us earlier. "
            "Let me help you get connected with our team right away so we can address your "
            "needs promptly."
        )
    return (
        f"Hi {name}! I see you may have tried reaching us. No worries at all - I'm here to "
        "help you get the assistance you need. Let me connect you with our service team."
    )


def task_management_reply(task_type: Optional[TaskType], name: str) -> str:
    if task_type is TaskType.CREATE:
        return (
            f"I'd be happy to help you create a new service request, {name}. Let me gather "
            "the necessary details to get this set up for you right away."
        )
    if task_type in (TaskType.EDIT, TaskType.UPDATE):
        return (
            f"I can help you update your existing request, {name}. Let me find your current "
            "details and make those changes for you."
        )
    if task_type is TaskType.STATUS_CHECK:
        return (
            f"Let me check the status of your request for you, {name}. I'll get you an "
            "immediate update on where things stand."
        )
    return (
        f"I'm here to help you with your service request, {name}. What would you like me "
        "to assist you with today?"
    )


def strategy_reply(strategy: ResponseStrategy) -> str:
    if strategy is ResponseStrategy.EMPATHETIC:
        return "I can understand your situation and I want to make sure we address your concerns properly."
    if strategy is ResponseStrategy.ESCALATION:
        return "This seems like something our senior team should handle directly. Let me connect you with them right away."
    if strategy is ResponseStrategy.INFORMATION_GATHERING:
        return "To help you in the best way possible, I'd like to gather a few more details about your specific needs."
    return "Let me help you find the best solution for your AC or refrigerator service needs."


def _created(ticket: ServiceTicket) -> str:
    return ticket.created_at.strftime("%d %b %Y")


def ticket_status_message(ticket: ServiceTicket) -> str:
    service = ticket.service_type
    lines = [
        f"Here's the status of your service request ({ticket.ticket_number}):",
        "",
        f"Problem: {ticket.problem_description}",
        f"Service: {service_name(service)} (usually {typical_duration(service)})",
        f"Created: {_created(ticket)}",
        f"Priority: {ticket.priority.value.upper()}",
        f"Status: {STATUS_DESCRIPTIONS[ticket.status]}",
    ]
    if ticket.assigned_technician:
        lines.append(f"Technician: {ticket.assigned_technician}")
    lines.append(f"Expected response: {ticket.estimated_response_time}")
    if ticket.scheduled_at:
        lines.append(f"Scheduled for: {ticket.scheduled_at.strftime('%d %b %Y, %I:%M %p')}")
    lines += ["", "Need any changes or have questions? Just let me know!"]
    return "\n".join(lines)


def ticket_summary_lines(tickets: list[ServiceTicket]) -> list[str]:
    return [
        f"{i}. {t.ticket_number} - {t.problem_description} "
        f"({_created(t)} | {t.priority.value.upper()} | {t.status.value.upper()})"
        for i, t in enumerate(tickets, start=1)
    ]


def multiple_tickets_status_message(tickets: list[ServiceTicket]) -> str:
    lines = [f"I found {len(tickets)} service requests for you:", ""]
    lines += ticket_summary_lines(tickets)
    lines += ["", "Would you like details about any specific request? Just mention the ticket number."]
    return "\n".join(lines)


def ticket_list_message(tickets: list[ServiceTicket]) -> str:
    lines = ["Here are your recent service requests:", ""]
    lines += ticket_summary_lines(tickets)
    lines += ["", "Need to update any of these requests? Just let me know!"]
    return "\n".join(lines)
