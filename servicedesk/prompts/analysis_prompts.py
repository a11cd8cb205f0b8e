"""Prompt builders for the AI text service."""

import json
from typing import Optional

from servicedesk.config import settings
from servicedesk.schemas.conversation import ChatMessage, ConversationContext


def _format_history(history: list[ChatMessage], turns: int) -> str:
    if turns <= 0 or not history:
        return "(none)"
    return "\n".join(f"{m.sender.value}: {m.text}" for m in history[-turns:])


def build_extraction_prompt(message: str) -> str:
    """Prompt asking for customer fields plus per-field confidence."""
    return f"""You are an information extraction system for {settings.business.name}, an AC and refrigerator repair company in Kerala.

MESSAGE TO ANALYZE: {json.dumps(message)}

EXTRACTION RULES:
1. isFailedCall: true if the customer mentions a missed appointment, a technician who did not show up, or a call to us that went unanswered.
2. urgency: one of "low", "medium", "high", "critical".
3. name: the customer's name.
4. phone: the 10-digit phone number.
5. location: the area or address.
6. problem: a concise summary of the actual fault. If the customer only asks for a service ("AC repair", "need parts") without describing a fault, return null.
7. confidence: a score from 0.0 to 1.0 for name, phone, location and problem.

Respond with ONLY this JSON object:
{{
  "isFailedCall": boolean,
  "urgency": "low|medium|high|critical",
  "name": "string or null",
  "phone": "string or null",
  "location": "string or null",
  "problem": "string or null",
  "confidence": {{"name": 0.0, "phone": 0.0, "location": 0.0, "problem": 0.0}}
}}"""


def build_analysis_prompt(
    message: str,
    context: ConversationContext,
    history: Optional[list[ChatMessage]] = None,
) -> str:
    """Prompt classifying failed-call likelihood, task intent, urgency and frustration."""
    turns = settings.detection.history_turns
    customer = {k: v for k, v in vars(context.customer_info).items() if v}
    return f"""You are a customer service analyst for {settings.business.name} (AC and refrigerator repair in Kerala).

CUSTOMER MESSAGE: {json.dumps(message)}

CONVERSATION CONTEXT:
- Previous messages:
{_format_history(history or [], turns)}
- Customer info: {json.dumps(customer)}
- Current inquiry: {json.dumps(context.inquiry_details)}

Analyze for:
1. Failed contact: did the customer try to reach us and fail, or miss an appointment?
2. Task management: do they want to create, edit or update a service request, or check its status?
3. Urgency (low/medium/high/critical) and frustration (0-10), including politely expressed frustration.
4. The best response strategy and an immediate action.

Respond with ONLY this JSON object:
{{
  "isFailedCallScenario": boolean,
  "failedCallConfidence": number (0-100),
  "failedCallReason": "explanation",
  "needsTaskManagement": boolean,
  "taskType": "create|edit|update|status_check|null",
  "taskConfidence": number (0-100),
  "primaryIntent": "main intent",
  "secondaryIntents": ["intent"],
  "urgencyLevel": "low|medium|high|critical",
  "customerFrustration": number (0-10),
  "serviceExpectation": "what the customer expects",
  "implicitNeeds": ["need"],
  "suggestedAction": "recommended action",
  "responseStrategy": "empathetic|solution-focused|escalation|information-gathering"
}}"""


def build_task_intent_prompt(message: str) -> str:
    """Prompt classifying a ticket operation and the details it mentions."""
    return f"""Analyze this message for service-request management in an AC and refrigerator repair business.

MESSAGE: {json.dumps(message)}

Does the customer want to CREATE a new request, EDIT/UPDATE an existing one, check its STATUS, DELETE/CANCEL it, or LIST their requests?
Extract any details mentioned.

Respond with ONLY this JSON object:
{{
  "action": "create|edit|update|delete|status|list|none",
  "confidence": number (0-100),
  "taskDetails": {{
    "customerName": "if mentioned",
    "phoneNumber": "if mentioned",
    "description": "if mentioned",
    "priority": "high|medium|low if indicated",
    "status": "if mentioned",
    "location": "if mentioned"
  }},
  "reasoning": "short explanation"
}}"""
