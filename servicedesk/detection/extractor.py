"""
Customer field extraction: AI first, deterministic regex fallback.

Both paths run their output through the same cleaning rules, so a
generic request ("I need AC repair") never yields a problem description
regardless of which path produced it.
"""

import logging
import re
from typing import Optional

from servicedesk.ai.client import TextGenerationClient
from servicedesk.ai.json_extraction import parse_payload
from servicedesk.config import settings
from servicedesk.errors import AIResponseError, AIServiceError
from servicedesk.prompts.analysis_prompts import build_extraction_prompt
from servicedesk.schemas.ai_payloads import ExtractionPayload
from servicedesk.schemas.results import ExtractionResult, FieldConfidence, ResultSource
from servicedesk.schemas.ticket import Urgency
from servicedesk.utils import validate_phone

logger = logging.getLogger(__name__)

INVALID_FIELD_WORDS = {"and", "phone", "number", "location", "problem", "is", "no", "my"}

# Words that end a captured name or place
_STOP_WORDS = INVALID_FIELD_WORDS | {
    "a", "an", "the", "from", "in", "at", "near", "located", "living", "staying",
    "facing", "having", "calling", "trying", "waiting", "getting", "looking", "going",
    "here", "there", "very", "not", "so", "really", "still", "just", "also", "with",
    "to", "back", "and", "but", "for", "i", "im", "me", "please", "upset", "frustrated",
    "angry", "sorry", "tired", "unable", "available", "home", "morning", "evening",
    "night", "today", "tomorrow", "moment", "all", "ac", "fridge", "refrigerator",
    "problem", "issue", "mobile", "contact", "urgent", "regarding", "about", "your",
}

GENERIC_REQUEST_WORDS = {
    "repair", "repairs", "service", "servicing", "serviced", "parts", "part", "spare",
    "fix", "fixed", "fixing", "maintenance", "help", "check", "checkup", "install",
    "installation", "need", "needs", "needed", "want", "wants", "get", "done", "some",
    "my", "the", "a", "an", "i", "it", "is", "for", "please", "to", "of", "with",
    "ac", "a/c", "fridge", "refrigerator", "freezer", "appliance", "air", "conditioner",
    "unit", "urgent", "urgently", "asap", "required", "request",
}

_NAME_PATTERN = re.compile(
    r"\b(?:my name is|name is|i am|i'm|call me)\s+([a-z]+(?:\s+[a-z]+){0,2})",
    re.IGNORECASE,
)
_PHONE_KEYWORD_PATTERN = re.compile(
    r"\b(?:phone|number|no|mobile|contact)\.?\s*(?:is|:|-)?\s*"
    r"((?:\+?91[\s-]?)?[6-9](?:[\s-]?\d){9})(?!\d)",
    re.IGNORECASE,
)
_PHONE_BARE_PATTERN = re.compile(r"(?<!\d)((?:\+?91[\s-]?)?[6-9]\d{9})(?!\d)")
_LOCATION_IS_PATTERN = re.compile(
    r"\blocation\s+is\s+(?:in\s+|at\s+)?([a-z]+(?:\s+[a-z]+){0,2})", re.IGNORECASE,
)
_LOCATION_PREP_PATTERN = re.compile(
    r"\b(?:in|at|from|near)\s+([a-z]+(?:\s+[a-z]+){0,2})", re.IGNORECASE,
)
_EXPLICIT_PROBLEM_PATTERN = re.compile(
    r"\b(?:problem is|issue is|trouble with|problem with|issue with)\s+([^.!?]+)",
    re.IGNORECASE,
)
_CLAUSE_BREAK = re.compile(r"\s+and\s+(?:my|phone|location|name|i)\b|,", re.IGNORECASE)

_APPLIANCE_PATTERNS = [
    (re.compile(r"\b(?:ac|a/c|air ?conditioner|aircon)\b", re.IGNORECASE), "AC"),
    (re.compile(r"\b(?:refrigerator|fridge|freezer)\b", re.IGNORECASE), "Refrigerator"),
]

# Specific symptoms, checked in order
SYMPTOM_TEMPLATES: list[tuple[list[str], str]] = [
    (["not cooling", "no cooling", "not cold", "warm air", "isn't cooling"], "{appliance} not cooling properly"),
    (["leaking", "leak", "water dripping", "dripping"], "{appliance} leaking water"),
    (["noise", "noisy", "rattling", "strange sound", "loud sound"], "{appliance} making unusual noise"),
    (["sparking", "spark", "burning", "burnt", "burst", "smoke"], "{appliance} sparking, burning or burst issue"),
    (["not working", "stopped working", "not turning on", "won't start", "wont start", "dead"], "{appliance} not working"),
]


def _trim_at_stop_word(words: list[str]) -> list[str]:
    kept = []
    for word in words:
        if word.lower() in _STOP_WORDS:
            break
        kept.append(word)
    return kept


def clean_name(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = value.strip()
    if cleaned.lower() in INVALID_FIELD_WORDS or len(cleaned) < 2:
        return None
    if not re.fullmatch(r"[A-Za-z\s.]+", cleaned):
        return None
    return cleaned


def clean_location(value: Optional[str]) -> Optional[str]:
    """Known service areas are normalized to title case; other places kept as given."""
    if not value:
        return None
    cleaned = value.strip()
    lowered = cleaned.lower()
    for area in settings.business.service_areas:
        if area in lowered:
            return area.title()
    if len(cleaned) >= 3 and re.fullmatch(r"[A-Za-z\s]+", cleaned) and lowered not in INVALID_FIELD_WORDS:
        return cleaned
    return None


def is_generic_request(text: str) -> bool:
    """True when ``text`` names a service but no symptom ("AC repair", "need parts")."""
    words = re.findall(r"[a-z/]+", text.lower())
    return all(word in GENERIC_REQUEST_WORDS for word in words)


def clean_problem(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = value.strip()
    if len(cleaned) < 3 or cleaned.lower() in {"and", "my", "is", "the"}:
        return None
    if is_generic_request(cleaned):
        return None
    return cleaned


def detect_appliance(text: str) -> str:
    for pattern, label in _APPLIANCE_PATTERNS:
        if pattern.search(text):
            return label
    return "Appliance"


def infer_problem(message: str) -> Optional[str]:
    """
    Describe the customer's problem, or return None for generic requests.

    A specific symptom maps to a templated description naming the
    appliance. Failing that, an explicit "problem is ..." clause is used
    if it says more than a generic service request. "I need AC repair"
    yields None so the caller has to ask what is actually wrong.
    """
    lowered = message.lower()
    appliance = detect_appliance(message)
    for keywords, template in SYMPTOM_TEMPLATES:
        if any(keyword in lowered for keyword in keywords):
            return template.format(appliance=appliance)

    match = _EXPLICIT_PROBLEM_PATTERN.search(message)
    if match:
        clause = _CLAUSE_BREAK.split(match.group(1))[0]
        return clean_problem(clause)
    return None


def _extract_name(message: str) -> Optional[str]:
    for match in _NAME_PATTERN.finditer(message):
        words = _trim_at_stop_word(match.group(1).split())
        name = clean_name(" ".join(words))
        if name:
            return name
    return None


def _extract_phone(message: str) -> tuple[Optional[str], float]:
    for match in _PHONE_KEYWORD_PATTERN.finditer(message):
        phone = validate_phone(match.group(1))
        if phone:
            return phone, 0.8
    for match in _PHONE_BARE_PATTERN.finditer(message):
        phone = validate_phone(match.group(1))
        if phone:
            return phone, 0.6
    return None, 0.0


def _extract_location(message: str) -> tuple[Optional[str], float]:
    lowered = message.lower()
    for area in settings.business.service_areas:
        if area in lowered:
            return area.title(), 0.9
    for pattern in (_LOCATION_IS_PATTERN, _LOCATION_PREP_PATTERN):
        for match in pattern.finditer(message):
            words = _trim_at_stop_word(match.group(1).split())
            location = clean_location(" ".join(words))
            if location:
                return location, 0.6
    return None, 0.0


def fallback_extract(message: str) -> ExtractionResult:
    """Deterministic regex extraction used when the AI path is unavailable."""
    result = ExtractionResult(source=ResultSource.FALLBACK)
    lowered = message.lower()
    result.is_failed_call = bool(
        re.search(r"technician.*(show|came)|called.*(no|answer|response)", lowered)
    )
    if re.search(r"urgent|emergency|asap|completely broken|not cooling at all", lowered):
        result.urgency = Urgency.HIGH

    confidence = FieldConfidence()
    result.name = _extract_name(message)
    if result.name:
        confidence.name = 0.7
    result.phone, confidence.phone = _extract_phone(message)
    result.location, confidence.location = _extract_location(message)
    result.problem = infer_problem(message)
    if result.problem:
        confidence.problem = 0.6
    result.confidence = confidence
    return result


class CustomerInfoExtractor:
    """Extracts name, phone, location and problem from one message."""

    def __init__(self, client: TextGenerationClient) -> None:
        self._client = client

    async def extract(self, message: str) -> ExtractionResult:
        try:
            reply = await self._client.generate(build_extraction_prompt(message))
            payload = parse_payload(reply, ExtractionPayload)
        except (AIServiceError, AIResponseError) as e:
            logger.warning("AI extraction unavailable, using regex fallback: %s", e)
            return fallback_extract(message)

        return ExtractionResult(
            name=clean_name(payload.name),
            phone=validate_phone(payload.phone),
            location=clean_location(payload.location),
            problem=clean_problem(payload.problem),
            confidence=FieldConfidence(
                name=payload.confidence.name,
                phone=payload.confidence.phone,
                location=payload.confidence.location,
                problem=payload.confidence.problem,
            ),
            is_failed_call=payload.is_failed_call,
            urgency=Urgency(payload.urgency),
            source=ResultSource.AI,
        )
