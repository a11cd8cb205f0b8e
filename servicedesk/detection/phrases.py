"""
Keyword and phrase tables shared by the failed-call detector and the
message analyzer.

All matching is lowercase substring matching. Failed-call evidence lives
in one rule table (phrase -> category -> priority); the strict detector
evaluates categories in priority order and stops at the first hit, while
the analyzer's keyword fallback also accepts the weak cues.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from servicedesk.schemas.results import TriggerCategory


class RuleCategory(str, Enum):
    APPOINTMENT_NO_SHOW = "appointment_no_show"
    FAILED_CALL = "failed_call"
    LEGACY = "legacy"
    WEAK_CUE = "weak_cue"

    @property
    def trigger_category(self) -> Optional[TriggerCategory]:
        if self is RuleCategory.WEAK_CUE:
            return None
        return TriggerCategory(self.value)


@dataclass(frozen=True)
class PhraseRule:
    phrase: str
    category: RuleCategory
    priority: int


_NO_SHOW_PHRASES = [
    "technician never showed", "technician never came", "technician didn't show",
    "technician did not show", "technician didn't come", "technician did not come",
    "technician was a no-show", "never showed up", "didn't show up", "did not show up",
    "no-show", "no show", "missed the appointment", "missed my appointment",
    "missed appointment", "nobody came", "no one came", "no one showed up",
    "was supposed to come", "waited all day",
]

_FAILED_CALL_PHRASES = [
    "tried calling", "tried to call", "tried to reach", "couldn't reach", "could not reach",
    "couldnt reach", "can't reach", "cannot reach", "unable to reach", "unable to contact",
    "failed to reach", "no answer", "no one answered", "nobody answered", "no one picked up",
    "nobody picked up", "didn't pick up", "didnt pick up", "did not pick up",
    "not picking up", "voicemail", "line was busy", "line is busy", "not reachable",
    "unreachable", "couldn't get through", "could not get through", "didn't get through",
    "no response to my call", "called but",
]

# Callback-detail phrases kept from the older combined list. Customers
# following up on a failed call usually lead with how to reach them.
_LEGACY_PHRASES = [
    "missed call", "call me back", "call back", "callback", "phone no",
    "phone number is", "my number is", "reach me at", "contact me at",
]

# Loose signals the analyzer fallback treats as failed-call evidence.
_WEAK_CUES = ["busy", "phone", "call"]


def _build_rules() -> tuple[PhraseRule, ...]:
    rules: list[PhraseRule] = []
    seen: set[str] = set()
    for priority, (category, phrases) in enumerate([
        (RuleCategory.APPOINTMENT_NO_SHOW, _NO_SHOW_PHRASES),
        (RuleCategory.FAILED_CALL, _FAILED_CALL_PHRASES),
        (RuleCategory.LEGACY, _LEGACY_PHRASES),
        (RuleCategory.WEAK_CUE, _WEAK_CUES),
    ], start=1):
        for phrase in phrases:
            if phrase in seen:
                continue
            seen.add(phrase)
            rules.append(PhraseRule(phrase, category, priority))
    return tuple(rules)


FAILED_CALL_RULES: tuple[PhraseRule, ...] = _build_rules()

STRICT_CATEGORIES = frozenset({
    RuleCategory.APPOINTMENT_NO_SHOW, RuleCategory.FAILED_CALL, RuleCategory.LEGACY,
})


def first_match(
    text: str,
    rules: Iterable[PhraseRule] = FAILED_CALL_RULES,
    categories: frozenset[RuleCategory] = STRICT_CATEGORIES,
) -> Optional[PhraseRule]:
    """Return the first matching rule, evaluating lower priority numbers first."""
    lowered = text.lower()
    for rule in sorted(rules, key=lambda r: r.priority):
        if rule.category in categories and rule.phrase in lowered:
            return rule
    return None


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


# Detector urgency tiers (checked high first, then low; else medium)
DETECTOR_URGENCY_HIGH = [
    "emergency", "urgent", "immediately", "asap", "as soon as possible", "right away",
    "no cooling", "not cooling at all", "no power", "sparking", "burning", "smoke",
    "burst", "completely broken", "critical",
]
DETECTOR_URGENCY_LOW = [
    "when possible", "routine", "when convenient", "no rush", "whenever", "not urgent",
    "next week",
]

# Analyzer fallback urgency tiers, checked in this order
ANALYZER_URGENCY_TIERS: list[tuple[str, list[str]]] = [
    ("critical", ["emergency", "urgent", "asap", "immediately", "broken down"]),
    ("high", ["soon", "quickly", "today", "not working"]),
    ("low", ["when convenient", "no rush", "whenever"]),
]

TASK_PATTERNS = [
    "create", "add", "new", "edit", "update", "change", "modify",
    "status", "check", "progress", "cancel", "delete",
]

# Task-intent fallback keywords, checked in this order
TASK_ACTION_KEYWORDS: list[tuple[str, list[str]]] = [
    ("delete", ["cancel", "delete", "remove my request", "call off"]),
    ("status", ["status", "any update", "check on", "track", "where is my", "progress"]),
    ("list", ["my requests", "my tickets", "all my", "list", "show me my"]),
    ("update", ["update", "change", "modify", "edit", "reschedule"]),
    ("create", [
        "create", "new request", "book a", "book an", "register a", "raise a ticket",
        "open a ticket", "schedule a service", "schedule a repair",
    ]),
]

# Agent update parsing
PRIORITY_UP_KEYWORDS = ["urgent", "emergency"]
PRIORITY_DOWN_KEYWORDS = ["low priority", "no rush"]
STATUS_UPDATE_KEYWORDS: list[tuple[str, list[str]]] = [
    ("completed", ["completed", "finished", "done", "resolved"]),
    ("in_progress", ["in progress", "working on", "started"]),
    ("scheduled", ["scheduled", "appointment", "booked"]),
]

# Conversation escalation
COMPLAINT_KEYWORDS = [
    "complaint", "dissatisfied", "unhappy", "poor service", "bad experience", "unsatisfactory",
]
HUMAN_REQUEST_KEYWORDS = [
    "speak to human", "talk to person", "human agent", "real person", "human representative",
]

# Conversation intent hints, used for stage progression
SERVICE_REQUEST_KEYWORDS = [
    "repair", "fix", "service", "not working", "broken", "maintenance", "problem",
    "issue", "stopped working", "not cooling", "leaking", "noise",
]
BRANDS = ["samsung", "lg", "whirlpool", "voltas", "blue star", "godrej", "haier", "daikin"]

# Ticket heuristics
PARTS_KEYWORDS = [
    "compressor", "thermostat", "coil", "motor", "fan", "filter", "seal", "gasket",
    "control board", "sensor", "valve", "pump", "not cooling", "not working", "broken",
    "damaged", "replacement",
]
