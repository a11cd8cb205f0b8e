"""Schemas for JSON replies from the AI text service.

Every field is coerced rather than rejected: numbers are clamped into
range, enum-like strings fall back to a safe default, and wrong types
become empty values. Whole-reply rejection is decided by the caller
(see ``servicedesk.ai.json_extraction.parse_payload``).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_NULL_STRINGS = {"", "null", "none", "undefined", "n/a"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _clamp(value: Any, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    if number != number:  # NaN
        return low
    return max(low, min(high, number))


def _choice(value: Any, allowed: set[str], default: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return default


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or value.strip().lower() in _NULL_STRINGS:
        return None
    return value.strip()


def _text(value: Any, default: str) -> str:
    return _optional_text(value) or default


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class AIPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def known_keys(cls) -> set[str]:
        keys = set()
        for name, info in cls.model_fields.items():
            keys.add(name)
            if info.alias:
                keys.add(info.alias)
        return keys


URGENCIES = {"low", "medium", "high", "critical"}
STRATEGIES = {"empathetic", "solution-focused", "escalation", "information-gathering"}
TASK_TYPES = {"create", "edit", "update", "status_check"}
TASK_ACTIONS = {"create", "edit", "update", "delete", "status", "list"}
PRIORITIES = {"high", "medium", "low"}


class AnalysisPayload(AIPayload):
    is_failed_call_scenario: bool = Field(default=False, alias="isFailedCallScenario")
    failed_call_confidence: int = Field(default=0, alias="failedCallConfidence")
    failed_call_reason: str = Field(default="No specific reason identified", alias="failedCallReason")
    needs_task_management: bool = Field(default=False, alias="needsTaskManagement")
    task_type: Optional[str] = Field(default=None, alias="taskType")
    task_confidence: int = Field(default=0, alias="taskConfidence")
    primary_intent: str = Field(default="general_inquiry", alias="primaryIntent")
    secondary_intents: list[str] = Field(default_factory=list, alias="secondaryIntents")
    urgency_level: str = Field(default="medium", alias="urgencyLevel")
    customer_frustration: int = Field(default=0, alias="customerFrustration")
    service_expectation: str = Field(default="Standard service response", alias="serviceExpectation")
    implicit_needs: list[str] = Field(default_factory=list, alias="implicitNeeds")
    suggested_action: str = Field(default="Provide general assistance", alias="suggestedAction")
    response_strategy: str = Field(default="solution-focused", alias="responseStrategy")

    @field_validator("is_failed_call_scenario", "needs_task_management", mode="before")
    @classmethod
    def coerce_bools(cls, v: Any) -> bool:
        return _to_bool(v)

    @field_validator("failed_call_confidence", "task_confidence", mode="before")
    @classmethod
    def coerce_percent(cls, v: Any) -> int:
        return round(_clamp(v, 0, 100))

    @field_validator("customer_frustration", mode="before")
    @classmethod
    def coerce_frustration(cls, v: Any) -> int:
        return round(_clamp(v, 0, 10))

    @field_validator("task_type", mode="before")
    @classmethod
    def coerce_task_type(cls, v: Any) -> Optional[str]:
        return _choice(v, TASK_TYPES, None)

    @field_validator("urgency_level", mode="before")
    @classmethod
    def coerce_urgency(cls, v: Any) -> str:
        return _choice(v, URGENCIES, "medium")

    @field_validator("response_strategy", mode="before")
    @classmethod
    def coerce_strategy(cls, v: Any) -> str:
        return _choice(v, STRATEGIES, "solution-focused")

    @field_validator("secondary_intents", "implicit_needs", mode="before")
    @classmethod
    def coerce_lists(cls, v: Any) -> list[str]:
        return _string_list(v)

    @field_validator("failed_call_reason", mode="before")
    @classmethod
    def coerce_reason(cls, v: Any) -> str:
        return _text(v, "No specific reason identified")

    @field_validator("primary_intent", mode="before")
    @classmethod
    def coerce_intent(cls, v: Any) -> str:
        return _text(v, "general_inquiry")

    @field_validator("service_expectation", mode="before")
    @classmethod
    def coerce_expectation(cls, v: Any) -> str:
        return _text(v, "Standard service response")

    @field_validator("suggested_action", mode="before")
    @classmethod
    def coerce_action(cls, v: Any) -> str:
        return _text(v, "Provide general assistance")


class ConfidencePayload(AIPayload):
    name: float = 0.0
    phone: float = 0.0
    location: float = 0.0
    problem: float = 0.0

    @field_validator("name", "phone", "location", "problem", mode="before")
    @classmethod
    def coerce_unit(cls, v: Any) -> float:
        return _clamp(v, 0.0, 1.0)


class ExtractionPayload(AIPayload):
    is_failed_call: bool = Field(default=False, alias="isFailedCall")
    urgency: str = "medium"
    name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    problem: Optional[str] = None
    confidence: ConfidencePayload = Field(default_factory=ConfidencePayload)

    @field_validator("is_failed_call", mode="before")
    @classmethod
    def coerce_bool(cls, v: Any) -> bool:
        return _to_bool(v)

    @field_validator("urgency", mode="before")
    @classmethod
    def coerce_urgency(cls, v: Any) -> str:
        return _choice(v, URGENCIES, "medium")

    @field_validator("name", "phone", "location", "problem", mode="before")
    @classmethod
    def coerce_fields(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}


class TaskDetailsPayload(AIPayload):
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None

    @field_validator("customer_name", "phone_number", "description", "status", "location", mode="before")
    @classmethod
    def coerce_fields(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: Any) -> Optional[str]:
        return _choice(v, PRIORITIES, None)


class TaskIntentPayload(AIPayload):
    action: Optional[str] = None
    confidence: int = 0
    task_details: TaskDetailsPayload = Field(default_factory=TaskDetailsPayload, alias="taskDetails")
    reasoning: str = "AI analysis completed"

    @field_validator("action", mode="before")
    @classmethod
    def coerce_action(cls, v: Any) -> Optional[str]:
        return _choice(v, TASK_ACTIONS, None)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_percent(cls, v: Any) -> int:
        return round(_clamp(v, 0, 100))

    @field_validator("task_details", mode="before")
    @classmethod
    def coerce_details(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @field_validator("reasoning", mode="before")
    @classmethod
    def coerce_reasoning(cls, v: Any) -> str:
        return _text(v, "AI analysis completed")
