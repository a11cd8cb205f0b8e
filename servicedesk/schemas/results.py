"""Structured outcomes passed between detection, agents and the chat layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from servicedesk.schemas.conversation import CustomerInfo
from servicedesk.schemas.ticket import ServiceTicket, Urgency


class ResultSource(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class UrgencyLevel(str, Enum):
    """Urgency attached to a failed-call signal."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TriggerCategory(str, Enum):
    APPOINTMENT_NO_SHOW = "appointment_no_show"
    FAILED_CALL = "failed_call"
    LEGACY = "legacy"


class ResponseStrategy(str, Enum):
    EMPATHETIC = "empathetic"
    SOLUTION_FOCUSED = "solution-focused"
    ESCALATION = "escalation"
    INFORMATION_GATHERING = "information-gathering"


class TaskType(str, Enum):
    """Task-management need as classified by message analysis."""
    CREATE = "create"
    EDIT = "edit"
    UPDATE = "update"
    STATUS_CHECK = "status_check"


class TaskAction(str, Enum):
    """Operation the task agent is asked to perform."""
    CREATE = "create"
    EDIT = "edit"
    UPDATE = "update"
    DELETE = "delete"
    STATUS = "status"
    LIST = "list"


class NextAction(str, Enum):
    """Closed set of follow-ups the chat layer must handle."""
    CLARIFY_INTENT = "clarify_intent"
    COLLECT_MISSING_INFO = "collect_missing_info"
    TASK_CREATED = "task_created"
    REQUEST_MORE_INFO = "request_more_info"
    CLARIFY_TASK_SELECTION = "clarify_task_selection"
    TASK_UPDATED = "task_updated"
    REQUEST_IDENTIFICATION = "request_identification"
    STATUS_PROVIDED = "status_provided"
    MULTIPLE_TASKS_STATUS = "multiple_tasks_status"
    OFFER_TASK_CREATION = "offer_task_creation"
    TASKS_LISTED = "tasks_listed"
    TASK_CANCELLED = "task_cancelled"
    ESCALATE_TO_HUMAN = "escalate_to_human"
    ESCALATE_TO_PHONE = "escalate_to_phone"


@dataclass
class FieldConfidence:
    """Per-field confidence scores in [0, 1]."""
    name: float = 0.0
    phone: float = 0.0
    location: float = 0.0
    problem: float = 0.0


@dataclass
class ExtractionResult:
    name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    problem: Optional[str] = None
    confidence: FieldConfidence = field(default_factory=FieldConfidence)
    is_failed_call: bool = False
    urgency: Urgency = Urgency.MEDIUM
    source: ResultSource = ResultSource.FALLBACK


@dataclass
class FailedCallSignal:
    """Detector verdict for one message. Not persisted."""
    detected: bool
    trigger_phrase: Optional[str] = None
    category: Optional[TriggerCategory] = None
    customer_data: CustomerInfo = field(default_factory=CustomerInfo)
    missing_fields: list[str] = field(default_factory=list)
    problem_description: Optional[str] = None
    location: Optional[str] = None
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    reference: Optional[str] = None


@dataclass
class AnalysisResult:
    is_failed_call_scenario: bool = False
    failed_call_confidence: int = 0
    failed_call_reason: str = "No specific reason identified"
    needs_task_management: bool = False
    task_type: Optional[TaskType] = None
    task_confidence: int = 0
    primary_intent: str = "general_inquiry"
    secondary_intents: list[str] = field(default_factory=list)
    urgency_level: Urgency = Urgency.MEDIUM
    customer_frustration: int = 0
    service_expectation: str = "Standard service response"
    implicit_needs: list[str] = field(default_factory=list)
    suggested_action: str = "Provide general assistance"
    response_strategy: ResponseStrategy = ResponseStrategy.SOLUTION_FOCUSED
    source: ResultSource = ResultSource.AI


@dataclass
class TaskDetails:
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None


@dataclass
class TaskIntent:
    action: Optional[TaskAction] = None
    confidence: int = 0
    details: TaskDetails = field(default_factory=TaskDetails)
    reasoning: str = ""
    source: ResultSource = ResultSource.AI


@dataclass
class QuickReply:
    """Affordance rendered by the chat layer: either a value or an action URI."""
    text: str
    value: Optional[str] = None
    action: Optional[str] = None


@dataclass
class ContextualResponse:
    text: str
    quick_replies: list[QuickReply] = field(default_factory=list)


@dataclass
class OperationResult:
    success: bool
    message: str
    next_action: NextAction
    ticket: Optional[ServiceTicket] = None
    tickets: list[ServiceTicket] = field(default_factory=list)
    missing_info: list[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ChatReply:
    """Everything the chat layer needs to render one bot turn."""
    text: str
    quick_replies: list[QuickReply] = field(default_factory=list)
    ticket: Optional[ServiceTicket] = None
    next_action: Optional[NextAction] = None
    analysis: Optional[AnalysisResult] = None
    signal: Optional[FailedCallSignal] = None
