"""Tests for message analysis, task intent detection and contextual replies."""

import pytest

from servicedesk.detection.message_analyzer import (
    MessageAnalyzer,
    fallback_analysis,
    fallback_task_intent,
)
from servicedesk.errors import AIServiceError
from servicedesk.schemas.conversation import ConversationContext
from servicedesk.schemas.results import (
    AnalysisResult,
    ResponseStrategy,
    ResultSource,
    TaskAction,
    TaskType,
)
from servicedesk.schemas.ticket import Urgency
from tests.conftest import FakeTextClient


class TestFallbackAnalysis:
    def test_failed_call_message(self):
        result = fallback_analysis("I tried calling but the line was busy")
        assert result.is_failed_call_scenario is True
        assert result.failed_call_confidence == 70
        assert result.failed_call_reason == "Pattern-based detection"
        assert result.primary_intent == "failed_call_callback"
        assert result.customer_frustration == 6
        assert result.implicit_needs == ["callback", "communication"]
        assert result.response_strategy is ResponseStrategy.EMPATHETIC
        assert result.source is ResultSource.FALLBACK

    def test_weak_cue_counts(self):
        assert fallback_analysis("Is this the right phone for support?").is_failed_call_scenario

    def test_plain_message(self):
        result = fallback_analysis("hello")
        assert result.is_failed_call_scenario is False
        assert result.failed_call_confidence == 10
        assert result.failed_call_reason == "No patterns detected"
        assert result.needs_task_management is False
        assert result.task_type is None
        assert result.task_confidence == 10
        assert result.customer_frustration == 2
        assert result.urgency_level is Urgency.MEDIUM
        assert result.response_strategy is ResponseStrategy.SOLUTION_FOCUSED

    def test_task_keywords(self):
        result = fallback_analysis("Please check the status, it's urgent")
        assert result.needs_task_management is True
        assert result.task_type is TaskType.CREATE
        assert result.task_confidence == 60
        assert result.urgency_level is Urgency.CRITICAL

    def test_high_urgency_tier(self):
        assert fallback_analysis("My AC is not working").urgency_level is Urgency.HIGH

    def test_low_urgency_tier(self):
        assert fallback_analysis("no rush, whenever you can").urgency_level is Urgency.LOW


class TestFallbackTaskIntent:
    def test_cancel(self):
        intent = fallback_task_intent("Please cancel my request")
        assert intent.action is TaskAction.DELETE
        assert intent.confidence == 60
        assert intent.reasoning == "Keyword match: 'cancel'"
        assert intent.source is ResultSource.FALLBACK

    def test_status(self):
        assert fallback_task_intent("What's the status of my request?").action is TaskAction.STATUS

    def test_list(self):
        assert fallback_task_intent("Show me my requests").action is TaskAction.LIST

    def test_update(self):
        intent = fallback_task_intent("I want to reschedule my visit")
        assert intent.action is TaskAction.UPDATE
        assert intent.reasoning == "Keyword match: 'reschedule'"

    def test_create(self):
        assert fallback_task_intent("I'd like to book a service visit").action is TaskAction.CREATE

    def test_no_keywords(self):
        intent = fallback_task_intent("hello")
        assert intent.action is None
        assert intent.confidence == 0
        assert intent.reasoning == "No task keywords found"

    def test_details_from_message(self):
        intent = fallback_task_intent("my name is Anita, phone 9876543210, what's the status?")
        assert intent.details.customer_name == "Anita"
        assert intent.details.phone_number == "9876543210"


class TestAnalyze:
    def setup_method(self):
        self.context = ConversationContext(session_id="CHAT-test")

    @pytest.mark.asyncio
    async def test_ai_reply_mapped(self):
        client = FakeTextClient([{
            "isFailedCallScenario": True,
            "failedCallConfidence": 90,
            "failedCallReason": "Customer says nobody answered",
            "needsTaskManagement": False,
            "taskType": "null",
            "primaryIntent": "callback_request",
            "urgencyLevel": "high",
            "customerFrustration": 8,
            "responseStrategy": "empathetic",
        }])
        result = await MessageAnalyzer(client).analyze("Nobody ever answers!", self.context)
        assert result.source is ResultSource.AI
        assert result.is_failed_call_scenario is True
        assert result.failed_call_confidence == 90
        assert result.task_type is None
        assert result.urgency_level is Urgency.HIGH
        assert result.customer_frustration == 8
        assert result.response_strategy is ResponseStrategy.EMPATHETIC

    @pytest.mark.asyncio
    async def test_service_error_uses_fallback(self):
        client = FakeTextClient([AIServiceError("deadline exceeded")])
        result = await MessageAnalyzer(client).analyze("I tried calling", self.context)
        assert result.source is ResultSource.FALLBACK
        assert result.is_failed_call_scenario is True

    @pytest.mark.asyncio
    async def test_unusable_reply_uses_fallback(self):
        client = FakeTextClient(['{"temperature": 31}'])
        result = await MessageAnalyzer(client).analyze("hello", self.context)
        assert result.source is ResultSource.FALLBACK

    @pytest.mark.asyncio
    async def test_prompt_includes_known_customer_info(self):
        self.context.customer_info.name = "Ravi"
        client = FakeTextClient([{"primaryIntent": "greeting"}])
        await MessageAnalyzer(client).analyze("hi again", self.context)
        assert '"name": "Ravi"' in client.prompts[0]


class TestDetectTaskIntent:
    def setup_method(self):
        self.context = ConversationContext(session_id="CHAT-test")

    @pytest.mark.asyncio
    async def test_ai_intent(self):
        client = FakeTextClient([{
            "action": "update",
            "confidence": 85,
            "taskDetails": {"phoneNumber": "+91 98765 43210", "priority": "high"},
            "reasoning": "wants to change the visit",
        }])
        intent = await MessageAnalyzer(client).detect_task_intent("change my visit", self.context)
        assert intent.action is TaskAction.UPDATE
        assert intent.confidence == 85
        assert intent.details.phone_number == "9876543210"
        assert intent.details.priority == "high"
        assert intent.source is ResultSource.AI

    @pytest.mark.asyncio
    async def test_session_context_passed(self):
        client = FakeTextClient([{"action": "none", "confidence": 5}])
        intent = await MessageAnalyzer(client).detect_task_intent("hello", self.context)
        assert intent.action is None
        assert client.contexts[0] == {"session_id": "CHAT-test", "stage": "greeting"}

    @pytest.mark.asyncio
    async def test_failure_uses_keywords(self):
        client = FakeTextClient([AIServiceError("down")])
        intent = await MessageAnalyzer(client).detect_task_intent("cancel it", self.context)
        assert intent.action is TaskAction.DELETE
        assert intent.source is ResultSource.FALLBACK


class TestContextualResponse:
    def test_very_frustrated_failed_call(self):
        analysis = AnalysisResult(
            is_failed_call_scenario=True, failed_call_confidence=85, customer_frustration=8,
        )
        response = MessageAnalyzer.generate_contextual_response(analysis, "Ravi")
        assert response.text.startswith("I sincerely apologize for the inconvenience, Ravi.")
        assert [q.text for q in response.quick_replies] == ["Call Now", "WhatsApp", "Schedule Callback"]
        assert response.quick_replies[0].action.startswith("tel:")
        assert response.quick_replies[1].action.startswith("https://wa.me/")
        assert response.quick_replies[2].value == "schedule_callback"

    def test_moderately_frustrated_failed_call(self):
        analysis = AnalysisResult(
            is_failed_call_scenario=True, failed_call_confidence=85, customer_frustration=5,
        )
        response = MessageAnalyzer.generate_contextual_response(analysis, "Ravi")
        assert response.text.startswith("Thank you for reaching out, Ravi.")

    def test_calm_failed_call_without_name(self):
        analysis = AnalysisResult(
            is_failed_call_scenario=True, failed_call_confidence=85, customer_frustration=1,
        )
        response = MessageAnalyzer.generate_contextual_response(analysis)
        assert response.text.startswith("Hi there!")

    def test_confidence_threshold_is_strict(self):
        analysis = AnalysisResult(
            is_failed_call_scenario=True, failed_call_confidence=60, customer_frustration=8,
        )
        response = MessageAnalyzer.generate_contextual_response(analysis, "Ravi")
        assert not response.text.startswith("I sincerely apologize")

    def test_task_management(self):
        analysis = AnalysisResult(
            needs_task_management=True, task_confidence=70, task_type=TaskType.STATUS_CHECK,
        )
        response = MessageAnalyzer.generate_contextual_response(analysis, "Anita")
        assert response.text.startswith("Let me check the status of your request for you, Anita.")
        assert [q.text for q in response.quick_replies] == ["Create Request", "Check Status", "Call Support"]

    def test_strategy_reply(self):
        analysis = AnalysisResult(response_strategy=ResponseStrategy.ESCALATION)
        response = MessageAnalyzer.generate_contextual_response(analysis)
        assert response.text.startswith("I understand, there. This seems like something our senior team")
        assert [q.text for q in response.quick_replies] == ["Call Us", "WhatsApp"]
