"""Tests for coercion of AI reply payloads."""

import pytest

from servicedesk.schemas.ai_payloads import (
    AnalysisPayload,
    ExtractionPayload,
    TaskIntentPayload,
)


class TestAnalysisPayload:
    def test_camel_case_aliases(self):
        payload = AnalysisPayload.model_validate({
            "isFailedCallScenario": True,
            "failedCallConfidence": 85,
            "urgencyLevel": "high",
            "responseStrategy": "empathetic",
        })
        assert payload.is_failed_call_scenario is True
        assert payload.failed_call_confidence == 85
        assert payload.urgency_level == "high"
        assert payload.response_strategy == "empathetic"

    def test_defaults_when_fields_absent(self):
        payload = AnalysisPayload.model_validate({"primaryIntent": "greeting"})
        assert payload.failed_call_confidence == 0
        assert payload.failed_call_reason == "No specific reason identified"
        assert payload.urgency_level == "medium"
        assert payload.response_strategy == "solution-focused"

    def test_percentages_clamped(self):
        payload = AnalysisPayload.model_validate({
            "failedCallConfidence": 250, "taskConfidence": -4, "customerFrustration": 42,
        })
        assert payload.failed_call_confidence == 100
        assert payload.task_confidence == 0
        assert payload.customer_frustration == 10

    def test_numeric_strings_accepted(self):
        payload = AnalysisPayload.model_validate({"failedCallConfidence": "72.4"})
        assert payload.failed_call_confidence == 72

    def test_garbage_numbers_fall_to_zero(self):
        payload = AnalysisPayload.model_validate({"failedCallConfidence": "very high"})
        assert payload.failed_call_confidence == 0

    def test_unknown_enum_values_fall_back(self):
        payload = AnalysisPayload.model_validate({
            "urgencyLevel": "apocalyptic", "responseStrategy": "shouting", "taskType": "null",
        })
        assert payload.urgency_level == "medium"
        assert payload.response_strategy == "solution-focused"
        assert payload.task_type is None

    def test_string_booleans(self):
        payload = AnalysisPayload.model_validate({
            "isFailedCallScenario": "yes", "needsTaskManagement": "false",
        })
        assert payload.is_failed_call_scenario is True
        assert payload.needs_task_management is False

    def test_lists_keep_only_strings(self):
        payload = AnalysisPayload.model_validate({
            "secondaryIntents": ["callback", 3, "", None, " quote "],
            "implicitNeeds": "callback",
        })
        assert payload.secondary_intents == ["callback", "quote"]
        assert payload.implicit_needs == []


class TestExtractionPayload:
    def test_null_strings_become_none(self):
        payload = ExtractionPayload.model_validate({
            "name": "null", "phone": "", "location": "N/A", "problem": "undefined",
        })
        assert payload.name is None
        assert payload.phone is None
        assert payload.location is None
        assert payload.problem is None

    def test_numeric_phone_becomes_text(self):
        payload = ExtractionPayload.model_validate({"phone": 9544654402})
        assert payload.phone == "9544654402"

    def test_confidence_clamped_to_unit_range(self):
        payload = ExtractionPayload.model_validate({
            "confidence": {"name": 1.7, "phone": -1, "location": "0.5", "problem": None},
        })
        assert payload.confidence.name == pytest.approx(1.0)
        assert payload.confidence.phone == pytest.approx(0.0)
        assert payload.confidence.location == pytest.approx(0.5)
        assert payload.confidence.problem == pytest.approx(0.0)

    def test_non_object_confidence_ignored(self):
        payload = ExtractionPayload.model_validate({"name": "Ravi", "confidence": 0.9})
        assert payload.confidence.name == pytest.approx(0.0)


class TestTaskIntentPayload:
    def test_action_and_details(self):
        payload = TaskIntentPayload.model_validate({
            "action": "STATUS",
            "confidence": 88,
            "taskDetails": {"phoneNumber": "9544654402", "priority": "High"},
            "reasoning": "asks about progress",
        })
        assert payload.action == "status"
        assert payload.task_details.phone_number == "9544654402"
        assert payload.task_details.priority == "high"

    def test_none_action_is_none(self):
        payload = TaskIntentPayload.model_validate({"action": "none", "confidence": 10})
        assert payload.action is None

    def test_unknown_priority_dropped(self):
        payload = TaskIntentPayload.model_validate({"taskDetails": {"priority": "critical"}})
        assert payload.task_details.priority is None

    def test_missing_reasoning_gets_default(self):
        payload = TaskIntentPayload.model_validate({"action": "list"})
        assert payload.reasoning == "AI analysis completed"
