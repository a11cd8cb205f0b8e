"""Tests for customer field extraction (AI path and regex fallback)."""

import pytest

from servicedesk.detection.extractor import (
    CustomerInfoExtractor,
    clean_location,
    clean_name,
    clean_problem,
    detect_appliance,
    fallback_extract,
    infer_problem,
    is_generic_request,
)
from servicedesk.errors import AIServiceError
from servicedesk.schemas.results import ResultSource
from servicedesk.schemas.ticket import Urgency
from tests.conftest import FakeTextClient

SPEC_MESSAGE = "my name is gautham and phone no is 9544654402 and location is thiruvalla"


class TestFallbackExtract:
    def test_all_three_identity_fields(self):
        result = fallback_extract(SPEC_MESSAGE)
        assert result.name == "gautham"
        assert result.phone == "9544654402"
        assert result.location == "Thiruvalla"
        assert result.problem is None
        assert result.source is ResultSource.FALLBACK

    def test_confidences(self):
        result = fallback_extract(SPEC_MESSAGE)
        assert result.confidence.name == pytest.approx(0.7)
        assert result.confidence.phone == pytest.approx(0.8)
        assert result.confidence.location == pytest.approx(0.9)
        assert result.confidence.problem == pytest.approx(0.0)

    def test_problem_clause(self):
        result = fallback_extract("problem is Ac burst")
        assert result.problem == "AC sparking, burning or burst issue"
        assert result.confidence.problem == pytest.approx(0.6)

    def test_generic_request_has_no_problem(self):
        assert fallback_extract("I need AC repair").problem is None

    def test_bare_phone_number_lower_confidence(self):
        result = fallback_extract("reach me on 9876543210 please")
        assert result.phone == "9876543210"
        assert result.confidence.phone == pytest.approx(0.6)

    def test_phone_with_country_code(self):
        result = fallback_extract("my number is +91 95446 54402")
        assert result.phone == "9544654402"

    def test_invalid_phone_rejected(self):
        result = fallback_extract("my number is 5123456789")
        assert result.phone is None
        assert result.confidence.phone == pytest.approx(0.0)

    def test_name_stops_at_filler_word(self):
        assert fallback_extract("I'm really upset about this").name is None

    def test_complaint_is_not_a_name(self):
        result = fallback_extract("This is ridiculous, I tried calling and no one answered. My name is Ravi")
        assert result.name == "Ravi"
        assert result.confidence.name == pytest.approx(0.7)

    def test_unknown_place_after_preposition(self):
        result = fallback_extract("I live near Kumbanad junction")
        assert result.location == "Kumbanad junction"
        assert result.confidence.location == pytest.approx(0.6)

    def test_failed_call_and_urgency_cues(self):
        result = fallback_extract("The technician never came and this is urgent")
        assert result.is_failed_call is True
        assert result.urgency is Urgency.HIGH

    def test_plain_message_is_medium(self):
        result = fallback_extract("hello there")
        assert result.is_failed_call is False
        assert result.urgency is Urgency.MEDIUM


class TestInferProblem:
    def test_symptom_template_names_appliance(self):
        assert infer_problem("my fridge is leaking") == "Refrigerator leaking water"

    def test_symptom_without_appliance(self):
        assert infer_problem("it is making a loud noise") == "Appliance making unusual noise"

    def test_not_cooling_first(self):
        assert infer_problem("AC not cooling and also noisy") == "AC not cooling properly"

    def test_explicit_problem_clause(self):
        text = "the problem is a strange rattle from the outdoor unit"
        assert infer_problem(text) == "a strange rattle from the outdoor unit"

    def test_explicit_clause_stops_at_next_field(self):
        text = "problem is a broken remote and my name is Ravi"
        assert infer_problem(text) == "a broken remote"

    def test_explicit_generic_clause_rejected(self):
        assert infer_problem("problem is AC repair") is None

    def test_no_problem(self):
        assert infer_problem("hi, can someone call me") is None


class TestCleaners:
    def test_clean_name_rejects_field_words(self):
        assert clean_name("phone") is None
        assert clean_name("and") is None

    def test_clean_name_rejects_digits(self):
        assert clean_name("R2D2") is None

    def test_clean_name_keeps_valid(self):
        assert clean_name(" Anita Menon ") == "Anita Menon"

    def test_clean_location_normalizes_service_area(self):
        assert clean_location("near THIRUVALLA town") == "Thiruvalla"

    def test_clean_location_rejects_short(self):
        assert clean_location("XY") is None

    def test_clean_problem_rejects_generic(self):
        assert clean_problem("AC service") is None
        assert clean_problem("need some spare parts") is None

    def test_clean_problem_keeps_symptom(self):
        assert clean_problem("AC smells of burning") == "AC smells of burning"

    def test_is_generic_request(self):
        assert is_generic_request("I need AC repair")
        assert not is_generic_request("AC is leaking")

    def test_detect_appliance(self):
        assert detect_appliance("my A/C broke") == "AC"
        assert detect_appliance("the freezer is warm") == "Refrigerator"
        assert detect_appliance("my washing machine") == "Appliance"


class TestCustomerInfoExtractor:
    @pytest.mark.asyncio
    async def test_uses_ai_reply(self):
        client = FakeTextClient([{
            "isFailedCall": True,
            "urgency": "high",
            "name": "Gautham",
            "phone": "+91 95446 54402",
            "location": "Thiruvalla, Kerala",
            "problem": "AC sparking near the plug",
            "confidence": {"name": 0.9, "phone": 0.95, "location": 0.85, "problem": 0.8},
        }])
        result = await CustomerInfoExtractor(client).extract("anything")
        assert result.source is ResultSource.AI
        assert result.name == "Gautham"
        assert result.phone == "9544654402"
        assert result.location == "Thiruvalla"
        assert result.problem == "AC sparking near the plug"
        assert result.is_failed_call is True
        assert result.urgency is Urgency.HIGH
        assert result.confidence.phone == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_ai_output_is_cleaned(self):
        client = FakeTextClient([{
            "name": "phone", "phone": "12345", "location": "no", "problem": "AC repair",
            "confidence": {"name": 0.9, "phone": 0.9, "location": 0.9, "problem": 0.9},
        }])
        result = await CustomerInfoExtractor(client).extract("I need AC repair")
        assert result.name is None
        assert result.phone is None
        assert result.location is None
        assert result.problem is None

    @pytest.mark.asyncio
    async def test_service_error_falls_back(self):
        client = FakeTextClient([AIServiceError("timeout")])
        result = await CustomerInfoExtractor(client).extract(SPEC_MESSAGE)
        assert result.source is ResultSource.FALLBACK
        assert result.phone == "9544654402"

    @pytest.mark.asyncio
    async def test_reply_without_json_falls_back(self):
        client = FakeTextClient(["Sorry, I can't parse that."])
        result = await CustomerInfoExtractor(client).extract(SPEC_MESSAGE)
        assert result.source is ResultSource.FALLBACK
        assert result.location == "Thiruvalla"

    @pytest.mark.asyncio
    async def test_prompt_contains_message(self):
        client = FakeTextClient([{"name": None}])
        await CustomerInfoExtractor(client).extract("tried calling twice")
        assert "tried calling twice" in client.prompts[0]
