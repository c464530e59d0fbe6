from unittest.mock import patch

import pytest

import analysis
from analysis import (
    FALLBACK_KEY_POINT,
    AnalysisResult,
    ConfigurationError,
    ProviderError,
    ValidationError,
    analyze_document,
    generate_demo_analysis,
    mask_pii_locally,
    parse_simplification,
)
from tests.conftest import MASKED_TEXT, SUMMARY_JSON, make_model


class TestParseSimplification:
    def test_extracts_json_wrapped_in_prose_and_fences(self):
        simplified, points = parse_simplification(SUMMARY_JSON)
        assert simplified == "You are renting an apartment for one year."
        assert points == ["Rent is due monthly", "Deposit is refundable"]

    def test_no_braces_falls_back_to_raw_text(self):
        raw = "The model answered in plain prose only."
        simplified, points = parse_simplification(raw)
        assert simplified == raw
        assert points == [FALLBACK_KEY_POINT]

    def test_malformed_json_falls_back_to_raw_text(self):
        raw = '{"simplifiedText": "cut off mid-'
        raw += "sentence }"
        simplified, points = parse_simplification(raw)
        assert simplified == raw
        assert points == [FALLBACK_KEY_POINT]

    def test_missing_fields_are_filled(self):
        raw = '{"keyPoints": "not a list"}'
        simplified, points = parse_simplification(raw)
        assert simplified == raw
        assert points == [FALLBACK_KEY_POINT]

    def test_key_points_coerced_to_strings(self):
        _, points = parse_simplification('{"simplifiedText": "ok", "keyPoints": [1, "two"]}')
        assert points == ["1", "two"]


class TestAnalyzeDocument:
    def test_missing_key(self, fake_genai):
        with pytest.raises(ConfigurationError) as exc:
            analyze_document("some text", None)
        assert "GOOGLE_GENERATIVE_AI_API_KEY" in str(exc.value)
        assert exc.value.status_code == 400
        fake_genai.GenerativeModel.assert_not_called()

    @pytest.mark.parametrize("content", [None, ""])
    def test_missing_content(self, fake_genai, content):
        with pytest.raises(ValidationError) as exc:
            analyze_document(content, "key")
        assert exc.value.status_code == 400
        fake_genai.GenerativeModel.assert_not_called()

    def test_non_string_content(self, fake_genai):
        with pytest.raises(ValidationError):
            analyze_document(["a", "list"], "key")

    def test_two_sequential_calls(self, fake_genai):
        result = analyze_document("Lease between John Smith and Jane Doe.", "key", "gemini-test")

        fake_genai.configure.assert_called_once_with(api_key="key")
        fake_genai.GenerativeModel.assert_called_once_with("gemini-test")
        model = fake_genai.GenerativeModel.return_value
        assert model.generate_content.call_count == 2
        first, second = [c.args[0] for c in model.generate_content.call_args_list]
        assert "legal literacy assistant" in first
        assert "Lease between John Smith" in first
        assert "[SSN]" in second and "Return only the masked document text" in second

        assert result.simplified_text == "You are renting an apartment for one year."
        assert result.masked_text == MASKED_TEXT

    def test_provider_failure_message_passes_through(self, fake_genai):
        fake_genai.GenerativeModel.return_value = make_model(RuntimeError("quota exceeded"))
        with pytest.raises(ProviderError) as exc:
            analyze_document("text", "key")
        assert str(exc.value) == "quota exceeded"
        assert exc.value.status_code == 500

    def test_masking_failure_is_provider_error(self, fake_genai):
        fake_genai.GenerativeModel.return_value = make_model(SUMMARY_JSON, ValueError("model unavailable"))
        with pytest.raises(ProviderError, match="model unavailable"):
            analyze_document("text", "key")

    def test_empty_provider_message_gets_hint(self, fake_genai):
        fake_genai.GenerativeModel.return_value = make_model(RuntimeError())
        with pytest.raises(ProviderError) as exc:
            analyze_document("text", "key")
        assert "Generative Language API" in str(exc.value)


class TestDemoMode:
    def test_masks_known_patterns(self):
        masked = mask_pii_locally(
            "Tenant John Smith, SSN 123-45-6789, phone 555-123-4567, email tenant@example.com."
        )
        assert "[NAME]" in masked and "John Smith" not in masked
        assert "[SSN]" in masked and "123-45-6789" not in masked
        assert "[PHONE]" in masked
        assert "[EMAIL]" in masked

    def test_address_is_masked(self):
        assert mask_pii_locally("Lives at 42 elm street today") == "Lives at [ADDRESS] today"

    def test_waits_fixed_delay_without_provider(self):
        delays = []
        with patch.object(analysis, "genai") as genai:
            result = generate_demo_analysis("John Smith owes 123-45-6789", sleep=delays.append)
        assert delays == [analysis.DEMO_DELAY_SECONDS]
        assert genai.method_calls == []
        assert result.masked_text == "[NAME] owes [SSN]"
        assert len(result.key_points) == 4
        assert result.simplified_text.startswith("This is a demonstration")


def test_result_wire_format():
    result = AnalysisResult("summary", ["a"], "masked")
    assert result.to_dict() == {"simplifiedText": "summary", "keyPoints": ["a"], "maskedText": "masked"}
    assert AnalysisResult.from_dict(result.to_dict()) == result
