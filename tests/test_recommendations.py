import pytest
import requests

from services.recommendations import (
    AdvisoryService,
    DisabledProvider,
    GeminiProvider,
    OpenAIProvider,
    ProviderUnavailable,
    RecommendationProvider,
    _parse_json_object,
    build_provider,
)


class StubProvider(RecommendationProvider):
    name = "stub"

    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    def complete_json(self, system_prompt, prompt, image_b64=None):
        self.calls.append((system_prompt, prompt, image_b64))
        if self.error:
            raise self.error
        return dict(self.answer)


def test_build_provider_prefers_explicit_choice():
    assert isinstance(build_provider("gemini", "sk-openai", "g-key"), GeminiProvider)
    assert isinstance(build_provider("none", "sk-openai", None), DisabledProvider)


def test_build_provider_falls_back_to_configured_keys():
    assert isinstance(build_provider(None, "sk-openai", "g-key"), OpenAIProvider)
    assert isinstance(build_provider(None, None, "g-key"), GeminiProvider)
    assert isinstance(build_provider(None, None, None), DisabledProvider)


def test_build_provider_without_matching_key_is_disabled():
    assert isinstance(build_provider("openai", None, "g-key"), DisabledProvider)
    assert isinstance(build_provider("claude", "sk-openai", None), DisabledProvider)


def test_parse_json_object_accepts_fenced_output():
    assert _parse_json_object('```json\n{"quality_score": 8}\n```') == {"quality_score": 8}
    with pytest.raises(ProviderUnavailable):
        _parse_json_object("looks fresh to me")
    with pytest.raises(ProviderUnavailable):
        _parse_json_object("[1, 2]")


async def test_disabled_provider_returns_fallbacks():
    advisor = AdvisoryService(DisabledProvider())

    recommendations = await advisor.get_smart_recommendations("v1", "vegetables", {"lat": 28.65, "lon": 77.19})
    quality = await advisor.analyze_quality("aGVsbG8=", "tomatoes")
    negotiation = await advisor.generate_price_negotiation(40, 35)

    assert recommendations["available"] is False
    assert recommendations["recommendations"] == []
    assert quality["available"] is False
    assert quality["quality_score"] == 0
    assert negotiation["available"] is False
    assert negotiation["suggestion"]


@pytest.mark.parametrize("error", [
    ProviderUnavailable("timeout"),
    RuntimeError("unexpected"),
])
async def test_provider_failures_degrade(error):
    advisor = AdvisoryService(StubProvider(error=error))
    result = await advisor.generate_price_negotiation(40, 35, "bulk order")
    assert result["available"] is False


async def test_successful_answer_is_marked_available():
    provider = StubProvider(answer={"quality_score": 8, "freshness": "good"})
    advisor = AdvisoryService(provider)

    result = await advisor.analyze_quality("aGVsbG8=", "tomatoes")

    assert result == {"quality_score": 8, "freshness": "good", "available": True, "provider": "stub"}
    assert provider.calls[0][2] == "aGVsbG8="


def test_openai_http_errors_become_provider_unavailable(monkeypatch):
    def fail(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(requests, "post", fail)
    with pytest.raises(ProviderUnavailable):
        OpenAIProvider("sk-test").complete_json("system", "prompt")


def test_gemini_reads_candidate_text(monkeypatch):
    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"candidates": [{"content": {"parts": [{"text": '{"suggestion": "Bhaiya, thoda kam kijiye"}'}]}}]}

    captured = {}

    def fake_post(url, **kwargs):
        captured["url"] = url
        captured["params"] = kwargs.get("params")
        return FakeResponse()

    monkeypatch.setattr(requests, "post", fake_post)
    result = GeminiProvider("g-key", model="gemini-pro").complete_json("system", "prompt")

    assert result == {"suggestion": "Bhaiya, thoda kam kijiye"}
    assert "gemini-pro:generateContent" in captured["url"]
    assert captured["params"] == {"key": "g-key"}
