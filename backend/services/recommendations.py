"""
Advisory AI features: supplier recommendations, produce quality scoring and
price-negotiation phrasing.

The provider is chosen once from configuration. Results are advisory, so any
failure (no key, timeout, bad response) degrades to a default payload flagged
with "available": False instead of raising.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import json
import logging

import requests
from fastapi.concurrency import run_in_threadpool

import config

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class ProviderUnavailable(Exception):
    """Raised by providers when a completion cannot be produced"""


class RecommendationProvider(ABC):
    name = "base"

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def complete_json(self, system_prompt: str, prompt: str, image_b64: Optional[str] = None) -> Dict[str, Any]:
        """Return the model's JSON answer as a dict, or raise ProviderUnavailable"""


def _parse_json_object(text: str) -> Dict[str, Any]:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        parsed = json.loads(cleaned)
    except (TypeError, ValueError):
        raise ProviderUnavailable("Model did not return valid JSON")
    if not isinstance(parsed, dict):
        raise ProviderUnavailable("Model returned JSON that is not an object")
    return parsed


class OpenAIProvider(RecommendationProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o", timeout: float = 15):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def complete_json(self, system_prompt: str, prompt: str, image_b64: Optional[str] = None) -> Dict[str, Any]:
        if image_b64:
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}},
            ]
        else:
            user_content = prompt

        try:
            response = requests.post(
                OPENAI_CHAT_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_content},
                    ],
                    "response_format": {"type": "json_object"},
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"OpenAI request failed: {e}")

        return _parse_json_object(content or "")


class GeminiProvider(RecommendationProvider):
    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-pro", timeout: float = 15):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def complete_json(self, system_prompt: str, prompt: str, image_b64: Optional[str] = None) -> Dict[str, Any]:
        text = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        if image_b64:
            # Text-only model: ask for general guidance instead of an image verdict
            text += "\nNote: image analysis is not available, give general quality guidance."

        try:
            response = requests.post(
                GEMINI_GENERATE_URL.format(model=self.model),
                params={"key": self.api_key},
                json={
                    "contents": [{"parts": [{"text": text}]}],
                    "generationConfig": {"temperature": 0.7, "candidateCount": 1},
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            content = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"Gemini request failed: {e}")

        return _parse_json_object(content or "")


class DisabledProvider(RecommendationProvider):
    name = "none"

    @property
    def is_configured(self) -> bool:
        return False

    def complete_json(self, system_prompt: str, prompt: str, image_b64: Optional[str] = None) -> Dict[str, Any]:
        raise ProviderUnavailable("No AI API key configured")


def build_provider(
    provider: Optional[str] = None,
    openai_api_key: Optional[str] = None,
    gemini_api_key: Optional[str] = None,
) -> RecommendationProvider:
    """
    Pick a provider: an explicit AI_PROVIDER wins, otherwise OpenAI when its key
    is set, then Gemini, then the disabled provider.
    """
    timeout = config.AI_REQUEST_TIMEOUT_SECONDS
    choice = (provider or "").strip().lower()

    if choice == "none":
        return DisabledProvider()
    if choice == "openai" or (not choice and openai_api_key):
        if openai_api_key:
            return OpenAIProvider(openai_api_key, config.OPENAI_MODEL, timeout)
        logger.warning("AI_PROVIDER is 'openai' but OPENAI_API_KEY is not set; AI features disabled")
        return DisabledProvider()
    if choice == "gemini" or (not choice and gemini_api_key):
        if gemini_api_key:
            return GeminiProvider(gemini_api_key, config.GEMINI_MODEL, timeout)
        logger.warning("AI_PROVIDER is 'gemini' but GEMINI_API_KEY is not set; AI features disabled")
        return DisabledProvider()
    if choice:
        logger.warning(f"Unknown AI_PROVIDER '{choice}'; AI features disabled")
    return DisabledProvider()


_provider: Optional[RecommendationProvider] = None


def get_recommendation_provider() -> RecommendationProvider:
    global _provider
    if _provider is None:
        _provider = build_provider(config.AI_PROVIDER, config.OPENAI_API_KEY, config.GEMINI_API_KEY)
        logger.info(f"AI advisory provider: {_provider.name}")
    return _provider


class AdvisoryService:
    """AI-backed advice with guaranteed fallbacks"""

    def __init__(self, provider: RecommendationProvider):
        self.provider = provider

    async def _ask(self, system_prompt: str, prompt: str, image_b64: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if not self.provider.is_configured:
            return None
        try:
            return await run_in_threadpool(self.provider.complete_json, system_prompt, prompt, image_b64)
        except ProviderUnavailable as e:
            logger.warning(f"AI provider {self.provider.name} unavailable: {str(e)}")
            return None
        except Exception as e:
            logger.error(f"Unexpected AI provider error from {self.provider.name}: {str(e)}")
            return None

    def _wrap(self, result: Dict[str, Any]) -> Dict[str, Any]:
        return {**result, "available": True, "provider": self.provider.name}

    async def get_smart_recommendations(
        self,
        vendor_id: str,
        category: str,
        location: Dict[str, float],
        urgency: str = "medium",
    ) -> Dict[str, Any]:
        system_prompt = (
            "You are an AI assistant for Indian street food vendors. Provide smart supplier "
            "recommendations based on location, category, and urgency. Always respond in JSON "
            "format with a recommendations array."
        )
        prompt = (
            f"Find suppliers for category: {category}, location: {location.get('lat')},{location.get('lon')}, "
            f"urgency: {urgency}. Consider proximity, reliability, price, and delivery speed. Respond in "
            f"JSON with a recommendations array containing supplier names, ratings, and distances."
        )
        result = await self._ask(system_prompt, prompt)
        if result is None:
            return {
                "recommendations": [],
                "message": "AI recommendations temporarily unavailable",
                "available": False,
                "provider": self.provider.name,
            }
        result.setdefault("recommendations", [])
        return self._wrap(result)

    async def analyze_quality(self, image_b64: str, product_type: str) -> Dict[str, Any]:
        system_prompt = (
            "You are a food quality expert. Analyze images of raw materials for Indian street food "
            "and provide quality scores (1-10) and recommendations. Respond in JSON format."
        )
        prompt = (
            f"Analyze the quality of this {product_type}. Provide a quality score (1-10), freshness "
            f"assessment, and any concerns. Respond in JSON with quality_score, freshness, and concerns fields."
        )
        result = await self._ask(system_prompt, prompt, image_b64)
        if result is None:
            return {
                "quality_score": 0,
                "message": "Quality analysis temporarily unavailable",
                "available": False,
                "provider": self.provider.name,
            }
        result.setdefault("quality_score", 0)
        return self._wrap(result)

    async def generate_price_negotiation(self, current_price: float, target_price: float, context: str = "") -> Dict[str, Any]:
        system_prompt = (
            "You are a negotiation expert for Indian street food vendors. Provide polite, culturally "
            "appropriate negotiation suggestions in Hindi and English. Respond in JSON format."
        )
        prompt = (
            f"Help negotiate price from ₹{current_price} to ₹{target_price}. Context: {context}. Provide "
            f"respectful negotiation phrases in both Hindi and English. Respond in JSON with a suggestion field."
        )
        result = await self._ask(system_prompt, prompt)
        if result is None:
            return {
                "suggestion": "Negotiation assistance temporarily unavailable",
                "available": False,
                "provider": self.provider.name,
            }
        result.setdefault("suggestion", "")
        return self._wrap(result)
