"""
AI Text Analyzer - language-model extraction for complex plain-text payloads

Primary provider: OpenAI chat completions (``openai`` SDK).
Secondary provider: Gemini ``generateContent`` over REST (``httpx``).
Both are optional; when neither answers usefully the caller falls back to
the regex heuristics.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx
from openai import OpenAI, OpenAIError

from ..config import AISettings
from ..errors import DeadlineExceeded, ProviderError, RetryExhausted
from ..schemas import ContactFields
from .jsonblob import first_json_object, strip_code_fences
from .retry import Deadline, retry_with_fallback

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You extract contact details from the text content of a scanned QR code.
The text may be a business card dump, an event badge, a signature block or a list separated by "|".

Instructions:
1) Extract the person's first and last name, job title (position) and company.
2) Extract ALL email addresses and ALL phone numbers (keep country codes, e.g. +1, +91).
3) Extract website, street address, city, zipcode (also "Pin Code", "Postal Code", "ZIP") and country.
4) Translate non-English text to English.
5) Use "" for missing strings and [] for missing arrays. Never invent values.

Return ONLY one JSON object, no markdown, exactly in this shape:
{
  "firstName": "",
  "lastName": "",
  "company": "",
  "position": "",
  "emails": [],
  "phoneNumbers": [],
  "website": "",
  "address": "",
  "city": "",
  "zipcode": "",
  "country": ""
}"""

STRING_KEYS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "company": "company",
    "position": "position",
    "website": "website",
    "address": "address",
    "city": "city",
    "zipcode": "zipcode",
    "zipCode": "zipcode",
    "postalCode": "zipcode",
    "country": "country",
}


def is_complex_text(text: str) -> bool:
    """Pipe-separated, more than 3 lines, or longer than 100 characters."""
    return "|" in text or len(text.splitlines()) > 3 or len(text) > 100


def _str_list(data: Dict[str, Any], plural: str, singular: str) -> List[str]:
    values = data.get(plural)
    if isinstance(values, list):
        return [v.strip() for v in values if isinstance(v, str) and v.strip()]
    single = data.get(singular)
    if isinstance(single, str) and single.strip():
        return [single.strip()]
    return []


def _fields_from_contact(data: Dict[str, Any]) -> ContactFields:
    out = ContactFields()
    for key, attr in STRING_KEYS.items():
        val = data.get(key)
        if isinstance(val, str) and val.strip() and not getattr(out, attr):
            setattr(out, attr, val.strip())
    emails = _str_list(data, "emails", "email")
    phones = _str_list(data, "phoneNumbers", "phoneNumber")
    if emails:
        out.email = emails[0]
    if phones:
        out.phone_number = phones[0]
    return out


def fields_from_model_json(data: Dict[str, Any]) -> ContactFields:
    """Map the model's JSON object onto the canonical fields.

    A ``contacts`` array (model saw several people) is merged, first
    non-empty value per field wins.
    """
    contacts = data.get("contacts")
    if isinstance(contacts, list) and contacts:
        merged = ContactFields()
        for c in contacts:
            if isinstance(c, dict):
                merged.fill_from(_fields_from_contact(c))
        return merged
    return _fields_from_contact(data)


class TextProvider(Protocol):
    name: str

    def complete(self, system_prompt: str, user_text: str, timeout_s: float) -> str:
        ...


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: Optional[OpenAI] = None) -> None:
        self.model = model
        # Failover is handled by TextAnalyzer; the SDK must not retry on its own.
        self._client = client or OpenAI(api_key=api_key, max_retries=0)

    def complete(self, system_prompt: str, user_text: str, timeout_s: float) -> str:
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_text},
                ],
                timeout=timeout_s,
            )
        except OpenAIError as e:
            raise ProviderError(self.name, str(e)) from e
        if not resp.choices:
            raise ProviderError(self.name, "no choices in response")
        content = resp.choices[0].message.content
        if not content:
            raise ProviderError(self.name, "empty message content")
        return content


class GeminiProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client()

    def close(self) -> None:
        self._client.close()

    def complete(self, system_prompt: str, user_text: str, timeout_s: float) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_text}]}],
            "generationConfig": {"temperature": 0.0, "maxOutputTokens": 2048},
        }
        try:
            resp = self._client.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=timeout_s,
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(self.name, str(e)) from e
        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderError(self.name, "no candidates in response")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = parts[0].get("text", "") if parts else candidates[0].get("text", "")
        if not text:
            raise ProviderError(self.name, "no text in candidate")
        return text


class TextAnalyzer:
    """Primary/secondary provider failover around one extraction prompt."""

    def __init__(self, providers: Sequence[TextProvider], *, timeout_s: float = 15.0) -> None:
        self.providers = list(providers)
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: AISettings, *, http_client: Optional[httpx.Client] = None) -> "TextAnalyzer":
        providers: List[TextProvider] = []
        if settings.enabled and settings.openai_api_key:
            providers.append(OpenAIProvider(settings.openai_api_key, settings.openai_model))
        if settings.enabled and settings.gemini_api_key:
            providers.append(GeminiProvider(
                settings.gemini_api_key,
                settings.gemini_model,
                base_url=settings.gemini_base_url,
                client=http_client,
            ))
        return cls(providers, timeout_s=settings.timeout_s)

    @property
    def configured(self) -> bool:
        return bool(self.providers)

    def _ask(self, provider: TextProvider, text: str, deadline: Deadline) -> Optional[ContactFields]:
        raw = provider.complete(EXTRACTION_PROMPT, text, deadline.timeout(self.timeout_s))
        data = first_json_object(strip_code_fences(raw))
        if data is None:
            raise ProviderError(provider.name, "no JSON object in response")
        fields = fields_from_model_json(data)
        return None if fields.is_empty() else fields

    def analyze(self, text: str, deadline: Optional[Deadline] = None) -> Optional[ContactFields]:
        """Extract fields with the first provider that answers usefully, else ``None``."""
        if not self.providers:
            return None
        deadline = deadline or Deadline(None)
        candidates = [(p.name, partial(self._ask, p, text, deadline)) for p in self.providers]
        try:
            return retry_with_fallback(candidates, attempts=1, deadline=deadline)
        except RetryExhausted as e:
            logger.warning("AI analysis unavailable, using heuristics: %s", e)
            return None
        except DeadlineExceeded:
            logger.warning("AI analysis abandoned: deadline exceeded")
            return None


class AITextStrategy:
    name = "ai"
    uses_network = True

    def __init__(self, analyzer: TextAnalyzer) -> None:
        self.analyzer = analyzer

    def applies(self, payload: str) -> bool:
        return self.analyzer.configured and is_complex_text(payload)

    def attempt(self, payload: str, deadline: Deadline) -> Optional[ContactFields]:
        return self.analyzer.analyze(payload, deadline)
