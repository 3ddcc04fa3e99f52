from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from openai import OpenAIError

from qrlead.config import AISettings
from qrlead.errors import ProviderError
from qrlead.pipeline.ai import (
    EXTRACTION_PROMPT,
    AITextStrategy,
    GeminiProvider,
    OpenAIProvider,
    TextAnalyzer,
    fields_from_model_json,
    is_complex_text,
)
from qrlead.pipeline.retry import Deadline


MODEL_JSON = {
    "firstName": "Priya",
    "lastName": "Raman",
    "company": "Nimbus Labs",
    "position": "Head of Sales",
    "emails": ["priya@nimbus.io", "sales@nimbus.io"],
    "phoneNumbers": ["+91 98450 12345"],
    "website": "",
    "address": "",
    "city": "Bengaluru",
    "zipcode": "560001",
    "country": "India",
}


def _openai_client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        message = SimpleNamespace(content=content)
        client.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
    return client


def _gemini_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def _gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_is_complex_text():
    assert is_complex_text("Jane | Acme") is True
    assert is_complex_text("a\nb\nc\nd") is True
    assert is_complex_text("x" * 101) is True
    assert is_complex_text("Jane Smith\njane@x.com\n+14155550100") is False


def test_fields_from_model_json_takes_first_of_arrays():
    f = fields_from_model_json(MODEL_JSON)
    assert (f.first_name, f.last_name) == ("Priya", "Raman")
    assert f.email == "priya@nimbus.io"
    assert f.phone_number == "+91 98450 12345"
    assert f.zipcode == "560001"
    assert f.website == ""


def test_fields_from_model_json_merges_contacts_and_legacy_keys():
    data = {"contacts": [
        {"firstName": "Ana", "email": "ana@x.io"},
        {"firstName": "Ben", "company": "X Corp", "phoneNumber": "+1 212 555 0100"},
    ]}
    f = fields_from_model_json(data)
    assert f.first_name == "Ana"
    assert f.email == "ana@x.io"
    assert f.company == "X Corp"
    assert f.phone_number == "+1 212 555 0100"


def test_openai_provider_sends_prompt_without_sdk_retries():
    client = _openai_client(content="ok")
    provider = OpenAIProvider("sk-test", "gpt-4o-mini", client=client)
    assert provider.complete(EXTRACTION_PROMPT, "card text", 15.0) == "ok"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["timeout"] == 15.0
    assert kwargs["messages"][0] == {"role": "system", "content": EXTRACTION_PROMPT}
    assert kwargs["messages"][1]["content"] == "card text"


def test_openai_provider_wraps_sdk_errors():
    provider = OpenAIProvider("sk-test", client=_openai_client(error=OpenAIError("boom")))
    with pytest.raises(ProviderError) as exc:
        provider.complete(EXTRACTION_PROMPT, "text", 15.0)
    assert exc.value.provider == "openai"


def test_gemini_provider_posts_generate_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_gemini_reply("hello"))

    provider = GeminiProvider("g-key", "gemini-2.5-flash", client=_gemini_client(handler))
    assert provider.complete("sys", "user text", 15.0) == "hello"
    assert seen["url"].endswith("/models/gemini-2.5-flash:generateContent")
    assert seen["key"] == "g-key"
    assert seen["body"]["systemInstruction"]["parts"][0]["text"] == "sys"
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "user text"


def test_gemini_provider_non_2xx_is_provider_error():
    provider = GeminiProvider("g-key", client=_gemini_client(lambda r: httpx.Response(500, json={})))
    with pytest.raises(ProviderError):
        provider.complete("sys", "text", 15.0)


def test_analyzer_strips_code_fences():
    fenced = "Here you go:\n```json\n" + json.dumps(MODEL_JSON) + "\n```"
    analyzer = TextAnalyzer([OpenAIProvider("k", client=_openai_client(content=fenced))])
    f = analyzer.analyze("Priya Raman | Nimbus Labs")
    assert f is not None
    assert f.company == "Nimbus Labs"


def test_analyzer_fails_over_to_secondary():
    primary = OpenAIProvider("k", client=_openai_client(error=OpenAIError("timeout")))
    secondary = GeminiProvider(
        "g", client=_gemini_client(lambda r: httpx.Response(200, json=_gemini_reply(json.dumps(MODEL_JSON))))
    )
    f = TextAnalyzer([primary, secondary]).analyze("Priya Raman | Nimbus Labs")
    assert f is not None
    assert f.email == "priya@nimbus.io"


def test_analyzer_unparsable_replies_return_none():
    primary = OpenAIProvider("k", client=_openai_client(content="I cannot help with that."))
    secondary = GeminiProvider("g", client=_gemini_client(lambda r: httpx.Response(503, json={})))
    assert TextAnalyzer([primary, secondary]).analyze("a | b") is None


def test_analyzer_empty_json_moves_to_next_provider():
    primary = OpenAIProvider("k", client=_openai_client(content=json.dumps({"firstName": "", "emails": []})))
    secondary = OpenAIProvider("k2", client=_openai_client(content=json.dumps(MODEL_JSON)))
    f = TextAnalyzer([primary, secondary]).analyze("a | b")
    assert f is not None and f.first_name == "Priya"


def test_analyzer_expired_deadline_returns_none():
    client = _openai_client(content=json.dumps(MODEL_JSON))
    analyzer = TextAnalyzer([OpenAIProvider("k", client=client)])
    assert analyzer.analyze("a | b", Deadline(0)) is None
    client.chat.completions.create.assert_not_called()


def test_from_settings_skips_providers_without_keys():
    assert TextAnalyzer.from_settings(AISettings()).configured is False
    analyzer = TextAnalyzer.from_settings(AISettings(gemini_api_key="g"))
    assert [p.name for p in analyzer.providers] == ["gemini"]
    analyzer.providers[0].close()
    assert TextAnalyzer.from_settings(AISettings(enabled=False, gemini_api_key="g")).configured is False


def test_ai_strategy_applies_only_to_complex_text_with_providers():
    configured = AITextStrategy(TextAnalyzer([OpenAIProvider("k", client=_openai_client(content="{}"))]))
    assert configured.uses_network is True
    assert configured.applies("Jane | Acme") is True
    assert configured.applies("Jane") is False
    assert AITextStrategy(TextAnalyzer([])).applies("Jane | Acme") is False
