"""
Tests for the provider adapters and the shared attempt matrix.

Covers:
- Model x credential state machine (credential vs. model failures)
- Hugging Face: loading models are skipped, never fatal
- OpenRouter: key rotation on 401/402/429, model skip on other statuses
- Gemini: contents/config translation, citations, streaming
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from relay.config import LLMConfig
from relay.discovery.catalog import ModelDiscoveryCache
from relay.models.conversation import Attachment, ConversationTurn, Role
from relay.models.outcome import AttemptClassification, ProviderAttemptOutcome
from relay.providers.gemini import (
    GeminiProvider,
    build_config,
    build_contents,
    extract_citations,
    format_sources,
)
from relay.providers.huggingface import (
    HuggingFaceProvider,
    build_chat_prompt,
    parse_generated_text,
)
from relay.providers.openrouter import OpenRouterProvider
from relay.resilience.attempts import classify_status, run_attempt_matrix
from relay.resilience.errors import (
    ConfigurationError,
    MalformedOutputError,
    ProviderExhaustedError,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def llm_config():
    return LLMConfig(gemini_api_key="test-gemini-key")


@pytest.fixture
def mock_cache():
    cache = MagicMock(spec=ModelDiscoveryCache)
    cache.ensure_fresh = AsyncMock()
    cache.openrouter_models = ("catalog/model-a:free", "catalog/deepseek-coder:free")
    cache.huggingface_models = ("hf/model-a", "hf/model-b")
    return cache


def recording_attempt(script):
    """Attempt function driven by ``script[(model, key)]``; records call order."""
    calls = []

    async def attempt(model, key):
        calls.append((model, key))
        return script[(model, key)]

    return attempt, calls


def ok(text):
    return ProviderAttemptOutcome.success(text)


def fail(classification, status=None):
    return ProviderAttemptOutcome.failure(classification, f"failed with {status}", status)


# ============================================================================
# Attempt matrix
# ============================================================================


class TestAttemptMatrix:
    def test_classify_status(self):
        assert classify_status(429, (401, 402, 429)) == AttemptClassification.CREDENTIAL_EXHAUSTED
        assert classify_status(402, (401, 402, 429)) == AttemptClassification.CREDENTIAL_EXHAUSTED
        assert classify_status(404, (401, 402, 429)) == AttemptClassification.MODEL_UNAVAILABLE
        assert classify_status(500, (401, 429)) == AttemptClassification.MODEL_UNAVAILABLE

    def test_failed_outcome_requires_reason(self):
        with pytest.raises(ValueError):
            ProviderAttemptOutcome(classification=AttemptClassification.TRANSIENT)

    @pytest.mark.asyncio
    async def test_credential_exhausted_moves_to_next_key_same_model(self):
        attempt, calls = recording_attempt(
            {
                ("m1", "k1"): fail(AttemptClassification.CREDENTIAL_EXHAUSTED, 429),
                ("m1", "k2"): ok("answer from m1"),
            }
        )

        result = await run_attempt_matrix("Test", ["m1", "m2"], ["k1", "k2"], attempt)

        assert result.text == "answer from m1"
        assert result.model == "m1"
        assert calls == [("m1", "k1"), ("m1", "k2")]

    @pytest.mark.asyncio
    async def test_other_status_abandons_model_without_trying_other_keys(self):
        attempt, calls = recording_attempt(
            {
                ("m1", "k1"): fail(AttemptClassification.MODEL_UNAVAILABLE, 404),
                ("m2", "k1"): ok("answer from m2"),
            }
        )

        result = await run_attempt_matrix("Test", ["m1", "m2"], ["k1", "k2"], attempt)

        assert result.model == "m2"
        assert calls == [("m1", "k1"), ("m2", "k1")]

    @pytest.mark.asyncio
    async def test_transient_moves_to_next_key(self):
        attempt, calls = recording_attempt(
            {
                ("m1", "k1"): fail(AttemptClassification.TRANSIENT),
                ("m1", "k2"): ok("second key"),
            }
        )

        result = await run_attempt_matrix("Test", ["m1"], ["k1", "k2"], attempt)

        assert result.text == "second key"
        assert calls == [("m1", "k1"), ("m1", "k2")]

    @pytest.mark.asyncio
    async def test_exhaustion_carries_last_error(self):
        attempt, calls = recording_attempt(
            {
                ("m1", "k1"): fail(AttemptClassification.CREDENTIAL_EXHAUSTED, 401),
                ("m2", "k1"): fail(AttemptClassification.MODEL_UNAVAILABLE, 503),
            }
        )

        with pytest.raises(ProviderExhaustedError) as exc_info:
            await run_attempt_matrix("Test", ["m1", "m2"], ["k1"], attempt)

        assert exc_info.value.last_error == "failed with 503"
        assert exc_info.value.attempts == 2
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_no_credentials_or_models(self):
        attempt, calls = recording_attempt({})

        with pytest.raises(ConfigurationError):
            await run_attempt_matrix("Test", ["m1"], [], attempt)
        with pytest.raises(ConfigurationError):
            await run_attempt_matrix("Test", [], ["k1"], attempt)
        assert calls == []


# ============================================================================
# Hugging Face
# ============================================================================


def hf_transport(script, calls=None):
    """Serve ``script[(model, token)]`` for POST /models/<model>."""

    def handler(request: httpx.Request) -> httpx.Response:
        model = request.url.path.split("/models/", 1)[1]
        token = request.headers["Authorization"].removeprefix("Bearer ")
        if calls is not None:
            calls.append((model, token))
        return script[(model, token)]

    return httpx.MockTransport(handler)


def loading():
    return httpx.Response(503, json={"error": "Model hf/x is currently loading", "estimated_time": 20})


class TestHuggingFaceProvider:
    def test_build_chat_prompt(self):
        assert build_chat_prompt("hi") == "<|user|>\nhi</s>\n<|assistant|>"
        assert build_chat_prompt("hi", "be brief") == (
            "<|system|>\nbe brief</s>\n<|user|>\nhi</s>\n<|assistant|>"
        )

    def test_parse_generated_text_shapes(self):
        assert parse_generated_text([{"generated_text": "a"}]) == "a"
        assert parse_generated_text({"generated_text": "b"}) == "b"
        assert parse_generated_text("c") == "c"
        assert parse_generated_text([]) == ""

    @pytest.mark.asyncio
    async def test_loading_models_are_skipped_until_one_answers(self, llm_config, mock_cache):
        calls = []
        models = ["hf/m1", "hf/m2", "hf/m3", "hf/m4"]
        script = {
            ("hf/m1", "tok"): loading(),
            ("hf/m2", "tok"): loading(),
            ("hf/m3", "tok"): loading(),
            ("hf/m4", "tok"): httpx.Response(200, json=[{"generated_text": "fourth model"}]),
        }
        provider = HuggingFaceProvider(llm_config, mock_cache, transport=hf_transport(script, calls))

        result = await provider.send("hello", ["tok"], models=models)

        assert result.text == "fourth model"
        assert result.model == "hf/m4"
        assert [model for model, _ in calls] == models

    @pytest.mark.asyncio
    async def test_loading_model_skips_remaining_keys(self, llm_config, mock_cache):
        calls = []
        script = {
            ("hf/m1", "t1"): loading(),
            ("hf/m2", "t1"): httpx.Response(200, json={"generated_text": "ok"}),
        }
        provider = HuggingFaceProvider(llm_config, mock_cache, transport=hf_transport(script, calls))

        await provider.send("hello", ["t1", "t2"], models=["hf/m1", "hf/m2"])

        assert calls == [("hf/m1", "t1"), ("hf/m2", "t1")]

    @pytest.mark.asyncio
    async def test_rate_limited_key_rotates_for_same_model(self, llm_config, mock_cache):
        calls = []
        script = {
            ("hf/m1", "t1"): httpx.Response(429, json={"error": "Rate limit reached"}),
            ("hf/m1", "t2"): httpx.Response(200, json=[{"generated_text": "second token"}]),
        }
        provider = HuggingFaceProvider(llm_config, mock_cache, transport=hf_transport(script, calls))

        result = await provider.send("hello", ["t1", "t2"], models=["hf/m1", "hf/m2"])

        assert result.text == "second token"
        assert calls == [("hf/m1", "t1"), ("hf/m1", "t2")]

    @pytest.mark.asyncio
    async def test_server_error_abandons_model(self, llm_config, mock_cache):
        calls = []
        script = {
            ("hf/m1", "t1"): httpx.Response(500, text="internal error"),
            ("hf/m2", "t1"): httpx.Response(200, json=[{"generated_text": "m2"}]),
        }
        provider = HuggingFaceProvider(llm_config, mock_cache, transport=hf_transport(script, calls))

        result = await provider.send("hello", ["t1", "t2"], models=["hf/m1", "hf/m2"])

        assert result.model == "hf/m2"
        assert calls == [("hf/m1", "t1"), ("hf/m2", "t1")]

    @pytest.mark.asyncio
    async def test_uses_catalog_when_no_models_given(self, llm_config, mock_cache):
        calls = []
        script = {
            ("hf/model-a", "t1"): httpx.Response(200, json=[{"generated_text": "catalog"}]),
        }
        provider = HuggingFaceProvider(llm_config, mock_cache, transport=hf_transport(script, calls))

        result = await provider.send("hello", ["t1"])

        mock_cache.ensure_fresh.assert_awaited_once()
        assert result.text == "catalog"

    @pytest.mark.asyncio
    async def test_request_body(self, llm_config, mock_cache):
        bodies = []

        def handler(request):
            bodies.append(request.read())
            return httpx.Response(200, json=[{"generated_text": "ok"}])

        provider = HuggingFaceProvider(llm_config, mock_cache, transport=httpx.MockTransport(handler))
        await provider.send("hello", ["t1"], system_instruction="sys", models=["hf/m1"])

        body = json.loads(bodies[0])
        assert body["inputs"].startswith("<|system|>\nsys</s>")
        assert body["parameters"] == {
            "max_new_tokens": 1024,
            "temperature": 0.7,
            "return_full_text": False,
        }

    @pytest.mark.asyncio
    async def test_all_failures_raise_exhausted(self, llm_config, mock_cache):
        script = {
            ("hf/m1", "t1"): loading(),
            ("hf/m2", "t1"): httpx.Response(200, json=[{"generated_text": ""}]),
        }
        provider = HuggingFaceProvider(llm_config, mock_cache, transport=hf_transport(script))

        with pytest.raises(ProviderExhaustedError):
            await provider.send("hello", ["t1"], models=["hf/m1", "hf/m2"])


# ============================================================================
# OpenRouter
# ============================================================================


def api_status_error(status):
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError(f"HTTP {status}", response=response, body=None)


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


async def delta_stream(pieces):
    for piece in pieces:
        yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])


def scripted_clients(script, calls):
    """Per-key fake AsyncOpenAI clients answering from ``script[(model, key)]``."""

    def client_for(key):
        def create(model, messages, stream):
            calls.append((model, key))
            outcome = script[(model, key)]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=create)
        return client

    return client_for


class TestOpenRouterProvider:
    MESSAGES = [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 402, 429])
    async def test_credential_statuses_rotate_key(self, llm_config, mock_cache, status):
        calls = []
        provider = OpenRouterProvider(llm_config, mock_cache)
        provider._client_for = scripted_clients(
            {
                ("m1", "k1"): api_status_error(status),
                ("m1", "k2"): completion("from k2"),
            },
            calls,
        )

        result = await provider.send(self.MESSAGES, ["k1", "k2"], models=["m1", "m2"])

        assert result.text == "from k2"
        assert result.model == "m1"
        assert calls == [("m1", "k1"), ("m1", "k2")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    async def test_other_statuses_skip_model(self, llm_config, mock_cache, status):
        calls = []
        provider = OpenRouterProvider(llm_config, mock_cache)
        provider._client_for = scripted_clients(
            {
                ("m1", "k1"): api_status_error(status),
                ("m2", "k1"): completion("from m2"),
            },
            calls,
        )

        result = await provider.send(self.MESSAGES, ["k1", "k2"], models=["m1", "m2"])

        assert result.model == "m2"
        assert calls == [("m1", "k1"), ("m2", "k1")]

    @pytest.mark.asyncio
    async def test_empty_answer_tries_next_key(self, llm_config, mock_cache):
        calls = []
        provider = OpenRouterProvider(llm_config, mock_cache)
        provider._client_for = scripted_clients(
            {("m1", "k1"): completion(""), ("m1", "k2"): completion("filled")},
            calls,
        )

        result = await provider.send(self.MESSAGES, ["k1", "k2"], model="m1")

        assert result.text == "filled"

    @pytest.mark.asyncio
    async def test_streaming_forwards_deltas(self, llm_config, mock_cache):
        calls = []
        chunks = []
        provider = OpenRouterProvider(llm_config, mock_cache)
        provider._client_for = scripted_clients(
            {("m1", "k1"): delta_stream(["Hel", "", "lo"])}, calls
        )

        result = await provider.send(self.MESSAGES, ["k1"], model="m1", on_chunk=chunks.append)

        assert result.text == "Hello"
        assert chunks == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_catalog_prioritizes_coding_models(self, llm_config, mock_cache):
        provider = OpenRouterProvider(llm_config, mock_cache)

        models = await provider.resolve_models([{"role": "user", "content": "write a function"}])

        assert models == ["catalog/deepseek-coder:free", "catalog/model-a:free"]
        mock_cache.ensure_fresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pinned_model_wins(self, llm_config, mock_cache):
        provider = OpenRouterProvider(llm_config, mock_cache)

        assert await provider.resolve_models(self.MESSAGES, ["a", "b"], "pinned") == ["pinned"]
        assert await provider.resolve_models(self.MESSAGES, ["a", "b"]) == ["a", "b"]
        mock_cache.ensure_fresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_keys(self, llm_config, mock_cache):
        provider = OpenRouterProvider(llm_config, mock_cache)

        with pytest.raises(ConfigurationError):
            await provider.send(self.MESSAGES, [], model="m1")

    def test_client_cached_per_key(self, llm_config, mock_cache):
        provider = OpenRouterProvider(llm_config, mock_cache)

        first = provider._client_for("k1")

        assert provider._client_for("k1") is first
        assert provider._client_for("k2") is not first
        assert first.max_retries == 0


# ============================================================================
# Gemini
# ============================================================================


def grounded_candidate(*sources):
    chunks = [SimpleNamespace(web=SimpleNamespace(uri=uri, title=title)) for title, uri in sources]
    return SimpleNamespace(grounding_metadata=SimpleNamespace(grounding_chunks=chunks))


async def gemini_stream(chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def gemini_client():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock()
    client.aio.models.generate_content_stream = AsyncMock()
    return client


class TestGeminiProvider:
    def test_build_contents_maps_roles_in_order(self):
        history = [
            ConversationTurn(role=Role.USER, text="q1"),
            ConversationTurn(role=Role.ASSISTANT, text="a1"),
        ]
        attachment = Attachment(mime_type="image/png", data="aGVsbG8=")

        contents = build_contents(history, "q2", [attachment])

        assert [c.role for c in contents] == ["user", "model", "user"]
        assert contents[2].parts[0].text == "q2"
        assert contents[2].parts[1].inline_data.data == b"hello"

    def test_build_config_json_mode_disables_search(self):
        config = build_config("sys", json_mode=True, use_search=True)

        assert config.response_mime_type == "application/json"
        assert not config.tools

    def test_build_config_search_and_thinking(self):
        config = build_config(use_search=True, thinking_budget=32768)

        assert len(config.tools) == 1
        assert config.thinking_config.thinking_budget == 32768

    def test_extract_citations_dedupes(self):
        candidate = grounded_candidate(("A", "https://a"), ("A", "https://a"), ("B", "https://b"))

        citations = extract_citations([candidate])

        assert [c.uri for c in citations] == ["https://a", "https://b"]
        assert format_sources(citations) == "\n\n**Sources:**\n[A](https://a)\n[B](https://b)"

    @pytest.mark.asyncio
    async def test_plain_answer_has_no_sources(self, llm_config, gemini_client):
        gemini_client.aio.models.generate_content.return_value = SimpleNamespace(
            text="Recursion is a function calling itself.", candidates=[]
        )
        provider = GeminiProvider(llm_config, client=gemini_client)

        result = await provider.send("explain recursion")

        assert result.text == "Recursion is a function calling itself."
        assert result.citations == []
        assert result.model == llm_config.gemini_default_model

    @pytest.mark.asyncio
    async def test_grounded_answer_appends_sources(self, llm_config, gemini_client):
        gemini_client.aio.models.generate_content.return_value = SimpleNamespace(
            text="News.", candidates=[grounded_candidate(("Site", "https://site"))]
        )
        provider = GeminiProvider(llm_config, client=gemini_client)

        result = await provider.send("latest news", use_search=True)

        assert result.text == "News.\n\n**Sources:**\n[Site](https://site)"

    @pytest.mark.asyncio
    async def test_streaming_merges_citations_and_emits_sources(self, llm_config, gemini_client):
        gemini_client.aio.models.generate_content_stream.return_value = gemini_stream(
            [
                SimpleNamespace(text="Hel", candidates=[grounded_candidate(("A", "https://a"))]),
                SimpleNamespace(text="lo", candidates=[grounded_candidate(("B", "https://b"))]),
            ]
        )
        provider = GeminiProvider(llm_config, client=gemini_client)
        chunks = []

        result = await provider.send("hi", on_chunk=chunks.append)

        assert chunks[:2] == ["Hel", "lo"]
        assert chunks[2] == "\n\n**Sources:**\n[A](https://a)\n[B](https://b)"
        assert result.text == "Hello" + chunks[2]

    @pytest.mark.asyncio
    async def test_empty_answer_raises(self, llm_config, gemini_client):
        gemini_client.aio.models.generate_content.return_value = SimpleNamespace(
            text=None, candidates=[]
        )
        provider = GeminiProvider(llm_config, client=gemini_client)

        with pytest.raises(MalformedOutputError):
            await provider.send("hi")

    @pytest.mark.asyncio
    async def test_missing_key_raises_configuration_error(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        provider = GeminiProvider(LLMConfig(gemini_api_key=""))

        with pytest.raises(ConfigurationError):
            await provider.send("hi")
