"""
Tests for Provider Registry and Content Generator

Tests for filmflow/llm/provider_registry.py, filmflow/llm/generator.py
and the document handling in filmflow/llm/providers.py
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from filmflow.core.constants import ProviderId
from filmflow.core.exceptions import (
    AllProvidersFailed,
    MissingCredential,
    ProviderCallFailure,
    UnknownProviderError,
    UnsupportedCapability,
)
from filmflow.llm.generator import ContentGenerator, candidate_chain
from filmflow.llm.llm_registry import get_llm_info
from filmflow.llm.provider_registry import ProviderRegistry
from filmflow.llm.providers import GenerationOptions, OpenAIBackend, XAIBackend

from conftest import fake_backend_factories


def keys_for(*env_keys):
    """api_key_lookup that only knows the given variables."""
    def lookup(key_name, fallback_keys=None):
        for key in [key_name, *(fallback_keys or [])]:
            if key in env_keys:
                return "test-key"
        return None
    return lookup


def echo(provider_id, prompt):
    return f"{provider_id.value}: {prompt}"


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_backend_is_cached(self):
        """Test a backend is constructed once and then reused."""
        factory = MagicMock(side_effect=lambda info, key: object())
        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY"),
            backend_factories={"openai": factory},
        )

        first = registry.get_backend(ProviderId.GPT_4O)
        second = registry.get_backend(ProviderId.GPT_4O)

        assert first is second
        assert factory.call_count == 1
        assert registry.get_stats()["initialization_counts"] == {"gpt-4o": 1}

    def test_fallback_env_key_accepted(self):
        """Test the alternate environment variable satisfies the credential."""
        registry = ProviderRegistry(
            api_key_lookup=keys_for("GEMINI_API_KEY"),
            backend_factories=fake_backend_factories(echo),
        )

        assert registry.get_backend(ProviderId.GEMINI_FLASH).name == "gemini-1.5-flash"

    def test_missing_credential(self):
        """Test a provider without a key raises MissingCredential."""
        registry = ProviderRegistry(api_key_lookup=keys_for())

        with pytest.raises(MissingCredential) as exc_info:
            registry.get_backend(ProviderId.CLAUDE_SONNET)

        assert "ANTHROPIC_API_KEY" in str(exc_info.value)

    def test_unknown_provider(self):
        """Test a provider missing from the registry table."""
        registry = ProviderRegistry(llm_registry={}, api_key_lookup=keys_for())

        with pytest.raises(UnknownProviderError):
            registry.get_backend(ProviderId.GPT_4O)

    @pytest.mark.asyncio
    async def test_document_capability_checked_before_construction(self):
        """Test unsupported document analysis fails without building a backend."""
        factory = MagicMock()
        registry = ProviderRegistry(
            api_key_lookup=keys_for("GOOGLE_API_KEY"),
            backend_factories={"google": factory},
        )

        with pytest.raises(UnsupportedCapability):
            await registry.invoke_document(ProviderId.GEMINI_FLASH_EXP, "ZmlsZQ==", "application/pdf", "Read")

        factory.assert_not_called()

    def test_clear_provider(self):
        """Test clearing forces reconstruction."""
        factory = MagicMock(side_effect=lambda info, key: object())
        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY"),
            backend_factories={"openai": factory},
        )

        registry.get_backend(ProviderId.GPT_4O)
        registry.clear_provider(ProviderId.GPT_4O)
        registry.get_backend(ProviderId.GPT_4O)

        assert factory.call_count == 2


class TestContentGenerator:
    """Tests for ContentGenerator fallback behavior."""

    def test_candidate_chain_dedupes(self):
        """Test the chain keeps order and drops repeats."""
        chain = candidate_chain(ProviderId.GPT_4O, [ProviderId.GROK, ProviderId.GPT_4O, ProviderId.GROK])

        assert chain == [ProviderId.GPT_4O, ProviderId.GROK]

    @pytest.mark.asyncio
    async def test_primary_answers(self):
        """Test the primary provider's text is returned."""
        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY"),
            backend_factories=fake_backend_factories(echo),
        )

        result = await ContentGenerator(registry).generate(ProviderId.GPT_4O, "hello")

        assert result == "gpt-4o: hello"

    @pytest.mark.asyncio
    async def test_falls_back_in_order(self):
        """Test failures move to the next provider in the chain."""
        attempts = []

        def responder(provider_id, prompt):
            attempts.append(provider_id)
            if provider_id == ProviderId.GROK:
                return "grok answer"
            return ProviderCallFailure(provider_id.value, "overloaded")

        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY", "XAI_API_KEY", "GOOGLE_API_KEY"),
            backend_factories=fake_backend_factories(responder),
        )
        options = GenerationOptions(fallback_providers=(ProviderId.GEMINI_FLASH, ProviderId.GROK))

        result = await ContentGenerator(registry).generate(ProviderId.GPT_4O, "hi", options)

        assert result == "grok answer"
        assert attempts == [ProviderId.GPT_4O, ProviderId.GEMINI_FLASH, ProviderId.GROK]

    @pytest.mark.asyncio
    async def test_missing_credential_falls_through(self):
        """Test a provider without a key counts as a failed candidate."""
        registry = ProviderRegistry(
            api_key_lookup=keys_for("XAI_API_KEY"),
            backend_factories=fake_backend_factories(echo),
        )
        options = GenerationOptions(fallback_providers=(ProviderId.GROK,))

        result = await ContentGenerator(registry).generate(ProviderId.GPT_4O, "hi", options)

        assert result == "grok-beta: hi"

    @pytest.mark.asyncio
    async def test_all_providers_failed(self):
        """Test exhaustion raises AllProvidersFailed listing every attempt."""
        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY", "XAI_API_KEY"),
            backend_factories=fake_backend_factories(
                lambda provider_id, prompt: ProviderCallFailure(provider_id.value, "down")
            ),
        )
        options = GenerationOptions(fallback_providers=(ProviderId.GROK,))

        with pytest.raises(AllProvidersFailed) as exc_info:
            await ContentGenerator(registry).generate(ProviderId.GPT_4O, "hi", options)

        assert exc_info.value.attempted == ["gpt-4o", "grok-beta"]
        assert isinstance(exc_info.value.last_error, ProviderCallFailure)

    @pytest.mark.asyncio
    async def test_prompt_is_sanitized(self):
        """Test prompts reach the backend sanitized."""
        seen = []
        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY"),
            backend_factories=fake_backend_factories(lambda p, prompt: seen.append(prompt) or "ok"),
        )

        await ContentGenerator(registry).generate(ProviderId.GPT_4O, "What the hell\x07")

        assert seen == ["What the heck"]

    @pytest.mark.asyncio
    async def test_generate_json(self):
        """Test generate_json extracts the structured value."""
        registry = ProviderRegistry(
            api_key_lookup=keys_for("OPENAI_API_KEY"),
            backend_factories=fake_backend_factories(lambda p, prompt: '```json\n{"ok": true}\n```'),
        )

        assert await ContentGenerator(registry).generate_json(ProviderId.GPT_4O, "x") == {"ok": True}


def chat_client(reply="transcribed"):
    """Stand-in OpenAI client whose chat completions return `reply`."""
    client = MagicMock()
    message = SimpleNamespace(content=reply)
    client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]))
    return client


def backend_with_client(monkeypatch, backend_class, provider_id, client):
    monkeypatch.setattr(OpenAIBackend, "_create_client", lambda self: client)
    return backend_class(get_llm_info(provider_id), "test-key")


class TestOpenAIDocuments:
    """Tests for document content parts sent to OpenAI-compatible endpoints."""

    @pytest.mark.asyncio
    async def test_pdf_sent_as_file_part(self, monkeypatch):
        """Test a PDF travels as a file part carrying a data URL."""
        client = chat_client()
        backend = backend_with_client(monkeypatch, OpenAIBackend, ProviderId.GPT_4O, client)

        assert await backend.analyze_document("JVBERg==", "application/pdf", "Read it") == "transcribed"

        content = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "Read it"}
        assert content[1] == {
            "type": "file",
            "file": {"filename": "script.pdf", "file_data": "data:application/pdf;base64,JVBERg=="},
        }

    @pytest.mark.asyncio
    async def test_image_sent_as_image_part(self, monkeypatch):
        """Test a photographed page travels as an image_url part."""
        client = chat_client()
        backend = backend_with_client(monkeypatch, OpenAIBackend, ProviderId.GPT_4O, client)

        await backend.analyze_document("iVBORw==", "image/png", "Read it")

        content = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert content[1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,iVBORw=="}}

    @pytest.mark.asyncio
    async def test_xai_rejects_pdf(self, monkeypatch):
        """Test the xAI endpoint is never sent a PDF."""
        client = chat_client()
        backend = backend_with_client(monkeypatch, XAIBackend, ProviderId.GROK_VISION, client)

        with pytest.raises(UnsupportedCapability):
            await backend.analyze_document("JVBERg==", "application/pdf", "Read it")

        client.chat.completions.create.assert_not_called()
