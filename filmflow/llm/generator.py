"""
Filmflow Content Generator

Wraps the provider registry with an ordered fallback chain. There is no
retry at this layer; callers that want retries compose retry_async_call
around generate().
"""

from typing import Awaitable, Callable, List, Sequence

from filmflow.core.constants import ProviderId, ResponseFormat
from filmflow.core.exceptions import AllProvidersFailed, UnsupportedCapability
from filmflow.core.logging_config import get_logger
from filmflow.extraction.json_extractor import Expect, JsonValue, extract_structured
from filmflow.llm.llm_registry import CAP_DOCUMENT
from filmflow.llm.provider_registry import ProviderRegistry
from filmflow.llm.providers import GenerationOptions
from filmflow.llm.sanitizer import sanitize_prompt

logger = get_logger("llm.generator")


def candidate_chain(primary: ProviderId, fallbacks) -> List[ProviderId]:
    """Primary followed by fallbacks, duplicates removed, order preserved."""
    chain: List[ProviderId] = []
    for provider in [primary, *(fallbacks or ())]:
        if provider not in chain:
            chain.append(provider)
    return chain


class ContentGenerator:
    """
    Generates content with transparent provider fallback.

    Args:
        registry: Provider registry used to resolve backends
    """

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def generate(
        self,
        primary: ProviderId,
        prompt: str,
        options: GenerationOptions = None,
    ) -> str:
        """
        Generate content, trying the primary then each fallback in order.

        Args:
            primary: First provider to try
            prompt: Prompt text (sanitized before submission)
            options: Generation options including the fallback chain

        Returns:
            Raw text of the first successful provider

        Raises:
            AllProvidersFailed: If every candidate failed
        """
        options = options or GenerationOptions()
        clean_prompt = sanitize_prompt(prompt)
        chain = candidate_chain(primary, options.fallback_providers)

        return await self._first_success(
            chain,
            lambda provider: self.registry.invoke_text(provider, clean_prompt, options),
        )

    async def analyze_document(
        self,
        primary: ProviderId,
        base64_document: str,
        mime_type: str,
        prompt: str,
        fallbacks: Sequence[ProviderId] = (),
    ) -> str:
        """
        Analyze an inline document, trying document-capable providers in order.

        Providers in the chain without document support are skipped.

        Raises:
            UnsupportedCapability: If no provider in the chain handles documents
            AllProvidersFailed: If every capable provider failed
        """
        chain = []
        for provider in candidate_chain(primary, fallbacks):
            if self.registry.info(provider).supports(CAP_DOCUMENT):
                chain.append(provider)
            else:
                logger.debug(f"Skipping {provider.value}: no document support")
        if not chain:
            raise UnsupportedCapability(primary.value, "document analysis")

        clean_prompt = sanitize_prompt(prompt)
        return await self._first_success(
            chain,
            lambda provider: self.registry.invoke_document(
                provider, base64_document, mime_type, clean_prompt
            ),
        )

    async def _first_success(
        self,
        chain: List[ProviderId],
        call: Callable[[ProviderId], Awaitable[str]],
    ) -> str:
        attempted: List[str] = []
        last_error: Exception = None

        for index, provider in enumerate(chain):
            attempted.append(provider.value)
            try:
                result = await call(provider)
                if index > 0:
                    logger.info(f"Fallback provider {provider.value} succeeded")
                return result
            except Exception as e:
                last_error = e
                if index < len(chain) - 1:
                    logger.warning(
                        f"Provider {provider.value} failed, falling back to "
                        f"{chain[index + 1].value}: {e}"
                    )
                else:
                    logger.error(f"Provider {provider.value} failed: {e}")

        raise AllProvidersFailed(attempted, last_error) from last_error

    async def generate_json(
        self,
        primary: ProviderId,
        prompt: str,
        options: GenerationOptions = None,
        expect: Expect = Expect.ANY,
        required_field: str = None,
    ) -> JsonValue:
        """
        Generate and extract a structured value.

        Raises:
            AllProvidersFailed: If every candidate failed
            ExtractionFailure: If the winning response holds no usable JSON
        """
        options = options or GenerationOptions(response_format=ResponseFormat.JSON)
        text = await self.generate(primary, prompt, options)
        return extract_structured(text, expect, required_field)
