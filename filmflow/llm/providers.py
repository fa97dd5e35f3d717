"""
Filmflow Generative Backends

One adapter per provider family. Each adapter normalizes its SDK's
response shape to plain text and wraps SDK errors as ProviderCallFailure.
"""

import asyncio
import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

from filmflow.core.constants import ProviderId, ResponseFormat
from filmflow.core.exceptions import (
    ContentBlockedError,
    ProviderCallFailure,
    UnsupportedCapability,
)
from filmflow.core.logging_config import get_logger
from filmflow.llm.llm_registry import CAP_DOCUMENT, LLMInfo

logger = get_logger("llm.providers")


@dataclass
class GenerationOptions:
    """Per-call generation settings."""
    max_tokens: int = 4096
    temperature: float = 0.7
    response_format: ResponseFormat = ResponseFormat.TEXT
    fallback_providers: Tuple[ProviderId, ...] = field(default_factory=tuple)

    @property
    def wants_json(self) -> bool:
        return self.response_format == ResponseFormat.JSON


class BaseGenerativeBackend(ABC):
    """Abstract base class for generative backends."""

    def __init__(self, info: LLMInfo, api_key: str):
        self.info = info
        self._api_key = api_key
        self._client = self._create_client()

    @property
    def name(self) -> str:
        return self.info.id.value

    @property
    def supports_documents(self) -> bool:
        return self.info.supports(CAP_DOCUMENT)

    @abstractmethod
    def _create_client(self):
        """Construct the SDK client handle."""
        pass

    @abstractmethod
    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        """Generate text from a prompt."""
        pass

    async def analyze_document(self, base64_document: str, mime_type: str, prompt: str) -> str:
        """Analyze an inline document. Backends override when supported."""
        raise UnsupportedCapability(self.name, "document analysis")

    def _max_tokens(self, options: GenerationOptions) -> int:
        return min(options.max_tokens or self.info.max_output_tokens, self.info.max_output_tokens)


class GeminiBackend(BaseGenerativeBackend):
    """Google Gemini backend (google-generativeai)."""

    SAFETY_SETTINGS = [
        {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
        {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
        {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
        {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    ]

    def _create_client(self):
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self.info.model, safety_settings=self.SAFETY_SETTINGS)

    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        generation_config = {
            "temperature": options.temperature,
            "max_output_tokens": self._max_tokens(options),
        }
        if options.wants_json:
            generation_config["response_mime_type"] = "application/json"
        return await self._call(prompt, generation_config)

    async def analyze_document(self, base64_document: str, mime_type: str, prompt: str) -> str:
        if not self.supports_documents:
            raise UnsupportedCapability(self.name, "document analysis")
        parts = [
            {"mime_type": mime_type, "data": base64.b64decode(base64_document)},
            prompt,
        ]
        return await self._call(parts, {"max_output_tokens": self.info.max_output_tokens})

    async def _call(self, contents, generation_config: dict) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.generate_content,
                contents,
                generation_config=generation_config,
            )
        except Exception as e:
            error_msg = str(e)
            if "PROHIBITED_CONTENT" in error_msg or "block_reason" in error_msg:
                raise ContentBlockedError(self.name, error_msg)
            raise ProviderCallFailure(self.name, error_msg)

        # finish_reason: 3=SAFETY, 4=RECITATION indicate blocked content
        if not response.candidates:
            block_reason = "UNKNOWN"
            feedback = getattr(response, "prompt_feedback", None)
            if feedback is not None and hasattr(feedback, "block_reason"):
                block_reason = str(feedback.block_reason)
            logger.warning(f"Gemini blocked content: {block_reason}")
            raise ContentBlockedError(self.name, f"block_reason: {block_reason}")

        candidate = response.candidates[0]
        if getattr(candidate, "finish_reason", None) in (3, 4):
            raise ContentBlockedError(self.name, f"finish_reason: {candidate.finish_reason}")
        if not candidate.content or not candidate.content.parts:
            raise ContentBlockedError(self.name, "empty content")

        try:
            return response.text
        except ValueError as e:
            raise ProviderCallFailure(self.name, f"No valid parts in response: {e}")


class OpenAIBackend(BaseGenerativeBackend):
    """OpenAI chat-completion backend."""

    def _create_client(self):
        import openai

        if self.info.base_url:
            return openai.AsyncOpenAI(api_key=self._api_key, base_url=self.info.base_url)
        return openai.AsyncOpenAI(api_key=self._api_key)

    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        params = {
            "model": self.info.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._max_tokens(options),
            "temperature": options.temperature,
        }
        if options.wants_json:
            params["response_format"] = {"type": "json_object"}
        return await self._complete(params)

    async def analyze_document(self, base64_document: str, mime_type: str, prompt: str) -> str:
        if not self.supports_documents:
            raise UnsupportedCapability(self.name, "document analysis")
        params = {
            "model": self.info.model,
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    self._document_part(base64_document, mime_type),
                ],
            }],
            "max_tokens": 4096,
        }
        return await self._complete(params)

    def _document_part(self, base64_document: str, mime_type: str) -> dict:
        """Images go as image_url parts; PDFs and other files as file parts."""
        data_url = f"data:{mime_type};base64,{base64_document}"
        if mime_type.startswith("image/"):
            return {"type": "image_url", "image_url": {"url": data_url}}
        extension = mime_type.rsplit("/", 1)[-1]
        return {"type": "file", "file": {"filename": f"script.{extension}", "file_data": data_url}}

    async def _complete(self, params: dict) -> str:
        try:
            response = await self._client.chat.completions.create(**params)
        except Exception as e:
            raise ProviderCallFailure(self.name, str(e))

        if not response.choices:
            raise ProviderCallFailure(self.name, "response contained no choices")
        return response.choices[0].message.content or ""


class XAIBackend(OpenAIBackend):
    """xAI Grok backend via its OpenAI-compatible endpoint."""

    def _document_part(self, base64_document: str, mime_type: str) -> dict:
        # The xAI endpoint accepts image parts only
        if not mime_type.startswith("image/"):
            raise UnsupportedCapability(self.name, f"{mime_type} documents")
        return super()._document_part(base64_document, mime_type)


class AnthropicBackend(BaseGenerativeBackend):
    """Anthropic Claude backend."""

    def _create_client(self):
        import anthropic

        return anthropic.AsyncAnthropic(api_key=self._api_key)

    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        system = "Respond with valid JSON only." if options.wants_json else ""
        return await self._message(
            [{"role": "user", "content": prompt}],
            self._max_tokens(options),
            options.temperature,
            system,
        )

    async def analyze_document(self, base64_document: str, mime_type: str, prompt: str) -> str:
        if not self.supports_documents:
            raise UnsupportedCapability(self.name, "document analysis")
        content = [
            {
                "type": "document",
                "source": {"type": "base64", "media_type": mime_type, "data": base64_document},
            },
            {"type": "text", "text": prompt},
        ]
        return await self._message([{"role": "user", "content": content}], 4096, 0.3, "")

    async def _message(self, messages: list, max_tokens: int, temperature: float,
                       system: str) -> str:
        params = {
            "model": self.info.model,
            "max_tokens": max_tokens,
            "messages": messages,
            "temperature": temperature,
        }
        if system:
            params["system"] = system
        try:
            message = await self._client.messages.create(**params)
        except Exception as e:
            raise ProviderCallFailure(self.name, str(e))

        return "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )


BACKEND_CLASSES = {
    "google": GeminiBackend,
    "openai": OpenAIBackend,
    "xai": XAIBackend,
    "anthropic": AnthropicBackend,
}


def backend_class_for(family: str) -> Optional[type]:
    return BACKEND_CLASSES.get(family)
