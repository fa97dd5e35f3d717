"""
Filmflow Image Backends

Image generation behind one narrow interface: a prompt goes in, an image URL
comes out. Each backend normalizes its own response shape.

Supports:
- Replicate (google/imagen-4)
- OpenAI (dall-e-3)
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from filmflow.core.constants import DEFAULT_ASPECT_RATIO, DEFAULT_SAFETY_LEVEL
from filmflow.core.env_loader import get_openai_api_key, get_replicate_api_key
from filmflow.core.exceptions import ImageGenerationError, MissingCredential
from filmflow.core.logging_config import get_logger

logger = get_logger("llm.image_backend")


class ImageBackend(ABC):
    """Abstract image generation backend."""

    name: str = "image"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        safety_level: str = DEFAULT_SAFETY_LEVEL,
    ) -> str:
        """
        Generate one image.

        Returns:
            URL of the generated image

        Raises:
            ImageGenerationError: On any backend failure
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        pass


# ============================================================================
#  REPLICATE (IMAGEN 4)
# ============================================================================

def normalize_replicate_output(output: Any) -> Optional[str]:
    """Replicate returns a URL string, a list of URLs or an object with a url."""
    if isinstance(output, str):
        return output or None
    if isinstance(output, list) and output:
        return normalize_replicate_output(output[0])
    if isinstance(output, dict):
        url = output.get("url")
        return url if isinstance(url, str) and url else None
    return None


class ReplicateImageBackend(ImageBackend):
    """Image generation through Replicate's predictions API."""

    name = "replicate"
    BASE_URL = "https://api.replicate.com/v1"
    MODEL_ID = "google/imagen-4"

    def __init__(
        self,
        api_key: str = None,
        client: httpx.AsyncClient = None,
        timeout: float = 120.0,
        poll_interval: float = 2.0,
        max_wait: float = 300.0,
    ):
        self.api_key = api_key or get_replicate_api_key()
        if not self.api_key:
            raise MissingCredential(self.name, ["REPLICATE_API_TOKEN", "REPLICATE_API_KEY"])
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.poll_interval = poll_interval
        self.max_wait = max_wait

    def _get_headers(self, wait: bool = True) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if wait:
            headers["Prefer"] = "wait"
        return headers

    async def generate(
        self,
        prompt: str,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        safety_level: str = DEFAULT_SAFETY_LEVEL,
    ) -> str:
        body = {
            "input": {
                "prompt": prompt,
                "aspect_ratio": aspect_ratio,
                "safety_filter_level": safety_level,
            }
        }
        url = f"{self.BASE_URL}/models/{self.MODEL_ID}/predictions"

        try:
            response = await self._client.post(url, json=body, headers=self._get_headers(wait=True))
            result = self._read_prediction(response)

            # Prefer: wait may still hand back an unfinished prediction
            if result.get("status") in ("starting", "processing"):
                result = await self._poll_for_completion(result)
        except httpx.HTTPError as e:
            raise ImageGenerationError(self.name, str(e))

        if result.get("status") in ("failed", "canceled"):
            raise ImageGenerationError(self.name, f"Prediction {result['status']}: {result.get('error')}")

        image_url = normalize_replicate_output(result.get("output"))
        if not image_url:
            raise ImageGenerationError(self.name, "no image URL in prediction output")
        return image_url

    def _read_prediction(self, response: httpx.Response) -> Dict:
        """Decode a prediction; malformed bodies are generation failures."""
        response.raise_for_status()
        try:
            result = response.json()
        except ValueError:
            raise ImageGenerationError(
                self.name, f"non-JSON prediction response: {response.text[:120]!r}"
            )
        if not isinstance(result, dict):
            raise ImageGenerationError(self.name, f"unexpected prediction payload: {type(result).__name__}")
        return result

    async def _poll_for_completion(self, initial_result: Dict) -> Dict:
        """Poll an asynchronous prediction until it settles."""
        urls = initial_result.get("urls")
        poll_url = urls.get("get") if isinstance(urls, dict) else None
        if not poll_url:
            prediction_id = initial_result.get("id")
            if not prediction_id:
                raise ImageGenerationError(self.name, "unfinished prediction has no id to poll")
            poll_url = f"{self.BASE_URL}/predictions/{prediction_id}"

        start_time = time.monotonic()
        while time.monotonic() - start_time < self.max_wait:
            response = await self._client.get(poll_url, headers=self._get_headers(wait=False))
            result = self._read_prediction(response)

            if result.get("status") in ("succeeded", "failed", "canceled"):
                return result

            await asyncio.sleep(self.poll_interval)

        raise ImageGenerationError(self.name, f"Prediction timed out after {self.max_wait:.0f}s")

    async def aclose(self) -> None:
        await self._client.aclose()


# ============================================================================
#  OPENAI (DALL-E 3)
# ============================================================================

class OpenAIImageBackend(ImageBackend):
    """Image generation through the OpenAI images API."""

    name = "openai"
    MODEL_ID = "dall-e-3"
    SIZES = {"16:9": "1792x1024", "9:16": "1024x1792", "1:1": "1024x1024"}

    def __init__(self, api_key: str = None):
        import openai

        api_key = api_key or get_openai_api_key()
        if not api_key:
            raise MissingCredential(self.name, ["OPENAI_API_KEY"])
        self._client = openai.AsyncOpenAI(api_key=api_key)

    async def generate(
        self,
        prompt: str,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        safety_level: str = DEFAULT_SAFETY_LEVEL,
    ) -> str:
        try:
            response = await self._client.images.generate(
                model=self.MODEL_ID,
                prompt=prompt,
                size=self.SIZES.get(aspect_ratio, "1792x1024"),
                quality="standard",
                n=1,
            )
        except Exception as e:
            raise ImageGenerationError(self.name, str(e))

        if not response.data or not response.data[0].url:
            raise ImageGenerationError(self.name, "no image URL in response")
        return response.data[0].url


IMAGE_BACKENDS = {
    "replicate": ReplicateImageBackend,
    "openai": OpenAIImageBackend,
}


def create_image_backend(name: str = "replicate", **kwargs) -> ImageBackend:
    """
    Construct an image backend by name.

    Args:
        name: "replicate" or "openai"
        **kwargs: Backend constructor arguments

    Returns:
        ImageBackend instance
    """
    backend_cls = IMAGE_BACKENDS.get(name.lower())
    if backend_cls is None:
        raise ValueError(f"Unknown image backend: {name}")
    return backend_cls(**kwargs)
