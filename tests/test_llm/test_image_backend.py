"""
Tests for Image Backends

Tests for filmflow/llm/image_backend.py
"""

import json

import httpx
import pytest

from filmflow.core.exceptions import ImageGenerationError
from filmflow.llm.image_backend import (
    ReplicateImageBackend,
    create_image_backend,
    normalize_replicate_output,
)


def replicate_with(handler, **kwargs):
    requests = []

    def recording(request):
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return ReplicateImageBackend(api_key="r8-test", client=client, **kwargs), requests


class TestNormalizeReplicateOutput:
    """Tests for output shape normalization."""

    @pytest.mark.parametrize("output,expected", [
        ("https://img/1.png", "https://img/1.png"),
        (["https://img/2.png", "https://img/3.png"], "https://img/2.png"),
        ({"url": "https://img/4.png"}, "https://img/4.png"),
        ([], None),
        ("", None),
        (None, None),
    ])
    def test_shapes(self, output, expected):
        """Test string, list and object outputs."""
        assert normalize_replicate_output(output) == expected


class TestReplicateImageBackend:
    """Tests for the Replicate backend."""

    @pytest.mark.asyncio
    async def test_synchronous_prediction(self):
        """Test a finished prediction returns its URL."""
        backend, requests = replicate_with(
            lambda request: httpx.Response(201, json={"status": "succeeded", "output": ["https://img/a.png"]})
        )

        url = await backend.generate("A rainy street", "16:9", "block_only_high")

        assert url == "https://img/a.png"
        assert requests[0].url.path == "/v1/models/google/imagen-4/predictions"
        assert requests[0].headers["Prefer"] == "wait"
        body = json.loads(requests[0].content)
        assert body["input"] == {
            "prompt": "A rainy street",
            "aspect_ratio": "16:9",
            "safety_filter_level": "block_only_high",
        }

    @pytest.mark.asyncio
    async def test_polls_unfinished_prediction(self):
        """Test an unfinished prediction is polled until it settles."""
        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={
                    "id": "abc", "status": "processing",
                    "urls": {"get": "https://api.replicate.com/v1/predictions/abc"},
                })
            return httpx.Response(200, json={"status": "succeeded", "output": {"url": "https://img/b.png"}})

        backend, requests = replicate_with(handler, poll_interval=0)

        assert await backend.generate("prompt") == "https://img/b.png"
        assert requests[1].method == "GET"
        assert "Prefer" not in requests[1].headers

    @pytest.mark.asyncio
    async def test_failed_prediction(self):
        """Test a failed prediction raises ImageGenerationError."""
        backend, _ = replicate_with(
            lambda request: httpx.Response(201, json={"status": "failed", "error": "NSFW"})
        )

        with pytest.raises(ImageGenerationError, match="NSFW"):
            await backend.generate("prompt")

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Test HTTP errors become ImageGenerationError."""
        backend, _ = replicate_with(lambda request: httpx.Response(429, json={}))

        with pytest.raises(ImageGenerationError):
            await backend.generate("prompt")

    @pytest.mark.asyncio
    async def test_missing_output(self):
        """Test a success without a URL is an error."""
        backend, _ = replicate_with(lambda request: httpx.Response(201, json={"status": "succeeded"}))

        with pytest.raises(ImageGenerationError):
            await backend.generate("prompt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(201, json=["not", "a", "prediction"]),
        httpx.Response(201, json={"status": "processing"}),
    ])
    async def test_malformed_prediction(self, response):
        """Test unreadable predictions become ImageGenerationError."""
        backend, _ = replicate_with(lambda request: response, poll_interval=0)

        with pytest.raises(ImageGenerationError):
            await backend.generate("prompt")

    @pytest.mark.asyncio
    async def test_malformed_poll_response(self):
        """Test a garbled poll response is a generation failure."""
        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"id": "abc", "status": "starting"})
            return httpx.Response(200, text="upstream timeout")

        backend, requests = replicate_with(handler, poll_interval=0)

        with pytest.raises(ImageGenerationError, match="non-JSON"):
            await backend.generate("prompt")
        assert requests[1].url.path == "/v1/predictions/abc"


class TestCreateImageBackend:
    """Tests for backend construction by name."""

    def test_by_name(self):
        """Test names are matched case-insensitively."""
        backend = create_image_backend("Replicate", api_key="r8-test")

        assert isinstance(backend, ReplicateImageBackend)

    def test_unknown_name(self):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError):
            create_image_backend("midjourney")
