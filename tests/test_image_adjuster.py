"""Tests for the generative aspect-ratio adjuster (fake OpenAI client)."""

from __future__ import annotations

import base64
from types import SimpleNamespace

import httpx
import openai
import pytest

from newsboard.circuit_breaker import CircuitBreaker
from newsboard.exceptions import (
    APIConnectionError,
    APITimeoutError,
    CircuitBreakerOpenError,
    ExternalAPIError,
    InvalidImageDataError,
    MissingAPIKeyError,
    ValidationError,
)
from newsboard.image_adjuster import ImageAdjuster, build_prompt, output_size_for, parse_aspect_ratio

from conftest import PNG_DATA_URI

ADJUSTED_BYTES = b"adjusted-png"


class FakeImages:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def edit(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def fake_client(response=None, error=None):
    if response is None and error is None:
        response = SimpleNamespace(data=[SimpleNamespace(b64_json=base64.b64encode(ADJUSTED_BYTES).decode())])
    return SimpleNamespace(images=FakeImages(response, error))


def make_adjuster(client, **kwargs):
    breaker = kwargs.pop("breaker", None) or CircuitBreaker(
        failure_threshold=2,
        timeout=60,
        name="openai_images",
        expected_exceptions=(ExternalAPIError,),
    )
    return ImageAdjuster(client=client, model="gpt-image-1", breaker=breaker, **kwargs)


class TestAspectRatio:
    def test_parse(self):
        assert parse_aspect_ratio("9:16") == (9, 16)

    @pytest.mark.parametrize("value", ["", "9x16", "0:16", "a:b", "-9:16"])
    def test_parse_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_aspect_ratio(value)

    @pytest.mark.parametrize(
        "ratio, size",
        [("9:16", "1024x1536"), ("16:9", "1536x1024"), ("1:1", "1024x1024")],
    )
    def test_output_size(self, ratio, size):
        assert output_size_for(ratio) == size

    def test_prompt_mentions_ratio(self):
        assert "9:16 aspect ratio" in build_prompt("9:16")


class TestAdjust:
    def test_returns_png_data_uri(self):
        client = fake_client()
        adjusted = make_adjuster(client).adjust(PNG_DATA_URI, "9:16")

        assert adjusted.image_uri == "data:image/png;base64," + base64.b64encode(ADJUSTED_BYTES).decode()
        assert adjusted.aspect_ratio == "9:16"
        assert adjusted.size == "1024x1536"

        call = client.images.calls[0]
        assert call["model"] == "gpt-image-1"
        assert call["size"] == "1024x1536"
        assert call["n"] == 1
        filename, upload, mime_type = call["image"]
        assert filename == "image.png"
        assert mime_type == "image/png"
        assert upload.read().startswith(b"\x89PNG")

    def test_default_ratio(self):
        adjusted = make_adjuster(fake_client()).adjust(PNG_DATA_URI)
        assert adjusted.aspect_ratio == "9:16"

    def test_rejects_non_data_uri_before_calling_api(self):
        client = fake_client()
        with pytest.raises(InvalidImageDataError):
            make_adjuster(client).adjust("https://example.com/a.png")
        assert client.images.calls == []

    def test_empty_response(self):
        client = fake_client(response=SimpleNamespace(data=[]))
        with pytest.raises(ExternalAPIError, match="did not return an adjusted image"):
            make_adjuster(client).adjust(PNG_DATA_URI)

    def test_unreadable_response(self):
        client = fake_client(response=SimpleNamespace(data=[SimpleNamespace(b64_json="not base64!")]))
        with pytest.raises(ExternalAPIError, match="unreadable image"):
            make_adjuster(client).adjust(PNG_DATA_URI)

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        adjuster = ImageAdjuster(breaker=CircuitBreaker(name="test"))
        with pytest.raises(MissingAPIKeyError):
            adjuster.adjust(PNG_DATA_URI)


class TestErrorMapping:
    request = httpx.Request("POST", "https://api.openai.com/v1/images/edits")

    def test_timeout(self):
        client = fake_client(error=openai.APITimeoutError(request=self.request))
        with pytest.raises(APITimeoutError):
            make_adjuster(client).adjust(PNG_DATA_URI)

    def test_connection(self):
        client = fake_client(error=openai.APIConnectionError(request=self.request))
        with pytest.raises(APIConnectionError):
            make_adjuster(client).adjust(PNG_DATA_URI)

    def test_breaker_opens_after_repeated_failures(self):
        client = fake_client(error=openai.APIConnectionError(request=self.request))
        adjuster = make_adjuster(client)
        for _ in range(2):
            with pytest.raises(APIConnectionError):
                adjuster.adjust(PNG_DATA_URI)

        with pytest.raises(CircuitBreakerOpenError):
            adjuster.adjust(PNG_DATA_URI)
        assert len(client.images.calls) == 2
