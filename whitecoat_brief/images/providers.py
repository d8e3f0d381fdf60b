"""Image generation providers.

Each provider turns one prompt into one image reference (a URL or a data
URI). The generator decides retry and fallback; providers only classify
failures.
"""

import base64
import logging
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config.settings import settings

logger = logging.getLogger(__name__)


class ImageProviderError(Exception):
    """A provider could not produce an image."""


class RateLimitedError(ImageProviderError):
    """The provider answered 429; worth retrying after a pause."""


class ProviderUnavailableError(ImageProviderError):
    """The provider is not configured (missing key or token)."""


class ImageProvider:
    """Base class for image providers."""

    name = "base"

    async def generate(self, prompt: str) -> str:
        raise NotImplementedError


class GeminiImageProvider(ImageProvider):
    """Gemini image model; returns a base64 data URI."""

    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.image_model
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if not self.api_key:
            raise ProviderUnavailableError("GEMINI_API_KEY environment variable is not set")
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._get_client()
        logger.debug("[GEMINI_IMAGE] Prompt preview: %s...", prompt[:150])

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=f"Generate an image: {prompt}",
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"],
                ),
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                raise RateLimitedError(f"Gemini rate limited: {e}") from e
            raise ImageProviderError(f"Gemini API error: {e}") from e

        for candidate in response.candidates or []:
            content = candidate.content
            if not content:
                continue
            for part in content.parts or []:
                inline = part.inline_data
                if inline and inline.data:
                    mime_type = inline.mime_type or "image/png"
                    encoded = base64.b64encode(inline.data).decode()
                    return f"data:{mime_type};base64,{encoded}"

        raise ImageProviderError("Gemini did not return an image")


class GlifImageProvider(ImageProvider):
    """Glif simple API; returns a hosted image URL."""

    name = "glif"

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else settings.glif_api_token
        self.api_url = api_url or settings.glif_api_url
        self.timeout = timeout
        self.transport = transport

    async def generate(self, prompt: str) -> str:
        if not self.token:
            raise ProviderUnavailableError("GLIF_API_TOKEN environment variable is not set")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.token}"},
                json={"input": prompt},
            )

        if resp.status_code == 429:
            raise RateLimitedError("Glif rate limited")
        if not resp.is_success:
            raise ImageProviderError(f"Glif API error: {resp.status_code} - {resp.text}")

        data = resp.json()
        if data.get("error"):
            raise ImageProviderError(f"Glif API error: {data['error']}")
        if not data.get("output"):
            raise ImageProviderError("Glif API returned no output")
        return data["output"]


def default_providers() -> list[ImageProvider]:
    """Gemini first, Glif as fallback."""
    return [GeminiImageProvider(), GlifImageProvider()]
