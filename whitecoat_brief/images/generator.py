"""Batched image generation with retry and provider fallback."""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config.settings import settings
from .prompt_builder import ImagePrompt
from .providers import ImageProvider, ProviderUnavailableError, RateLimitedError, default_providers

logger = logging.getLogger(__name__)


@dataclass
class ImageGenerationResult:
    prompt: str
    image_url: Optional[str]
    error: Optional[str]
    ad_number: int
    image_number: int

    @property
    def ok(self) -> bool:
        return self.image_url is not None


# May return an awaitable; generate_all awaits it before moving on.
ProgressCallback = Callable[[int, int, ImageGenerationResult], Union[None, Awaitable[None]]]


class ImageGenerator:
    """Runs prompts through the providers in fixed-size concurrent batches.

    Providers are tried in order. A rate-limited provider is retried with
    exponential backoff before falling through to the next one; an
    unconfigured or failing provider falls through immediately.
    """

    def __init__(
        self,
        providers: Optional[list[ImageProvider]] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.providers = providers if providers is not None else default_providers()
        self.batch_size = batch_size if batch_size is not None else settings.image_batch_size
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        self.batch_delay = batch_delay if batch_delay is not None else settings.image_batch_delay
        self.max_retries = max_retries if max_retries is not None else settings.image_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.image_retry_delay

    async def generate_all(
        self,
        prompts: list[ImagePrompt],
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[ImageGenerationResult]:
        """Generate one image per prompt. Results are in input order. Never raises."""
        total = len(prompts)
        results: list[Optional[ImageGenerationResult]] = [None] * total
        completed = 0

        for start in range(0, total, self.batch_size):
            batch = prompts[start:start + self.batch_size]
            batch_results = await asyncio.gather(*(self.generate_one(p) for p in batch))

            for offset, result in enumerate(batch_results):
                results[start + offset] = result
                completed += 1
                if on_progress:
                    try:
                        outcome = on_progress(completed, total, result)
                        if inspect.isawaitable(outcome):
                            await outcome
                    except Exception as e:
                        logger.error("[IMAGES] Progress callback failed: %s", e)

            logger.info("[IMAGES] %d/%d complete", completed, total)

            if start + self.batch_size < total and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return results

    async def generate_one(self, prompt: ImagePrompt) -> ImageGenerationResult:
        """Try each provider in turn; record every error if all fail."""
        errors = []
        for provider in self.providers:
            try:
                image_url = await self._with_retries(provider, prompt.prompt)
            except ProviderUnavailableError as e:
                logger.info("[IMAGES] %s unavailable: %s", provider.name, e)
                errors.append(f"{provider.name}: {e}")
                continue
            except Exception as e:
                logger.warning(
                    "[IMAGES] %s failed for ad %d image %d: %s",
                    provider.name, prompt.ad_number, prompt.image_number, e,
                )
                errors.append(f"{provider.name}: {e}")
                continue

            return ImageGenerationResult(
                prompt=prompt.prompt,
                image_url=image_url,
                error=None,
                ad_number=prompt.ad_number,
                image_number=prompt.image_number,
            )

        return ImageGenerationResult(
            prompt=prompt.prompt,
            image_url=None,
            error="; ".join(errors) or "No image providers configured",
            ad_number=prompt.ad_number,
            image_number=prompt.image_number,
        )

    async def _with_retries(self, provider: ImageProvider, prompt: str) -> str:
        def log_retry(retry_state: RetryCallState) -> None:
            logger.info(
                "[IMAGES] %s rate limited, retrying in %.1fs (attempt %d/%d)",
                provider.name,
                retry_state.next_action.sleep,
                retry_state.attempt_number,
                self.max_retries,
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimitedError),
            wait=wait_exponential(multiplier=self.retry_delay),
            stop=stop_after_attempt(self.max_retries + 1),
            sleep=asyncio.sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        return await retrying(provider.generate, prompt)
