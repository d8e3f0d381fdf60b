"""LiteLLM-based Concept Agent for non-Anthropic models.

Uses LiteLLM to support Gemini, OpenAI, and other models for concept generation.
"""

import logging
import os
from typing import Optional

from ..app.models import AdConcept, Submission
from ..config.settings import settings
from ..exceptions import ConceptGenerationFailed
from ..utils.llm_client import get_completion_async
from ..website.insights import WebsiteInsights
from ._prompt_helpers import build_concept_prompt, parse_concepts_response

logger = logging.getLogger(__name__)


class LiteLLMConceptAgent:
    """
    Concept agent using LiteLLM for Gemini and other non-Anthropic models.

    Provides the same interface as ConceptAgent but uses LiteLLM for API calls.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        """
        Initialize LiteLLM concept agent.

        Args:
            model_id: LiteLLM model identifier (e.g., "gemini/gemini-2.0-flash")
            max_tokens: Maximum tokens for response
            temperature: Sampling temperature
        """
        self.model_id = model_id or settings.concept_model
        self.max_tokens = max_tokens or settings.concept_max_tokens
        self.temperature = temperature if temperature is not None else settings.concept_temperature

    def _check_credentials(self) -> None:
        if self.model_id.startswith("gemini/") and not (
            settings.gemini_api_key or os.getenv("GEMINI_API_KEY")
        ):
            raise ConceptGenerationFailed("GEMINI_API_KEY environment variable is not set")

    async def execute(
        self,
        submission: Submission,
        insights: Optional[WebsiteInsights] = None,
    ) -> list[AdConcept]:
        """
        Generate ad concepts for the given submission.

        Args:
            submission: Client questionnaire answers
            insights: Optional website analysis to ground the concepts

        Returns:
            Concepts in the order the model returned them, numbered from 1

        Raises:
            ConceptGenerationFailed: for missing keys, API errors or unusable output
        """
        self._check_credentials()
        prompt = build_concept_prompt(submission, insights)

        logger.info("[LITELLM_CONCEPTS] Calling %s for %s...", self.model_id, submission.brand_name)

        try:
            response_text = await get_completion_async(
                model=self.model_id,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error("[LITELLM_CONCEPTS] %s call failed: %s", self.model_id, str(e))
            raise ConceptGenerationFailed(str(e)) from e

        logger.info(
            "[LITELLM_CONCEPTS] Got response (%d chars)",
            len(response_text) if response_text else 0,
        )
        return parse_concepts_response(response_text)
