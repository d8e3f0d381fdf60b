"""Concept Agent for DTC ad concept generation via the Anthropic SDK."""

import logging
from typing import Optional

import anthropic

from ..app.models import AdConcept, Submission
from ..config.settings import settings
from ..exceptions import ConceptGenerationFailed
from ..website.insights import WebsiteInsights
from ._prompt_helpers import build_concept_prompt, parse_concepts_response
from .base_agent import BaseAgent
from .litellm_concept_agent import LiteLLMConceptAgent

logger = logging.getLogger(__name__)


class ConceptAgent(BaseAgent):
    """
    Generates ad concepts for a submission using Claude.

    Same interface as LiteLLMConceptAgent; picked by build_concept_agent()
    for "claude-*" model ids.
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model_id: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        super().__init__(client, model_id=model_id, max_tokens=max_tokens or settings.concept_max_tokens)
        self.temperature = temperature if temperature is not None else settings.concept_temperature

    async def execute(
        self,
        submission: Submission,
        insights: Optional[WebsiteInsights] = None,
    ) -> list[AdConcept]:
        """
        Generate ad concepts for the given submission.

        Raises:
            ConceptGenerationFailed: for any API or parsing failure
        """
        prompt = build_concept_prompt(submission, insights)
        logger.info("[CONCEPTS] Calling %s for %s...", self.model_id, submission.brand_name)

        try:
            reply = await self._ask(prompt, temperature=self.temperature)
        except anthropic.APIError as e:
            logger.error("[CONCEPTS] %s call failed: %s", self.model_id, e)
            raise ConceptGenerationFailed(str(e)) from e

        logger.info(
            "[CONCEPTS] Got response (%d in / %d out tokens)",
            reply.usage.input_tokens,
            reply.usage.output_tokens,
        )
        return parse_concepts_response(reply.text)


def build_concept_agent(model_id: Optional[str] = None):
    """Pick the concept agent for a model id: Anthropic SDK for claude-*, LiteLLM otherwise."""
    model_id = model_id or settings.concept_model
    if model_id.startswith("claude"):
        if not settings.anthropic_api_key:
            raise ConceptGenerationFailed("ANTHROPIC_API_KEY environment variable is not set")
        client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        return ConceptAgent(client, model_id=model_id)
    return LiteLLMConceptAgent(model_id=model_id)
