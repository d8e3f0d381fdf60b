"""Ad concept agents."""

from .concept_agent import ConceptAgent, build_concept_agent
from .litellm_concept_agent import LiteLLMConceptAgent

__all__ = ["ConceptAgent", "LiteLLMConceptAgent", "build_concept_agent"]
