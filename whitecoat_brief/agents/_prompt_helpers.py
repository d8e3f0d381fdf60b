"""Shared prompt builder and response parser for concept agents.

Used by both ConceptAgent (Anthropic SDK) and LiteLLMConceptAgent so the
prompt and the parsing rules live in one place.
"""

import json
from typing import Optional

from pydantic import ValidationError

from ..app.models import AdConcept, Submission
from ..exceptions import ConceptGenerationFailed
from ..prompts import render
from ..utils.parsing import strip_code_fences
from ..website.insights import WebsiteInsights

CONCEPT_COUNT = 10


def build_concept_prompt(
    submission: Submission,
    insights: Optional[WebsiteInsights] = None,
    concept_count: int = CONCEPT_COUNT,
) -> str:
    """Build the full concept prompt: system instruction, brand facts, website context.

    Args:
        submission: The client's questionnaire answers.
        insights: Website analysis, if one was produced.
        concept_count: How many concepts to ask for.

    Returns:
        Rendered prompt string.
    """
    system = render("concept_system", concept_count=str(concept_count))

    website_section = ""
    style_section = ""
    if insights:
        website_section = "\n" + insights.to_prompt_section()
        style_section = insights.to_style_prompt_section()
        if style_section:
            style_section = "\n" + style_section

    brand_lines = [
        f"**Brand Name:** {submission.brand_name}",
        f"**Founder:** {submission.founder_name}",
        f"**Medical Credentials:** {submission.medical_credentials}",
        f"**Specialty:** {submission.specialty}",
        f"**Product Type:** {submission.product_type}",
        f"**Current Revenue:** {submission.current_revenue}",
        f"**Biggest Challenge:** {submission.biggest_challenge}",
        f"**Target Audience:** {submission.target_audience}",
    ]
    if submission.website:
        brand_lines.append(f"**Website:** {submission.website}")
    if submission.additional_info:
        brand_lines.append(f"**Additional Info:** {submission.additional_info}")

    requirements = [
        f"1. Leverage {submission.founder_name}'s {submission.medical_credentials} credentials",
        f'2. Address the challenge: "{submission.biggest_challenge}"',
        f'3. Resonate with the target audience: "{submission.target_audience}"',
        f"4. Are appropriate for {submission.product_type} products",
        "5. Use a variety of hook types and platforms",
    ]
    if insights:
        requirements.append(
            "6. Incorporate specific products, benefits, and messaging from the website analysis above"
        )

    brand_block = "\n".join(brand_lines)
    requirement_block = "\n".join(requirements)

    return f"""{system}

Create {concept_count} DTC ad concepts for the following brand:

{brand_block}
{website_section}{style_section}
Generate {concept_count} unique ad concepts that:
{requirement_block}

Return ONLY valid JSON, no markdown formatting or code blocks."""


def parse_concepts_response(text: str) -> list[AdConcept]:
    """Parse the model's reply into ad concepts.

    ``adNumber`` is rewritten to the 1-based position so ordinals are dense
    whatever the model returned.

    Raises:
        ConceptGenerationFailed: on malformed JSON, a missing ``adConcepts``
            array, or an item that does not validate.
    """
    json_text = strip_code_fences(text)
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ConceptGenerationFailed(f"Failed to parse ad concepts: {e}") from e

    raw_concepts = parsed.get("adConcepts") if isinstance(parsed, dict) else None
    if not isinstance(raw_concepts, list):
        raise ConceptGenerationFailed(
            "Failed to parse ad concepts: Invalid response structure: missing adConcepts array"
        )

    concepts = []
    for position, item in enumerate(raw_concepts, start=1):
        if not isinstance(item, dict):
            raise ConceptGenerationFailed(
                f"Failed to parse ad concepts: concept {position} is not an object"
            )
        try:
            concept = AdConcept.model_validate(item)
        except ValidationError as e:
            raise ConceptGenerationFailed(
                f"Failed to parse ad concepts: concept {position} is invalid: {e}"
            ) from e
        concept.ad_number = position
        concepts.append(concept)
    return concepts


def concepts_to_json(concepts: list[AdConcept]) -> str:
    """Serialize concepts with camelCase keys for storage."""
    return json.dumps([c.model_dump(by_alias=True) for c in concepts])


def concepts_from_json(text: Optional[str]) -> list[AdConcept]:
    """Inverse of concepts_to_json. Empty list for missing or unreadable data."""
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return []
    if not isinstance(data, list):
        return []
    try:
        return [AdConcept.model_validate(item) for item in data if isinstance(item, dict)]
    except ValidationError:
        return []
