"""Image prompt derivation.

Expands each ad concept into three image-generation prompts, one per visual
variant, optionally styled with what was learned from the brand's website.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from ..app.models import AdConcept

# Every concept gets one prompt per variant in build_concept_prompts.
IMAGES_PER_CONCEPT = 3
MAX_PRODUCT_NAMES = 3

_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^\w .,!?&%()/+\-]")
_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{3}([0-9A-Fa-f]{3})?$")


@dataclass
class ImagePrompt:
    prompt: str
    ad_number: int
    image_number: int


@dataclass
class ImageStyle:
    """Brand styling applied to every prompt of a run."""

    product_names: list[str] = field(default_factory=list)
    brand_colors: list[str] = field(default_factory=list)
    photography_style: str = ""
    overall_aesthetic: str = ""
    brand_mood: str = ""

    @classmethod
    def from_insights(cls, insights: Any) -> Optional["ImageStyle"]:
        """Build from WebsiteInsights; None when there is nothing to apply."""
        if insights is None:
            return None
        names = [p.name for p in insights.structured_products] or list(insights.products)
        vs = insights.visual_style
        return cls(
            product_names=names,
            brand_colors=list(insights.brand_colors),
            photography_style=vs.photography_style if vs else "",
            overall_aesthetic=vs.overall_aesthetic if vs else "",
            brand_mood=vs.brand_mood if vs else "",
        )


def sanitize_prompt_text(text: Any) -> str:
    """Keep word characters, spaces and basic punctuation only. Never raises."""
    if text is None:
        return ""
    cleaned = _UNSAFE.sub("", _WHITESPACE.sub(" ", str(text)))
    return _WHITESPACE.sub(" ", cleaned).strip()


def valid_hex_colors(colors: list[str]) -> list[str]:
    return [c for c in colors if isinstance(c, str) and _HEX_COLOR.match(c)]


def _style_modifiers(style: Optional[ImageStyle]) -> str:
    if not style:
        return ""
    parts = []
    products = [sanitize_prompt_text(n) for n in style.product_names[:MAX_PRODUCT_NAMES]]
    products = [p for p in products if p]
    if products:
        parts.append(f"Featuring products: {', '.join(products)}.")

    photography = sanitize_prompt_text(style.photography_style)
    if photography:
        parts.append(f"Photography style: {photography}.")
    aesthetic = sanitize_prompt_text(style.overall_aesthetic)
    if aesthetic:
        parts.append(f"Aesthetic: {aesthetic}.")
    mood = sanitize_prompt_text(style.brand_mood)
    if mood:
        parts.append(f"Mood: {mood}.")

    colors = valid_hex_colors(style.brand_colors)
    if colors:
        parts.append(f"Brand colors: {', '.join(colors)}.")
    return " ".join(parts)


def build_concept_prompts(
    concept: AdConcept,
    brand_name: str,
    style: Optional[ImageStyle] = None,
) -> list[ImagePrompt]:
    """The IMAGES_PER_CONCEPT variant prompts for one concept."""
    visual = concept.visual_asset
    elements = visual.key_elements
    emotion = concept.target_emotion

    base = (
        "Professional healthcare/medical advertising photography. "
        f"{visual.description}. Style: {visual.style}. Brand: {brand_name}."
    )
    modifiers = _style_modifiers(style)
    if modifiers:
        base = f"{base} {modifiers}"

    variants = [
        f"{base} Key elements: {', '.join(elements)}. Emotion: {emotion}. "
        "Clean, modern, trustworthy aesthetic. High-quality product photography with medical credibility.",
        f"{base} Focus on: {elements[0] if elements else 'product'}. {concept.hook_type} appeal. "
        "Lifestyle context showing real-world application. Warm, approachable lighting. "
        "Professional medical brand imagery.",
        f"{base} Emphasizing: {' and '.join(elements[:2]) or 'brand identity'}. "
        "Social media optimized composition. Bold, eye-catching for scroll-stopping. "
        f"{emotion} emotion. Healthcare innovation aesthetic.",
    ]
    return [
        ImagePrompt(prompt=text, ad_number=concept.ad_number, image_number=i)
        for i, text in enumerate(variants[:IMAGES_PER_CONCEPT], start=1)
    ]


def derive_image_prompts(
    concepts: list[AdConcept],
    brand_name: str,
    style: Optional[ImageStyle] = None,
) -> list[ImagePrompt]:
    """Three prompts per concept, concept-major then image number."""
    prompts: list[ImagePrompt] = []
    for concept in concepts:
        prompts.extend(build_concept_prompts(concept, brand_name, style))
    return prompts
