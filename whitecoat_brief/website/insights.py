"""Website insight extraction.

Scrapes a brand's site, asks a text model for products, messaging and proof
points, pulls brand colors out of the CSS and characterizes one product image
with a vision model. The whole thing is best-effort: callers get ``None``
instead of an exception.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..config.settings import settings
from ..prompts import render
from ..utils.llm_client import get_completion_async, image_message
from ..utils.parsing import extract_json_object
from .scraper import (
    _HEADERS,
    discover_pages,
    extract_colors,
    extract_image_urls,
    fetch_image_as_data_url,
    fetch_page,
    normalize_url,
)

logger = logging.getLogger(__name__)

NOT_EXTRACTED = "Could not extract"


@dataclass
class VisualStyle:
    """Visual characterization of a brand image."""

    color_palette: list[str] = field(default_factory=list)
    photography_style: str = ""
    overall_aesthetic: str = ""
    brand_mood: str = ""
    image_description: str = ""


@dataclass
class Product:
    name: str
    description: str = ""
    price: str = ""
    category: str = ""
    image_url: str = ""


@dataclass
class WebsiteInsights:
    """Everything learned about a brand from its website."""

    products: list[str] = field(default_factory=list)
    structured_products: list[Product] = field(default_factory=list)
    pricing: str = ""
    brand_messaging: str = ""
    unique_selling_points: list[str] = field(default_factory=list)
    target_audience: str = ""
    testimonials: list[str] = field(default_factory=list)
    key_benefits: list[str] = field(default_factory=list)
    certifications: list[str] = field(default_factory=list)
    brand_colors: list[str] = field(default_factory=list)
    raw_content: str = ""
    visual_style: Optional[VisualStyle] = None
    product_image_urls: list[str] = field(default_factory=list)

    def to_prompt_section(self) -> str:
        """Format as the website analysis block of the concept prompt."""
        def joined(items: list[str]) -> str:
            return ", ".join(items) if items else "Not found"

        lines = [
            "**Website Analysis:**",
            f"- Products/Services: {joined(self.products)}",
            f"- Pricing: {self.pricing}",
            f"- Brand Messaging: {self.brand_messaging}",
            f"- Unique Selling Points: {joined(self.unique_selling_points)}",
            f"- Key Benefits: {joined(self.key_benefits)}",
        ]
        if self.testimonials:
            lines.append(f"- Customer Testimonials: {' | '.join(self.testimonials[:3])}")
        return "\n".join(lines) + "\n"

    def to_style_prompt_section(self) -> str:
        """Format the visual style block, or an empty string without one."""
        vs = self.visual_style
        if not vs:
            return ""
        return f"""**Brand Visual Style (from website):**
- Color Palette: {', '.join(vs.color_palette)}
- Photography Style: {vs.photography_style}
- Overall Aesthetic: {vs.overall_aesthetic}
- Brand Mood: {vs.brand_mood}

IMPORTANT: When describing visual assets, match this brand's existing visual style. Use their color palette, photography style, and aesthetic.
"""


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return default
    return str(value)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and not isinstance(item, (dict, list))]


def _parse_products(value: Any) -> list[Product]:
    if not isinstance(value, list):
        return []
    products = []
    for item in value:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        products.append(
            Product(
                name=_text(item.get("name")),
                description=_text(item.get("description")),
                price=_text(item.get("price")),
                category=_text(item.get("category")),
                image_url=_text(item.get("imageUrl")),
            )
        )
    return products


def empty_insights(raw_content: str = "") -> WebsiteInsights:
    """Structurally complete insights for when extraction failed."""
    return WebsiteInsights(
        pricing=NOT_EXTRACTED,
        brand_messaging=NOT_EXTRACTED,
        target_audience=NOT_EXTRACTED,
        raw_content=raw_content,
    )


def parse_insights_response(text: str, raw_content: str = "") -> WebsiteInsights:
    """Parse the extraction model's JSON reply. Never raises."""
    try:
        data = json.loads(extract_json_object(text))
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("[INSIGHTS] Could not parse extraction response: %s", e)
        return empty_insights(raw_content)

    if not isinstance(data, dict):
        logger.warning("[INSIGHTS] Extraction response was not a JSON object")
        return empty_insights(raw_content)

    return WebsiteInsights(
        products=_str_list(data.get("products")),
        structured_products=_parse_products(data.get("structuredProducts")),
        pricing=_text(data.get("pricing"), NOT_EXTRACTED),
        brand_messaging=_text(data.get("brandMessaging"), NOT_EXTRACTED),
        unique_selling_points=_str_list(data.get("uniqueSellingPoints")),
        target_audience=_text(data.get("targetAudience"), NOT_EXTRACTED),
        testimonials=_str_list(data.get("testimonials")),
        key_benefits=_str_list(data.get("keyBenefits")),
        certifications=_str_list(data.get("certifications")),
        raw_content=raw_content,
    )


def parse_visual_style(text: str) -> Optional[VisualStyle]:
    """Parse the vision model's JSON reply, or None if unusable."""
    try:
        data = json.loads(extract_json_object(text))
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    return VisualStyle(
        color_palette=_str_list(data.get("colorPalette")),
        photography_style=_text(data.get("photographyStyle")),
        overall_aesthetic=_text(data.get("overallAesthetic")),
        brand_mood=_text(data.get("brandMood")),
        image_description=_text(data.get("imageDescription")),
    )


class InsightExtractor:
    """Turns a website URL into WebsiteInsights."""

    def __init__(
        self,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        timeout: Optional[float] = None,
        page_timeout: Optional[float] = None,
        probe_timeout: Optional[float] = None,
        image_timeout: Optional[float] = None,
        page_chars: Optional[int] = None,
        max_chars: Optional[int] = None,
        max_vision_images: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model or settings.insights_model
        self.vision_model = vision_model or settings.vision_model
        self.timeout = timeout if timeout is not None else settings.insights_timeout
        self.page_timeout = page_timeout or settings.page_timeout
        self.probe_timeout = probe_timeout or settings.probe_timeout
        self.image_timeout = image_timeout or settings.image_fetch_timeout
        self.page_chars = page_chars or settings.page_content_chars
        self.max_chars = max_chars or settings.max_content_chars
        self.max_vision_images = (
            max_vision_images if max_vision_images is not None else settings.max_vision_images
        )
        self.transport = transport

    async def get_insights(self, url: str) -> Optional[WebsiteInsights]:
        """Run extract() under a hard timeout. Never raises."""
        try:
            return await asyncio.wait_for(self.extract(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("[INSIGHTS] Website analysis timed out after %.0fs: %s", self.timeout, url)
            return None
        except Exception as e:
            logger.error("[INSIGHTS] Website analysis failed for %s: %s", url, e)
            return None

    async def extract(self, url: str) -> Optional[WebsiteInsights]:
        base_url = normalize_url(url)
        if not base_url:
            logger.warning("[INSIGHTS] Invalid website URL: %r", url)
            return None

        async with httpx.AsyncClient(
            follow_redirects=True, headers=_HEADERS, transport=self.transport
        ) as client:
            pages = await discover_pages(client, base_url, timeout=self.probe_timeout)
            logger.info("[INSIGHTS] Scraping %d page(s): %s", len(pages), ", ".join(pages))

            sections = []
            html_parts = []
            final_url = base_url
            for page_url in pages:
                try:
                    page = await fetch_page(
                        client, page_url, timeout=self.page_timeout, max_chars=self.page_chars
                    )
                except Exception as e:
                    logger.warning("[INSIGHTS] Failed to fetch %s: %s", page_url, e)
                    continue
                sections.append(f"--- Content from {page_url} ---\n\n{page.text}")
                html_parts.append(page.html)
                if page_url == base_url:
                    final_url = page.final_url

            if not sections:
                logger.warning("[INSIGHTS] No content could be fetched from %s", base_url)
                return None

            content = "\n\n".join(sections)[: self.max_chars]
            combined_html = "\n".join(html_parts)

            insights = await self.analyze_content(content)
            insights.brand_colors = extract_colors(combined_html)
            insights.product_image_urls = extract_image_urls(combined_html, final_url)
            insights.visual_style = await self._first_visual_style(
                client, insights.product_image_urls
            )

        logger.info(
            "[INSIGHTS] %s: %d products, %d colors, %d images, visual style %s",
            base_url,
            len(insights.products),
            len(insights.brand_colors),
            len(insights.product_image_urls),
            "found" if insights.visual_style else "not found",
        )
        return insights

    async def analyze_content(self, content: str) -> WebsiteInsights:
        """Ask the text model for structured insights about the scraped text."""
        response_text = await get_completion_async(
            model=self.model,
            messages=[{"role": "user", "content": render("website_extraction", content=content)}],
            max_tokens=4000,
            temperature=0.3,
        )
        return parse_insights_response(response_text, raw_content=content[:2000])

    async def analyze_visual_style(self, image_data_url: str) -> Optional[VisualStyle]:
        response_text = await get_completion_async(
            model=self.vision_model,
            messages=image_message(render("visual_style"), image_data_url),
            max_tokens=1000,
            temperature=0.3,
        )
        return parse_visual_style(response_text)

    async def _first_visual_style(
        self, client: httpx.AsyncClient, image_urls: list[str]
    ) -> Optional[VisualStyle]:
        for image_url in image_urls[: self.max_vision_images]:
            data_url = await fetch_image_as_data_url(client, image_url, timeout=self.image_timeout)
            if not data_url:
                continue
            try:
                style = await self.analyze_visual_style(data_url)
            except Exception as e:
                logger.warning("[INSIGHTS] Vision analysis failed for %s: %s", image_url, e)
                continue
            if style:
                return style
        return None
