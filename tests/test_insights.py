import asyncio
import io
import json

import httpx
import pytest
from PIL import Image

from whitecoat_brief.website import insights as insights_module
from whitecoat_brief.website.insights import (
    NOT_EXTRACTED,
    InsightExtractor,
    parse_insights_response,
    parse_visual_style,
)
from whitecoat_brief.website.scraper import (
    extract_colors,
    extract_image_urls,
    extract_visible_text,
    normalize_url,
)

EXTRACTION_JSON = {
    "products": ["Barrier Cream", "Calm Serum"],
    "structuredProducts": [
        {"name": "Barrier Cream", "price": "$38", "category": "Skincare"},
        {"description": "no name, skipped"},
    ],
    "pricing": "$30-$60",
    "brandMessaging": "Dermatologist-made skincare",
    "uniqueSellingPoints": ["Fragrance free"],
    "targetAudience": "Sensitive skin",
    "testimonials": ["My skin finally calmed down"],
    "keyBenefits": ["Less redness"],
    "certifications": ["Cruelty-free"],
}

HOMEPAGE = """
<html>
  <head>
    <style>
      body { background: #ffffff; color: #000; }
      .accent { color: #1a73e8; border-color: rgba(0, 128, 96, 0.5); }
      .muted { color: #808080; }
    </style>
    <script>var ignored = "script text";</script>
  </head>
  <body>
    <header style="background-color: #FF5733">
      <img src="/static/logo.png">
      <img src="data:image/gif;base64,R0lGOD">
    </header>
    <h1>Calm skin, clinically.</h1>
    <p>Barrier Cream made by a board-certified dermatologist.</p>
    <img src="/images/hero.png">
    <img src="https://cdn.acme.test/products/cream.jpg">
    <img src="/images/hero.png">
    <div style="background-image: url('/images/banner.jpg')"></div>
  </body>
</html>
"""


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (2000, 1000), (20, 120, 90)).save(buf, format="PNG")
    return buf.getvalue()


# --- scraper helpers ---


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("acmeskin.test", "https://acmeskin.test"),
        ("  http://acmeskin.test/shop ", "http://acmeskin.test/shop"),
        ("HTTPS://Acme.test", "HTTPS://Acme.test"),
        ("", None),
        (None, None),
        ("https://", None),
        ("not a url", None),
        ("acme.test:notaport", None),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


def test_visible_text_drops_scripts_and_collapses_whitespace():
    text = extract_visible_text(HOMEPAGE)

    assert "Calm skin, clinically. Barrier Cream made by" in text
    assert "script text" not in text
    assert "#1a73e8" not in text


def test_extract_colors_filters_neutrals_and_normalizes_case():
    assert extract_colors(HOMEPAGE) == ["#1A73E8", "rgba(0,128,96,0.5)", "#FF5733"]


def test_extract_colors_caps_and_dedupes():
    css = " ".join(f"#{i}{i}00FF" for i in range(1, 9))
    html = f"<style>#1100ff {css}</style>"

    colors = extract_colors(html)

    assert len(colors) == 6
    assert len(set(colors)) == 6
    assert colors[:2] == ["#1100FF", "#2200FF"]


def test_extract_image_urls_resolves_and_filters():
    urls = extract_image_urls(HOMEPAGE, "https://acmeskin.test/")

    assert urls == [
        "https://acmeskin.test/images/hero.png",
        "https://cdn.acme.test/products/cream.jpg",
        "https://acmeskin.test/images/banner.jpg",
    ]


# --- response parsing ---


def test_parse_insights_response_tolerates_fences_and_prose():
    text = "Here you go:\n```json\n" + json.dumps(EXTRACTION_JSON) + "\n```"

    insights = parse_insights_response(text, raw_content="raw")

    assert insights.products == ["Barrier Cream", "Calm Serum"]
    assert [p.name for p in insights.structured_products] == ["Barrier Cream"]
    assert insights.structured_products[0].price == "$38"
    assert insights.brand_messaging == "Dermatologist-made skincare"
    assert insights.certifications == ["Cruelty-free"]
    assert insights.raw_content == "raw"
    assert insights.visual_style is None


def test_parse_insights_response_degrades_to_empty_structure():
    insights = parse_insights_response("the model rambled instead", raw_content="raw")

    assert insights.products == []
    assert insights.unique_selling_points == []
    assert insights.pricing == NOT_EXTRACTED
    assert insights.brand_messaging == NOT_EXTRACTED
    assert insights.target_audience == NOT_EXTRACTED
    assert insights.brand_colors == []


def test_parse_visual_style():
    style = parse_visual_style('{"colorPalette": ["sage"], "brandMood": "calming"}')

    assert style.color_palette == ["sage"]
    assert style.brand_mood == "calming"
    assert parse_visual_style("no json here") is None


# --- extractor ---


def _site_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if request.method == "HEAD":
        if path == "/collections/all":
            return httpx.Response(200)
        return httpx.Response(404)
    if path in ("", "/"):
        return httpx.Response(200, text=HOMEPAGE, headers={"content-type": "text/html"})
    if path == "/collections/all":
        return httpx.Response(
            200,
            text="<html><body><p>Shop the Calm Serum</p></body></html>",
            headers={"content-type": "text/html"},
        )
    if path == "/images/hero.png":
        return httpx.Response(200, content=_png_bytes(), headers={"content-type": "image/png"})
    return httpx.Response(404)


def test_extract_combines_pages_colors_and_vision(monkeypatch):
    calls = []

    async def fake_completion(model, messages, **kwargs):
        calls.append((model, messages))
        content = messages[0]["content"]
        if isinstance(content, list):
            return json.dumps({"photographyStyle": "clean studio", "brandMood": "calming"})
        return json.dumps(EXTRACTION_JSON)

    monkeypatch.setattr(insights_module, "get_completion_async", fake_completion)
    extractor = InsightExtractor(
        model="gemini/test-text",
        vision_model="gemini/test-vision",
        transport=httpx.MockTransport(_site_handler),
    )

    insights = asyncio.run(extractor.get_insights("acmeskin.test"))

    assert insights is not None
    assert insights.products == ["Barrier Cream", "Calm Serum"]
    assert insights.brand_colors == ["#1A73E8", "rgba(0,128,96,0.5)", "#FF5733"]
    assert insights.product_image_urls[0] == "https://acmeskin.test/images/hero.png"
    assert insights.visual_style.brand_mood == "calming"

    text_model, text_messages = calls[0]
    assert text_model == "gemini/test-text"
    prompt = text_messages[0]["content"]
    assert "--- Content from https://acmeskin.test ---" in prompt
    assert "--- Content from https://acmeskin.test/collections/all ---" in prompt
    assert "Shop the Calm Serum" in prompt

    vision_model, vision_messages = calls[1]
    assert vision_model == "gemini/test-vision"
    image_part = vision_messages[0]["content"][1]["image_url"]["url"]
    assert image_part.startswith("data:image/png;base64,")


def test_extract_returns_none_when_no_page_loads(monkeypatch):
    async def unexpected_completion(*args, **kwargs):
        raise AssertionError("model should not be called")

    monkeypatch.setattr(insights_module, "get_completion_async", unexpected_completion)
    extractor = InsightExtractor(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    assert asyncio.run(extractor.get_insights("https://down.test")) is None


def test_invalid_url_gives_none():
    assert asyncio.run(InsightExtractor().get_insights("not a url")) is None


def test_get_insights_times_out():
    class SlowExtractor(InsightExtractor):
        async def extract(self, url):
            await asyncio.sleep(1)

    assert asyncio.run(SlowExtractor(timeout=0.01).get_insights("https://slow.test")) is None


def test_get_insights_swallows_model_failures(monkeypatch):
    async def failing_completion(*args, **kwargs):
        raise RuntimeError("model down")

    monkeypatch.setattr(insights_module, "get_completion_async", failing_completion)
    extractor = InsightExtractor(transport=httpx.MockTransport(_site_handler))

    assert asyncio.run(extractor.get_insights("https://acmeskin.test")) is None
