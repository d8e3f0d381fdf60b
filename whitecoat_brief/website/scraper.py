"""Website scraper for brand text, CSS colors and product imagery."""

import base64
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from PIL import Image

logger = logging.getLogger(__name__)


@dataclass
class ScrapedPage:
    """One fetched page."""

    url: str
    final_url: str  # after redirects
    html: str
    text: str  # visible text, truncated


_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; WhiteCoatBrief/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# Common catalog paths (Shopify first, then generic stores)
CATALOG_PATHS = (
    "/collections/all",
    "/products",
    "/collections",
    "/shop",
    "/store",
    "/all-products",
)

_SKIP_IMAGE_MARKERS = ("pixel", "tracking", "icon", "logo", "favicon", "1x1", "spacer")

_HEX_COLOR = re.compile(r"#(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{3})\b")
_RGB_COLOR = re.compile(
    r"rgba?\(\s*\d+\s*,\s*\d+\s*,\s*\d+(?:\s*,\s*[\d.]+)?\s*\)", re.IGNORECASE
)
_BACKGROUND_URL = re.compile(
    r"background(?:-image)?:\s*url\([\"']?([^\"')]+)[\"']?\)", re.IGNORECASE
)

MAX_COLORS = 6
MAX_IMAGE_URLS = 10


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Prepend https:// when no scheme is given. None if still unusable."""
    if not url:
        return None
    candidate = url.strip()
    if not candidate or re.search(r"\s", candidate):
        return None
    if not re.match(r"^https?://", candidate, re.IGNORECASE):
        candidate = f"https://{candidate}"
    try:
        parsed = urlparse(candidate)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if not parsed.hostname:
        return None
    return candidate


def extract_visible_text(html: str) -> str:
    """Strip scripts/styles and collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = 10.0,
    max_chars: int = 30000,
) -> ScrapedPage:
    """Fetch a page and extract its visible text. Raises on HTTP errors."""
    resp = await client.get(url, timeout=timeout)
    resp.raise_for_status()
    html = resp.text
    return ScrapedPage(
        url=url,
        final_url=str(resp.url),
        html=html,
        text=extract_visible_text(html)[:max_chars],
    )


async def discover_pages(
    client: httpx.AsyncClient,
    base_url: str,
    timeout: float = 2.0,
    paths: tuple[str, ...] = CATALOG_PATHS,
    max_extra: int = 1,
) -> list[str]:
    """Return the homepage plus up to max_extra catalog pages that exist.

    Each candidate is probed with a HEAD request; unreachable paths are skipped.
    """
    pages = [base_url]
    home = base_url.rstrip("/")

    for path in paths:
        test_url = urljoin(base_url, path)
        try:
            resp = await client.head(test_url, timeout=timeout)
        except Exception as e:
            logger.info("[SCRAPER] Path %s not accessible: %s", path, e)
            continue

        if resp.is_success and str(resp.url).rstrip("/") != home and test_url not in pages:
            pages.append(test_url)
            logger.info("[SCRAPER] Found additional page: %s", test_url)
            if len(pages) > max_extra:
                break

    return pages


def _style_sources(html: str) -> list[str]:
    """Contents of <style> blocks and inline style attributes."""
    soup = BeautifulSoup(html, "html.parser")
    sources = [tag.get_text() for tag in soup.find_all("style")]
    sources.extend(tag["style"] for tag in soup.find_all(style=True))
    return sources


def _rgb_of(color: str) -> Optional[tuple[int, int, int]]:
    if color.startswith("#"):
        digits = color[1:]
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))
    numbers = re.findall(r"\d+(?:\.\d+)?", color)[:3]
    if len(numbers) < 3:
        return None
    return tuple(min(255, int(float(n))) for n in numbers)


def _is_neutral(rgb: tuple[int, int, int]) -> bool:
    """Near-white, near-black or gray."""
    high, low = max(rgb), min(rgb)
    return high - low <= 12 or high <= 24 or low >= 240


def extract_colors(html: str, limit: int = MAX_COLORS) -> list[str]:
    """Pull brand colors out of embedded and inline CSS."""
    found: dict[str, None] = {}
    for source in _style_sources(html):
        for match in _HEX_COLOR.findall(source):
            found.setdefault(match.upper(), None)
        for match in _RGB_COLOR.findall(source):
            found.setdefault(re.sub(r"\s+", "", match.lower()), None)

    colors = []
    for color in found:
        rgb = _rgb_of(color)
        if rgb is None or _is_neutral(rgb):
            continue
        colors.append(color)
        if len(colors) >= limit:
            break
    return colors


def _usable_image(url: str) -> bool:
    lowered = url.lower()
    if lowered.startswith("data:"):
        return False
    return not any(marker in lowered for marker in _SKIP_IMAGE_MARKERS)


def extract_image_urls(html: str, base_url: str, limit: int = MAX_IMAGE_URLS) -> list[str]:
    """Likely product/hero images, as absolute URLs."""
    soup = BeautifulSoup(html, "html.parser")
    candidates = [img["src"].strip() for img in soup.find_all("img", src=True)]
    candidates.extend(m.strip() for m in _BACKGROUND_URL.findall(html))

    urls: dict[str, None] = {}
    for src in candidates:
        if not src or not _usable_image(src):
            continue
        urls.setdefault(urljoin(base_url, src), None)
    return list(urls)[:limit]


async def fetch_image_as_data_url(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = 5.0,
    max_side: int = 1024,
) -> Optional[str]:
    """Download an image and return it as a PNG data URL, downscaled for the vision model."""
    try:
        resp = await client.get(url, timeout=timeout)
        if not resp.is_success:
            return None
        content_type = resp.headers.get("content-type", "")
        if not content_type.startswith("image/") or "svg" in content_type:
            return None

        img = Image.open(io.BytesIO(resp.content))
        img = img.convert("RGB")
        if img.width > max_side or img.height > max_side:
            img.thumbnail((max_side, max_side), Image.LANCZOS)
        buf = io.BytesIO()
        img.save(buf, format="PNG", optimize=True)
        png_b64 = base64.b64encode(buf.getvalue()).decode()
        return f"data:image/png;base64,{png_b64}"
    except Exception as e:
        logger.info("[SCRAPER] Could not load image %s: %s", url, e)
        return None
