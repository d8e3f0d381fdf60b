"""Render the client brief as a standalone HTML document."""

import html
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..app.models import AdConcept, GeneratedImage, ProductPhoto, Submission
from ..config.settings import settings
from ..images.prompt_builder import IMAGES_PER_CONCEPT

PLACEHOLDER_TEXT = "Images generating..."

BRIEF_CSS = """
    * {
      margin: 0;
      padding: 0;
      box-sizing: border-box;
    }

    body {
      font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      background: #f8fafc;
      color: #0f172a;
      line-height: 1.6;
    }

    .brief-container {
      max-width: 1200px;
      margin: 0 auto;
      padding: 40px 20px;
    }

    .brief-header {
      background: linear-gradient(135deg, #0f172a 0%, #1e293b 100%);
      color: white;
      padding: 60px 40px;
      border-radius: 16px;
      margin-bottom: 40px;
    }

    .brief-header h1 {
      font-size: 2.5rem;
      font-weight: 700;
      margin-bottom: 8px;
    }

    .brief-header .subtitle {
      font-size: 1.25rem;
      color: #94a3b8;
      margin-bottom: 24px;
    }

    .brand-info {
      display: grid;
      grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
      gap: 24px;
      padding-top: 24px;
      border-top: 1px solid #334155;
    }

    .brand-info-item {
      display: flex;
      flex-direction: column;
    }

    .brand-info-item label {
      font-size: 0.75rem;
      text-transform: uppercase;
      letter-spacing: 0.05em;
      color: #64748b;
      margin-bottom: 4px;
    }

    .brand-info-item span {
      font-size: 1rem;
      color: white;
    }

    .section-title {
      font-size: 1.5rem;
      font-weight: 600;
      margin-bottom: 24px;
      padding-bottom: 12px;
      border-bottom: 2px solid #059669;
      display: inline-block;
    }

    .brief-section {
      background: white;
      border-radius: 16px;
      padding: 32px;
      margin-bottom: 32px;
      box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
    }

    .photo-gallery {
      display: grid;
      grid-template-columns: repeat(auto-fill, minmax(180px, 1fr));
      gap: 16px;
    }

    .photo-card img {
      width: 100%;
      border-radius: 12px;
      object-fit: cover;
      aspect-ratio: 1;
    }

    .photo-card span {
      display: block;
      font-size: 0.75rem;
      color: #64748b;
      margin-top: 4px;
    }

    .ad-concept {
      background: white;
      border-radius: 16px;
      padding: 32px;
      margin-bottom: 32px;
      box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
    }

    .ad-header {
      display: flex;
      align-items: center;
      gap: 16px;
      margin-bottom: 24px;
      flex-wrap: wrap;
    }

    .ad-number {
      background: #059669;
      color: white;
      font-size: 0.75rem;
      font-weight: 700;
      padding: 6px 12px;
      border-radius: 6px;
      letter-spacing: 0.05em;
    }

    .ad-title {
      font-size: 1.5rem;
      font-weight: 600;
      flex: 1;
      min-width: 200px;
    }

    .hook-type {
      background: #f1f5f9;
      color: #475569;
      font-size: 0.875rem;
      padding: 6px 12px;
      border-radius: 6px;
    }

    .image-gallery {
      display: grid;
      grid-template-columns: repeat(3, 1fr);
      gap: 16px;
      margin-bottom: 24px;
    }

    .image-card {
      position: relative;
      border-radius: 12px;
      overflow: hidden;
      background: #f1f5f9;
      aspect-ratio: 1;
    }

    .image-card img {
      width: 100%;
      height: 100%;
      object-fit: cover;
    }

    .image-label {
      position: absolute;
      bottom: 8px;
      left: 8px;
      background: rgba(0, 0, 0, 0.7);
      color: white;
      font-size: 0.75rem;
      padding: 4px 8px;
      border-radius: 4px;
    }

    .no-images {
      color: #94a3b8;
      font-style: italic;
      padding: 40px;
      text-align: center;
      background: #f8fafc;
      border-radius: 12px;
      grid-column: 1 / -1;
    }

    .image-placeholder .no-images {
      padding: 40% 16px;
    }

    .ad-content {
      display: flex;
      flex-direction: column;
      gap: 20px;
    }

    .content-row {
      display: grid;
      grid-template-columns: repeat(2, 1fr);
      gap: 20px;
    }

    .content-block {
      background: #f8fafc;
      padding: 20px;
      border-radius: 12px;
    }

    .content-block.full-width {
      grid-column: 1 / -1;
    }

    .content-block h4 {
      font-size: 0.75rem;
      text-transform: uppercase;
      letter-spacing: 0.05em;
      color: #64748b;
      margin-bottom: 8px;
    }

    .content-block p {
      color: #334155;
    }

    .hook-text {
      font-size: 1.125rem;
      font-weight: 500;
      color: #0f172a !important;
      font-style: italic;
    }

    .cta-text {
      font-weight: 600;
      color: #059669 !important;
    }

    .visual-spec p {
      margin-bottom: 8px;
    }

    .visual-spec p:last-child {
      margin-bottom: 0;
    }

    .brief-footer {
      text-align: center;
      padding: 40px;
      color: #64748b;
      font-size: 0.875rem;
    }

    .brief-footer .logo {
      font-weight: 700;
      color: #0f172a;
      margin-bottom: 8px;
    }

    @media (max-width: 768px) {
      .brief-header {
        padding: 40px 24px;
      }

      .brief-header h1 {
        font-size: 1.75rem;
      }

      .image-gallery {
        grid-template-columns: 1fr;
      }

      .content-row {
        grid-template-columns: 1fr;
      }

      .ad-concept {
        padding: 24px;
      }
    }

    @media print {
      body {
        background: white;
      }

      .brief-container {
        padding: 0;
      }

      .ad-concept {
        break-inside: avoid;
        page-break-inside: avoid;
      }
    }
"""


def _esc(text: Optional[str]) -> str:
    return html.escape(text or "")


def format_brief_date(when: datetime) -> str:
    """e.g. "March 5, 2025"."""
    return f"{when:%B} {when.day}, {when.year}"


def _placeholder(css_class: str = "no-images") -> str:
    return f'<p class="{css_class}">{PLACEHOLDER_TEXT}</p>'


def _image_gallery(concept: AdConcept, images: list[GeneratedImage]) -> str:
    if not images:
        return _placeholder()

    present = {img.image_number for img in images}
    slots: list[tuple[int, Optional[GeneratedImage]]] = [(img.image_number, img) for img in images]
    slots += [(n, None) for n in range(1, IMAGES_PER_CONCEPT + 1) if n not in present]
    # Stable sort keeps duplicate rows for one number in stored order.
    slots.sort(key=lambda slot: slot[0])

    cells = []
    for number, img in slots:
        if img is None:
            cells.append(f'<div class="image-card image-placeholder">{_placeholder()}</div>')
            continue
        cells.append(
            '<div class="image-card">'
            f'<img src="{_esc(img.image_url)}" alt="Ad {concept.ad_number} - Variation {number}" />'
            f'<span class="image-label">Variation {number}</span>'
            "</div>"
        )
    return '<div class="image-gallery">\n' + "\n".join(cells) + "\n</div>"


def _concept_section(concept: AdConcept, images: list[GeneratedImage]) -> str:
    visual = concept.visual_asset
    return f"""
      <section class="ad-concept">
        <div class="ad-header">
          <span class="ad-number">AD {concept.ad_number:02d}</span>
          <h2 class="ad-title">{_esc(concept.title)}</h2>
          <span class="hook-type">{_esc(concept.hook_type)}</span>
        </div>

        {_image_gallery(concept, images)}

        <div class="ad-content">
          <div class="content-row">
            <div class="content-block">
              <h4>Opening Hook</h4>
              <p class="hook-text">&quot;{_esc(concept.opening_hook)}&quot;</p>
            </div>
            <div class="content-block">
              <h4>Target Emotion</h4>
              <p>{_esc(concept.target_emotion)}</p>
            </div>
          </div>

          <div class="content-block full-width">
            <h4>Body Script</h4>
            <p>{_esc(concept.body_script)}</p>
          </div>

          <div class="content-row">
            <div class="content-block">
              <h4>Call to Action</h4>
              <p class="cta-text">{_esc(concept.call_to_action)}</p>
            </div>
            <div class="content-block">
              <h4>Platform</h4>
              <p>{_esc(concept.platform_recommendation)}</p>
            </div>
          </div>

          <div class="content-block full-width visual-spec">
            <h4>Visual Specification</h4>
            <p><strong>Description:</strong> {_esc(visual.description)}</p>
            <p><strong>Style:</strong> {_esc(visual.style)}</p>
            <p><strong>Key Elements:</strong> {_esc(', '.join(visual.key_elements))}</p>
          </div>
        </div>
      </section>
"""


def _product_photos_section(photos: Sequence[ProductPhoto]) -> str:
    cards = "\n".join(
        '<div class="photo-card">'
        f'<img src="{_esc(p.url)}" alt="{_esc(p.filename)}" />'
        f"<span>{_esc(p.filename)}</span>"
        "</div>"
        for p in photos
    )
    return f"""
      <section class="brief-section product-photos">
        <h2 class="section-title">Product Photos</h2>
        <div class="photo-gallery">
{cards}
        </div>
      </section>
"""


def _brand_context_section(submission: Submission) -> str:
    blocks = [
        ("Target Audience", submission.target_audience),
        ("Biggest Challenge", submission.biggest_challenge),
    ]
    if submission.additional_info:
        blocks.append(("Additional Info", submission.additional_info))

    rows = "\n".join(
        f'<div class="content-block full-width"><h4>{label}</h4><p>{_esc(value)}</p></div>'
        for label, value in blocks
    )
    if submission.website:
        url = _esc(submission.website)
        rows += (
            '\n<div class="content-block full-width"><h4>Website</h4>'
            f'<p><a href="{url}">{url}</a></p></div>'
        )
    return f"""
      <section class="brief-section brand-context">
        <h2 class="section-title">Brand Context</h2>
        <div class="ad-content">
{rows}
        </div>
      </section>
"""


def build_brief_html(
    submission: Submission,
    concepts: list[AdConcept],
    images: Iterable[GeneratedImage],
    generated_at: datetime,
    product_photos: Sequence[ProductPhoto] = (),
) -> str:
    """Build the brief document.

    Images are grouped by ad number and ordered by image number. Concepts
    without images get a placeholder; missing variants of a partially
    illustrated concept get a placeholder cell each.

    Args:
        submission: The client record.
        concepts: Ad concepts in display order.
        images: Generated images for the run, any order.
        generated_at: Timestamp shown in the header and footer.
        product_photos: Optional client photos, shown ahead of the concepts.
    """
    images_by_ad: dict[int, list[GeneratedImage]] = defaultdict(list)
    for img in images:
        images_by_ad[img.ad_number].append(img)

    ad_sections = "".join(
        _concept_section(concept, images_by_ad.get(concept.ad_number, []))
        for concept in concepts
    )

    context_sections = ""
    if product_photos:
        context_sections = _product_photos_section(product_photos) + _brand_context_section(submission)

    title = _esc(settings.brief_title)
    brand = _esc(submission.brand_name)
    date = format_brief_date(generated_at)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title} - {brand}</title>
  <style>{BRIEF_CSS}  </style>
</head>
<body>
  <div class="brief-container">
    <header class="brief-header">
      <h1>{title}</h1>
      <p class="subtitle">DTC Intelligence Brief for {brand}</p>

      <div class="brand-info">
        <div class="brand-info-item">
          <label>Founder</label>
          <span>{_esc(submission.founder_name)}</span>
        </div>
        <div class="brand-info-item">
          <label>Credentials</label>
          <span>{_esc(submission.medical_credentials)}</span>
        </div>
        <div class="brand-info-item">
          <label>Specialty</label>
          <span>{_esc(submission.specialty)}</span>
        </div>
        <div class="brand-info-item">
          <label>Product Type</label>
          <span>{_esc(submission.product_type)}</span>
        </div>
        <div class="brand-info-item">
          <label>Target Audience</label>
          <span>{_esc(submission.target_audience)}</span>
        </div>
        <div class="brand-info-item">
          <label>Generated</label>
          <span>{date}</span>
        </div>
      </div>
    </header>

    <main>
{context_sections}
      <h2 class="section-title">Ad Concepts ({len(concepts)})</h2>
      {ad_sections}
    </main>

    <footer class="brief-footer">
      <p class="logo">{title}</p>
      <p>Generated on {date}</p>
      <p>This brief contains AI-generated content and images for creative direction purposes.</p>
    </footer>
  </div>
</body>
</html>"""
