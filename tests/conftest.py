import asyncio
import itertools
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from whitecoat_brief.app import main as main_module
from whitecoat_brief.app.models import (
    AdConcept,
    GeneratedImage,
    ProductPhoto,
    Submission,
    SubmissionStatus,
)
from whitecoat_brief.app.pipeline import BriefPipeline
from whitecoat_brief.app.store import SubmissionStore
from whitecoat_brief.exceptions import ConceptGenerationFailed
from whitecoat_brief.images.generator import ImageGenerator
from whitecoat_brief.images.providers import ImageProvider

FIXED_NOW = datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc)


def submission_payload(**overrides: Any) -> Dict[str, Any]:
    data = {
        "brand_name": "Acme Skin",
        "founder_name": "Jordan Lee",
        "email": "jordan@acmeskin.test",
        "website": None,
        "medical_credentials": "MD, Board-Certified Dermatologist",
        "specialty": "Dermatology",
        "product_type": "Skincare",
        "current_revenue": "$10k-50k/mo",
        "biggest_challenge": "Ads are not converting",
        "target_audience": "Women 30-55 with sensitive skin",
        "timeline": "ASAP",
        "how_did_you_hear": "Podcast",
        "additional_info": None,
    }
    data.update(overrides)
    return data


def concept_dict(n: int) -> Dict[str, Any]:
    return {
        "adNumber": n,
        "title": f"Concept {n}",
        "hookType": "Authority",
        "openingHook": f"A dermatologist explains hook {n}",
        "visualAsset": {
            "description": f"Scene {n:02d} with the founder in clinic",
            "style": "Professional medical setting",
            "keyElements": ["white coat", "product bottle", "clinic shelf"],
        },
        "bodyScript": "Short body script.",
        "callToAction": "Learn more",
        "targetEmotion": "Trust",
        "platformRecommendation": "Meta (Facebook/Instagram)",
    }


def make_concepts(count: int = 10) -> list[AdConcept]:
    return [AdConcept.model_validate(concept_dict(n)) for n in range(1, count + 1)]


class InMemoryStore(SubmissionStore):
    """Dict-backed store with the same behaviour as the Firestore one."""

    def __init__(self) -> None:
        self.submissions: dict[str, Submission] = {}
        self.images: dict[str, list[GeneratedImage]] = defaultdict(list)
        self.photos: dict[str, list[ProductPhoto]] = defaultdict(list)
        self.status_history: dict[str, list[SubmissionStatus]] = defaultdict(list)
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def create_submission(self, data: Dict[str, Any]) -> Submission:
        submission_id = self._next_id("sub")
        record = dict(data)
        record.setdefault("status", SubmissionStatus.NEW)
        created = datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=len(self.submissions))
        record.setdefault("created_at", created)
        submission = Submission(id=submission_id, **record)
        self.submissions[submission_id] = submission
        return submission

    def list_submissions(self) -> list[Submission]:
        return sorted(self.submissions.values(), key=lambda s: s.created_at, reverse=True)

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        return self.submissions.get(submission_id)

    def update_submission(self, submission_id: str, fields: Dict[str, Any]) -> Optional[Submission]:
        current = self.submissions.get(submission_id)
        if current is None:
            return None
        if "status" in fields:
            self.status_history[submission_id].append(SubmissionStatus(fields["status"]))
        updated = current.model_copy(update=fields)
        self.submissions[submission_id] = updated
        return updated

    def delete_submission(self, submission_id: str) -> bool:
        if self.submissions.pop(submission_id, None) is None:
            return False
        self.images.pop(submission_id, None)
        self.photos.pop(submission_id, None)
        return True

    def list_generated_images(self, submission_id: str) -> list[GeneratedImage]:
        return sorted(self.images[submission_id], key=lambda i: (i.ad_number, i.image_number))

    def add_generated_image(self, submission_id, ad_number, image_number, prompt, image_url):
        image = GeneratedImage(
            id=self._next_id("img"),
            submission_id=submission_id,
            ad_number=ad_number,
            image_number=image_number,
            prompt=prompt,
            image_url=image_url,
            created_at=FIXED_NOW,
        )
        self.images[submission_id].append(image)
        return image

    def delete_generated_images(self, submission_id: str) -> int:
        return len(self.images.pop(submission_id, []))

    def list_product_photos(self, submission_id: str) -> list[ProductPhoto]:
        return list(self.photos[submission_id])

    def add_product_photo(self, submission_id: str, url: str, filename: str) -> ProductPhoto:
        photo = ProductPhoto(
            id=self._next_id("photo"),
            submission_id=submission_id,
            url=url,
            filename=filename,
            created_at=FIXED_NOW,
        )
        self.photos[submission_id].append(photo)
        return photo

    def get_product_photo(self, submission_id: str, photo_id: str) -> Optional[ProductPhoto]:
        for photo in self.photos[submission_id]:
            if photo.id == photo_id:
                return photo
        return None

    def delete_product_photo(self, submission_id: str, photo_id: str) -> bool:
        before = len(self.photos[submission_id])
        self.photos[submission_id] = [p for p in self.photos[submission_id] if p.id != photo_id]
        return len(self.photos[submission_id]) < before


class FakeConceptAgent:
    def __init__(
        self,
        concepts: Optional[list[AdConcept]] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.concepts = concepts if concepts is not None else make_concepts()
        self.error = error
        self.gate = gate
        self.calls: list[tuple] = []

    async def execute(self, submission, insights=None):
        self.calls.append((submission, insights))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [c.model_copy(deep=True) for c in self.concepts]


class FakeImageProvider(ImageProvider):
    def __init__(
        self,
        name: str = "fake",
        fail_when: Optional[Callable[[str], bool]] = None,
        url_template: str = "https://img.test/{n}.png",
    ) -> None:
        self.name = name
        self.fail_when = fail_when
        self.url_template = url_template
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_when and self.fail_when(prompt):
            raise RuntimeError("provider exploded")
        return self.url_template.format(n=len(self.prompts))


class FakeInsights:
    def __init__(self, result=None) -> None:
        self.result = result
        self.calls: list[str] = []

    async def get_insights(self, url: str):
        self.calls.append(url)
        return self.result


class FakeBlobStore:
    def __init__(self) -> None:
        self.uploads: list[tuple[str, bytes, Optional[str]]] = []
        self.deleted: list[str] = []

    def upload_bytes(self, name: str, data: bytes, content_type: Optional[str] = None) -> str:
        self.uploads.append((name, data, content_type))
        return f"https://blob.test/{name}"

    async def upload_bytes_async(self, name, data, content_type=None) -> str:
        return self.upload_bytes(name, data, content_type)

    async def delete_url_async(self, url: str) -> bool:
        self.deleted.append(url)
        return True


def fast_generator(*providers: ImageProvider) -> ImageGenerator:
    return ImageGenerator(
        providers=list(providers),
        batch_size=3,
        batch_delay=0,
        max_retries=0,
        retry_delay=0,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def make_pipeline(store):
    def _make(
        agent: Optional[FakeConceptAgent] = None,
        provider: Optional[ImageProvider] = None,
        insights: Optional[FakeInsights] = None,
        blob_store: Optional[FakeBlobStore] = None,
    ) -> BriefPipeline:
        return BriefPipeline(
            store=store,
            concept_agent=agent or FakeConceptAgent(),
            image_generator=fast_generator(provider or FakeImageProvider()),
            insights=insights or FakeInsights(),
            blob_store=blob_store,
            clock=lambda: FIXED_NOW,
        )

    return _make


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def api(store, make_pipeline, blob_store):
    """TestClient wired to the in-memory store and fakes.

    Yields (client, context) where context exposes the pipeline and fakes
    so tests can adjust them.
    """
    context = {
        "pipeline": make_pipeline(),
        "blob_store": blob_store,
    }
    main_module.app.dependency_overrides[main_module.get_store] = lambda: store
    main_module.app.dependency_overrides[main_module.get_pipeline] = lambda: context["pipeline"]
    main_module.app.dependency_overrides[main_module.get_blob_store] = lambda: context["blob_store"]
    try:
        with TestClient(main_module.app) as client:
            yield client, context
    finally:
        main_module.app.dependency_overrides.clear()


@pytest.fixture
def failing_agent() -> FakeConceptAgent:
    return FakeConceptAgent(error=ConceptGenerationFailed("model returned garbage"))
