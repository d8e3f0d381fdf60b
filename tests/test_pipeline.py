import asyncio
import base64
import json
import time
from typing import Optional

import pytest
from conftest import (
    FIXED_NOW,
    FakeBlobStore,
    FakeConceptAgent,
    FakeImageProvider,
    FakeInsights,
    make_concepts,
    submission_payload,
)

from whitecoat_brief.agents._prompt_helpers import concepts_to_json
from whitecoat_brief.app.models import SubmissionStatus
from whitecoat_brief.brief.renderer import PLACEHOLDER_TEXT
from whitecoat_brief.exceptions import (
    BriefGenerationError,
    ConceptGenerationFailed,
    GenerationInProgress,
    SubmissionNotFound,
)
from whitecoat_brief.images.prompt_builder import IMAGES_PER_CONCEPT
from whitecoat_brief.website.insights import Product, WebsiteInsights


def test_full_run_generates_concepts_images_and_brief(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    insights = FakeInsights()
    pipeline = make_pipeline(insights=insights)

    outcome = asyncio.run(pipeline.run(submission.id))

    assert outcome.concepts_count == 10
    assert outcome.images_generated == 30
    assert outcome.images_failed == 0
    assert outcome.errors == []
    assert insights.calls == []

    saved = store.get_submission(submission.id)
    assert saved.status == SubmissionStatus.GENERATED
    assert saved.brief_generated_at == FIXED_NOW
    assert saved.brief_html.count('<section class="ad-concept">') == 10
    assert len(json.loads(saved.ad_concepts)) == 10
    assert store.status_history[submission.id] == [
        SubmissionStatus.GENERATING,
        SubmissionStatus.GENERATED,
    ]

    images = store.list_generated_images(submission.id)
    assert [(i.ad_number, i.image_number) for i in images] == [
        (ad, n) for ad in range(1, 11) for n in (1, 2, 3)
    ]
    assert pipeline.get_status(submission.id).progress == 100
    assert not pipeline.is_running(submission.id)


def test_rerun_replaces_images_from_previous_run(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    pipeline = make_pipeline()

    asyncio.run(pipeline.run(submission.id))
    asyncio.run(pipeline.run(submission.id))

    assert len(store.list_generated_images(submission.id)) == 30


def test_concept_failure_resets_status_and_keeps_prior_concepts(store, make_pipeline, failing_agent):
    submission = store.create_submission(submission_payload())
    previous = concepts_to_json(make_concepts(2))
    store.update_submission(submission.id, {"ad_concepts": previous})
    provider = FakeImageProvider()

    with pytest.raises(ConceptGenerationFailed):
        asyncio.run(make_pipeline(agent=failing_agent, provider=provider).run(submission.id))

    saved = store.get_submission(submission.id)
    assert saved.status == SubmissionStatus.NEW
    assert saved.ad_concepts == previous
    assert saved.brief_html is None
    assert provider.prompts == []
    assert store.status_history[submission.id] == [
        SubmissionStatus.GENERATING,
        SubmissionStatus.NEW,
    ]


def test_unexpected_agent_errors_become_concept_failures(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    agent = FakeConceptAgent(error=RuntimeError("socket closed"))

    with pytest.raises(ConceptGenerationFailed, match="socket closed"):
        asyncio.run(make_pipeline(agent=agent).run(submission.id))

    assert store.get_submission(submission.id).status == SubmissionStatus.NEW


def test_failed_images_leave_placeholders_but_brief_completes(store, make_pipeline):
    def fail_when(prompt: str) -> bool:
        return (
            ("Scene 02" in prompt and "Key elements:" in prompt)
            or ("Scene 05" in prompt and "Focus on:" in prompt)
            or ("Scene 09" in prompt and "Emphasizing:" in prompt)
        )

    submission = store.create_submission(submission_payload())
    pipeline = make_pipeline(provider=FakeImageProvider(fail_when=fail_when))

    outcome = asyncio.run(pipeline.run(submission.id))

    assert outcome.images_generated == 27
    assert outcome.images_failed == 3
    assert len(outcome.errors) == 3
    assert outcome.errors[0].startswith("Ad 2, Image 1:")
    assert "provider exploded" in outcome.errors[0]

    saved = store.get_submission(submission.id)
    assert saved.status == SubmissionStatus.GENERATED
    assert saved.brief_html.count(PLACEHOLDER_TEXT) == 3
    missing = {(2, 1), (5, 2), (9, 3)}
    stored = {(i.ad_number, i.image_number) for i in store.list_generated_images(submission.id)}
    assert stored.isdisjoint(missing)
    assert len(stored) == 27


def test_reported_errors_are_capped(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    pipeline = make_pipeline(provider=FakeImageProvider(fail_when=lambda prompt: True))

    outcome = asyncio.run(pipeline.run(submission.id))

    assert outcome.images_generated == 0
    assert outcome.images_failed == 30
    assert len(outcome.errors) == 5
    assert store.get_submission(submission.id).status == SubmissionStatus.GENERATED


def test_website_insights_flow_into_concepts_and_image_prompts(store, make_pipeline):
    submission = store.create_submission(submission_payload(website="acmeskin.test"))
    found = WebsiteInsights(
        products=["Loose product"],
        structured_products=[Product(name="Barrier Cream")],
        brand_colors=["#00AA88"],
    )
    insights = FakeInsights(result=found)
    agent = FakeConceptAgent()
    provider = FakeImageProvider()

    asyncio.run(make_pipeline(agent=agent, provider=provider, insights=insights).run(submission.id))

    assert insights.calls == ["acmeskin.test"]
    assert agent.calls[0][1] is found
    assert len(provider.prompts) == 30
    assert all("Featuring products: Barrier Cream." in p for p in provider.prompts)
    assert all("Brand colors: #00AA88." in p for p in provider.prompts)


def test_missing_insights_do_not_block_generation(store, make_pipeline):
    submission = store.create_submission(submission_payload(website="https://down.test"))
    agent = FakeConceptAgent()

    outcome = asyncio.run(make_pipeline(agent=agent, insights=FakeInsights(None)).run(submission.id))

    assert outcome.images_generated == 30
    assert agent.calls[0][1] is None


def test_second_run_for_same_submission_is_refused(store, make_pipeline):
    submission = store.create_submission(submission_payload())

    async def scenario():
        gate = asyncio.Event()
        agent = FakeConceptAgent(gate=gate)
        pipeline = make_pipeline(agent=agent)

        first = asyncio.create_task(pipeline.run(submission.id))
        while not agent.calls:
            await asyncio.sleep(0)
        assert pipeline.is_running(submission.id)

        with pytest.raises(GenerationInProgress):
            await pipeline.run(submission.id)

        gate.set()
        outcome = await first
        return pipeline, outcome

    pipeline, outcome = asyncio.run(scenario())

    assert outcome.images_generated == 30
    assert not pipeline.is_running(submission.id)
    assert store.status_history[submission.id] == [
        SubmissionStatus.GENERATING,
        SubmissionStatus.GENERATED,
    ]


def test_unknown_submission(store, make_pipeline):
    pipeline = make_pipeline()

    with pytest.raises(SubmissionNotFound):
        asyncio.run(pipeline.run("missing"))
    with pytest.raises(SubmissionNotFound):
        pipeline.get_status("missing")


def test_storage_failure_after_start_resets_status(store, make_pipeline, monkeypatch):
    submission = store.create_submission(submission_payload())

    def broken(submission_id):
        raise OSError("datastore unavailable")

    monkeypatch.setattr(store, "list_generated_images", broken)

    with pytest.raises(BriefGenerationError, match="datastore unavailable"):
        asyncio.run(make_pipeline().run(submission.id))

    saved = store.get_submission(submission.id)
    assert saved.status == SubmissionStatus.NEW
    assert saved.brief_html is None


def test_inline_images_are_moved_to_blob_storage(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    payload = base64.b64encode(b"png-bytes").decode()
    provider = FakeImageProvider(url_template=f"data:image/png;base64,{payload}")
    blob_store = FakeBlobStore()

    asyncio.run(make_pipeline(provider=provider, blob_store=blob_store).run(submission.id))

    assert len(blob_store.uploads) == 30
    name, data, content_type = blob_store.uploads[0]
    assert name == f"generated/{submission.id}/ad01-image1.png"
    assert data == b"png-bytes"
    assert content_type == "image/png"
    first = store.list_generated_images(submission.id)[0]
    assert first.image_url == f"https://blob.test/generated/{submission.id}/ad01-image1.png"


def test_inline_images_kept_without_blob_storage(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    data_uri = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()

    asyncio.run(make_pipeline(provider=FakeImageProvider(url_template=data_uri)).run(submission.id))

    images = store.list_generated_images(submission.id)
    assert len(images) == 30
    assert all(i.image_url == data_uri for i in images)


def test_status_reports_partial_progress(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    store.update_submission(
        submission.id,
        {"status": SubmissionStatus.GENERATING, "ad_concepts": concepts_to_json(make_concepts(10))},
    )
    for index in range(15):
        store.add_generated_image(
            submission.id,
            ad_number=index // 3 + 1,
            image_number=index % 3 + 1,
            prompt="p",
            image_url=f"https://img.test/{index}.png",
        )

    status = make_pipeline().get_status(submission.id)

    assert status.status == SubmissionStatus.GENERATING
    assert status.conceptsCount == 10
    assert status.imagesCompleted == 15
    assert status.imagesTotal == 30
    assert status.progress == 50
    assert not status.hasBrief
    assert status.images[0].adNumber == 1


def test_status_without_concepts_reports_zero_progress(store, make_pipeline):
    submission = store.create_submission(submission_payload())

    status = make_pipeline().get_status(submission.id)

    assert status.conceptsCount == 0
    assert status.imagesTotal == 0
    assert status.progress == 0


def test_status_total_follows_images_per_concept(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    store.update_submission(submission.id, {"ad_concepts": concepts_to_json(make_concepts(4))})

    status = make_pipeline().get_status(submission.id)

    assert status.imagesTotal == 4 * IMAGES_PER_CONCEPT


def test_generator_crash_still_produces_brief_with_placeholders(store, make_pipeline, monkeypatch):
    submission = store.create_submission(submission_payload())
    pipeline = make_pipeline()

    async def crash(prompts, on_progress=None):
        raise RuntimeError("generator crashed")

    monkeypatch.setattr(pipeline.image_generator, "generate_all", crash)

    outcome = asyncio.run(pipeline.run(submission.id))

    assert outcome.images_generated == 0
    assert outcome.images_failed == 30
    assert "Image generation failed: generator crashed" in outcome.errors
    saved = store.get_submission(submission.id)
    assert saved.status == SubmissionStatus.GENERATED
    assert saved.brief_html.count(PLACEHOLDER_TEXT) == 10
    assert store.list_generated_images(submission.id) == []


class SlowBlobStore(FakeBlobStore):
    """Upload blocks its thread the way a real S3 call does."""

    def upload_bytes(self, name: str, data: bytes, content_type: Optional[str] = None) -> str:
        time.sleep(0.2)
        return super().upload_bytes(name, data, content_type)

    async def upload_bytes_async(self, name, data, content_type=None) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.upload_bytes(name, data, content_type))


def test_image_uploads_do_not_block_the_event_loop(store, make_pipeline):
    submission = store.create_submission(submission_payload())
    data_uri = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
    blob_store = SlowBlobStore()
    pipeline = make_pipeline(
        agent=FakeConceptAgent(concepts=make_concepts(1)),
        provider=FakeImageProvider(url_template=data_uri),
        blob_store=blob_store,
    )

    async def run_with_heartbeat():
        gaps = []
        done = asyncio.Event()

        async def heartbeat():
            last = time.perf_counter()
            while not done.is_set():
                await asyncio.sleep(0.01)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        beat = asyncio.create_task(heartbeat())
        try:
            outcome = await pipeline.run(submission.id)
        finally:
            done.set()
            await beat
        return outcome, gaps

    outcome, gaps = asyncio.run(run_with_heartbeat())

    assert outcome.images_generated == 3
    assert len(blob_store.uploads) == 3
    assert max(gaps) < 0.1
