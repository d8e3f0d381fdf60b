"""Brief generation pipeline: website insights, concepts, images, brief."""

import base64
import binascii
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ..agents import build_concept_agent
from ..agents._prompt_helpers import concepts_from_json, concepts_to_json
from ..brief.renderer import build_brief_html
from ..exceptions import (
    BriefGenerationError,
    ConceptGenerationFailed,
    GenerationInProgress,
    SubmissionNotFound,
)
from ..images.generator import ImageGenerationResult, ImageGenerator
from ..images.prompt_builder import IMAGES_PER_CONCEPT, ImageStyle, derive_image_prompts
from ..website.insights import InsightExtractor, WebsiteInsights
from .models import GenerationStatus, StatusImage, Submission, SubmissionStatus
from .storage import BlobStore, get_blob_store
from .store import SubmissionStore, get_store

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 5

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+/-]+);base64,(?P<data>.+)$", re.DOTALL)


@dataclass
class GenerationOutcome:
    """What a completed run produced."""

    submission: Submission
    concepts_count: int
    images_generated: int
    images_failed: int
    errors: list[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BriefPipeline:
    """Runs brief generation against one persisted submission.

    Only one run per submission may be active in this process; a second
    request while one is running is refused with GenerationInProgress.
    """

    def __init__(
        self,
        store: SubmissionStore,
        concept_agent=None,
        image_generator: Optional[ImageGenerator] = None,
        insights: Optional[InsightExtractor] = None,
        blob_store: Optional[BlobStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.concept_agent = concept_agent
        self.image_generator = image_generator or ImageGenerator()
        self.insights = insights or InsightExtractor()
        self.blob_store = blob_store
        self.clock = clock or _utcnow
        self._active: set[str] = set()

    def is_running(self, submission_id: str) -> bool:
        return submission_id in self._active

    async def run(self, submission_id: str) -> GenerationOutcome:
        """Generate concepts, images and the brief for a submission.

        Raises:
            SubmissionNotFound: unknown id
            GenerationInProgress: a run for this id is already active
            ConceptGenerationFailed: the text model produced nothing usable
            BriefGenerationError: any other failure after work started
        """
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound(submission_id)
        if submission_id in self._active:
            raise GenerationInProgress(submission_id)

        self._active.add(submission_id)
        try:
            return await self._run(submission)
        finally:
            self._active.discard(submission_id)

    async def _run(self, submission: Submission) -> GenerationOutcome:
        submission_id = submission.id
        t_start = time.time()

        logger.info("=" * 60)
        logger.info("[PIPELINE] Starting brief generation for %s (%s)", submission.brand_name, submission_id)

        self.store.update_submission(submission_id, {"status": SubmissionStatus.GENERATING})
        try:
            deleted = self.store.delete_generated_images(submission_id)
            if deleted:
                logger.info("[PIPELINE] Cleared %d images from a previous run", deleted)

            # Step 1: Website insights (best-effort)
            insights = await self._website_insights(submission)

            # Step 2: Ad concepts
            t0 = time.time()
            logger.info("[STEP 2] Generating ad concepts...")
            concepts = await self._generate_concepts(submission, insights)
            self.store.update_submission(submission_id, {"ad_concepts": concepts_to_json(concepts)})
            logger.info("[STEP 2] Done in %.1fs: %d concepts", time.time() - t0, len(concepts))

            # Step 3: Image prompts
            prompts = derive_image_prompts(
                concepts, submission.brand_name, ImageStyle.from_insights(insights)
            )
            logger.info("[STEP 3] Derived %d image prompts", len(prompts))

            # Step 4: Images, persisted as each one completes
            t0 = time.time()
            persisted: list[ImageGenerationResult] = []
            errors: list[str] = []

            async def on_progress(completed: int, total: int, result: ImageGenerationResult) -> None:
                if not result.ok:
                    errors.append(f"Ad {result.ad_number}, Image {result.image_number}: {result.error}")
                    return
                try:
                    await self._persist_image(submission_id, result)
                except Exception as e:
                    logger.error(
                        "[STEP 4] Failed to save ad %d image %d: %s",
                        result.ad_number, result.image_number, e,
                    )
                    errors.append(f"Ad {result.ad_number}, Image {result.image_number}: {e}")
                    return
                persisted.append(result)

            logger.info("[STEP 4] Generating %d images...", len(prompts))
            try:
                await self.image_generator.generate_all(prompts, on_progress=on_progress)
            except Exception as e:
                logger.error("[STEP 4] Image generation aborted: %s", e)
                errors.append(f"Image generation failed: {e}")

            images_generated = len(persisted)
            images_failed = len(prompts) - images_generated
            logger.info(
                "[STEP 4] Done in %.1fs: %d generated, %d failed",
                time.time() - t0, images_generated, images_failed,
            )

            # Step 5: Brief
            images = self.store.list_generated_images(submission_id)
            photos = self.store.list_product_photos(submission_id)
            generated_at = self.clock()
            brief_html = build_brief_html(submission, concepts, images, generated_at, photos)

            updated = self.store.update_submission(
                submission_id,
                {
                    "status": SubmissionStatus.GENERATED,
                    "brief_html": brief_html,
                    "brief_generated_at": generated_at,
                },
            )
            if updated is None:
                raise SubmissionNotFound(submission_id)
        except ConceptGenerationFailed:
            self._reset_status(submission_id)
            raise
        except Exception as e:
            logger.exception("[PIPELINE] Brief generation failed for %s", submission_id)
            self._reset_status(submission_id)
            raise BriefGenerationError(str(e)) from e

        logger.info("[PIPELINE] Complete in %.1fs", time.time() - t_start)
        logger.info("=" * 60)

        return GenerationOutcome(
            submission=updated,
            concepts_count=len(concepts),
            images_generated=images_generated,
            images_failed=images_failed,
            errors=errors[:MAX_REPORTED_ERRORS],
        )

    async def _website_insights(self, submission: Submission) -> Optional[WebsiteInsights]:
        if not submission.website:
            logger.info("[STEP 1] No website provided, skipping analysis")
            return None

        t0 = time.time()
        logger.info("[STEP 1] Analyzing website %s", submission.website)
        try:
            insights = await self.insights.get_insights(submission.website)
        except Exception as e:
            logger.warning("[STEP 1] Website analysis failed: %s", e)
            return None
        logger.info(
            "[STEP 1] Done in %.1fs: %s",
            time.time() - t0,
            "insights found" if insights else "no insights",
        )
        return insights

    async def _generate_concepts(self, submission, insights):
        try:
            agent = self.concept_agent or build_concept_agent()
            return await agent.execute(submission, insights)
        except ConceptGenerationFailed as e:
            logger.error("[STEP 2] Concept generation failed: %s", e)
            raise
        except Exception as e:
            logger.error("[STEP 2] Concept generation failed: %s", e)
            raise ConceptGenerationFailed(str(e)) from e

    async def _persist_image(self, submission_id: str, result: ImageGenerationResult) -> None:
        image_url = await self._offload_data_uri(submission_id, result)
        self.store.add_generated_image(
            submission_id,
            ad_number=result.ad_number,
            image_number=result.image_number,
            prompt=result.prompt,
            image_url=image_url,
        )

    async def _offload_data_uri(self, submission_id: str, result: ImageGenerationResult) -> str:
        """Move an inline image to blob storage when possible; keep the data URI otherwise."""
        image_url = result.image_url
        match = _DATA_URI.match(image_url)
        if not match or self.blob_store is None:
            return image_url

        mime = match.group("mime")
        ext = mime.split("/")[-1].replace("jpeg", "jpg")
        name = f"generated/{submission_id}/ad{result.ad_number:02d}-image{result.image_number}.{ext}"
        try:
            data = base64.b64decode(match.group("data"))
            return await self.blob_store.upload_bytes_async(name, data, content_type=mime)
        except (binascii.Error, ValueError) as e:
            logger.warning("[STEP 4] Bad image data for %s: %s", name, e)
        except Exception as e:
            logger.warning("[STEP 4] Upload failed for %s, storing inline: %s", name, e)
        return image_url

    def _reset_status(self, submission_id: str) -> None:
        try:
            self.store.update_submission(submission_id, {"status": SubmissionStatus.NEW})
        except Exception as e:
            logger.error("[PIPELINE] Failed to reset status for %s: %s", submission_id, e)

    def get_status(self, submission_id: str) -> GenerationStatus:
        """Polling payload for an in-flight or finished run."""
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound(submission_id)

        images = self.store.list_generated_images(submission_id)
        concepts_count = len(concepts_from_json(submission.ad_concepts))
        images_total = concepts_count * IMAGES_PER_CONCEPT
        progress = min(100, round(len(images) / images_total * 100)) if images_total else 0

        return GenerationStatus(
            id=submission.id,
            status=submission.status,
            hasBrief=bool(submission.brief_html),
            briefGeneratedAt=submission.brief_generated_at,
            conceptsCount=concepts_count,
            imagesCompleted=len(images),
            imagesTotal=images_total,
            progress=progress,
            images=[
                StatusImage(
                    id=img.id,
                    adNumber=img.ad_number,
                    imageNumber=img.image_number,
                    imageUrl=img.image_url,
                )
                for img in images
            ],
        )


# Singleton
_pipeline: Optional[BriefPipeline] = None


def get_pipeline() -> BriefPipeline:
    """Get or create the process-wide pipeline (the run guard lives on it)."""
    global _pipeline
    if _pipeline is None:
        _pipeline = BriefPipeline(store=get_store(), blob_store=get_blob_store())
    return _pipeline
