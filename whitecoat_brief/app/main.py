"""FastAPI web application for WhiteCoat Brief."""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

import os
import uvicorn
from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from .email import send_brief_email
from .models import (
    GenerateResponse,
    GenerationStatus,
    ProductPhoto,
    SubmissionCreate,
    SubmissionCreated,
    SubmissionDetail,
    SubmissionStatus,
    SubmissionSummary,
    SubmissionUpdate,
    SuccessResponse,
    UploadResponse,
)
from .pipeline import BriefPipeline, get_pipeline
from .storage import BlobStore, get_blob_store
from .store import SubmissionStore, get_store
from ..config.settings import settings
from ..exceptions import (
    BriefGenerationError,
    ConceptGenerationFailed,
    EmailDeliveryError,
    GenerationInProgress,
    SubmissionNotFound,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="WhiteCoat Brief")

PHOTO_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


def _detail(store: SubmissionStore, submission_id: str) -> SubmissionDetail:
    submission = store.get_submission(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return SubmissionDetail(
        **submission.model_dump(),
        generated_images=store.list_generated_images(submission_id),
    )


def _require_submission(store: SubmissionStore, submission_id: str):
    submission = store.get_submission(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


def _safe_filename(filename: Optional[str], default: str) -> str:
    name = os.path.basename(filename or "") or default
    return re.sub(r"[^\w.\-]+", "_", name)


# ============================================================================
# Submissions
# ============================================================================


@app.post("/api/submissions", response_model=SubmissionCreated, status_code=201)
async def create_submission(payload: SubmissionCreate, store: SubmissionStore = Depends(get_store)):
    """Public questionnaire endpoint."""
    data = payload.model_dump()
    data["timeline"] = data.get("timeline") or "Not specified"
    data["how_did_you_hear"] = data.get("how_did_you_hear") or "Not specified"
    try:
        submission = store.create_submission(data)
    except Exception as e:
        logger.exception("Failed to create submission")
        raise HTTPException(status_code=500, detail="Failed to create submission") from e
    logger.info("New submission %s from %s", submission.id, submission.brand_name)
    return SubmissionCreated(id=submission.id)


@app.get("/api/submissions", response_model=list[SubmissionSummary])
async def list_submissions(store: SubmissionStore = Depends(get_store)):
    """All submissions, newest first."""
    return [
        SubmissionSummary(
            id=s.id,
            brand_name=s.brand_name,
            founder_name=s.founder_name,
            email=s.email,
            status=s.status,
            created_at=s.created_at,
        )
        for s in store.list_submissions()
    ]


@app.get("/api/submissions/{submission_id}", response_model=SubmissionDetail)
async def get_submission(submission_id: str, store: SubmissionStore = Depends(get_store)):
    return _detail(store, submission_id)


@app.patch("/api/submissions/{submission_id}", response_model=SubmissionDetail)
async def update_submission(
    submission_id: str,
    update: SubmissionUpdate,
    store: SubmissionStore = Depends(get_store),
):
    """Staff edits; only fields present in the body are written."""
    fields = update.model_dump(exclude_unset=True)
    if store.update_submission(submission_id, fields) is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return _detail(store, submission_id)


@app.delete("/api/submissions/{submission_id}", response_model=SuccessResponse)
async def delete_submission(submission_id: str, store: SubmissionStore = Depends(get_store)):
    if not store.delete_submission(submission_id):
        raise HTTPException(status_code=404, detail="Submission not found")
    logger.info("Deleted submission %s", submission_id)
    return SuccessResponse(success=True)


# ============================================================================
# Brief generation
# ============================================================================


@app.post("/api/submissions/{submission_id}/generate", response_model=GenerateResponse)
async def generate_brief(
    submission_id: str,
    store: SubmissionStore = Depends(get_store),
    pipeline: BriefPipeline = Depends(get_pipeline),
):
    """Run the full brief generation pipeline."""
    try:
        outcome = await pipeline.run(submission_id)
    except SubmissionNotFound:
        raise HTTPException(status_code=404, detail="Submission not found")
    except GenerationInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ConceptGenerationFailed as e:
        logger.exception("Concept generation failed")
        raise HTTPException(status_code=500, detail=f"Failed to generate ad concepts: {e}")
    except BriefGenerationError as e:
        logger.exception("Brief generation failed")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to generate brief")

    return GenerateResponse(
        success=True,
        submission=_detail(store, submission_id),
        conceptsCount=outcome.concepts_count,
        imagesGenerated=outcome.images_generated,
        imagesFailed=outcome.images_failed,
        errors=outcome.errors,
    )


@app.get("/api/submissions/{submission_id}/generate/status", response_model=GenerationStatus)
async def generation_status(submission_id: str, pipeline: BriefPipeline = Depends(get_pipeline)):
    """Polling endpoint for generation progress."""
    try:
        return pipeline.get_status(submission_id)
    except SubmissionNotFound:
        raise HTTPException(status_code=404, detail="Submission not found")


@app.get("/api/submissions/{submission_id}/brief")
async def download_brief(submission_id: str, store: SubmissionStore = Depends(get_store)):
    """Serve the compiled brief HTML for download."""
    submission = _require_submission(store, submission_id)
    if not submission.brief_html:
        raise HTTPException(status_code=404, detail="Brief not generated yet")

    brand = re.sub(r"\s+", "-", submission.brand_name.strip())
    filename = _safe_filename(f"{settings.brief_title}-{brand}.html".replace(" ", "-"), "brief.html")
    return Response(
        content=submission.brief_html,
        media_type="text/html",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================================================
# PDF upload and delivery
# ============================================================================


@app.post("/api/submissions/{submission_id}/upload", response_model=UploadResponse)
async def upload_pdf(
    submission_id: str,
    file: UploadFile = File(...),
    store: SubmissionStore = Depends(get_store),
    blob_store: Optional[BlobStore] = Depends(get_blob_store),
):
    """Upload the finished brief PDF and mark the submission in progress."""
    _require_submission(store, submission_id)
    if file.content_type != "application/pdf":
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")
    if blob_store is None:
        raise HTTPException(status_code=503, detail="File storage not configured")

    data = await file.read()
    name = f"briefs/{submission_id}/{_safe_filename(file.filename, 'brief.pdf')}"
    try:
        url = await blob_store.upload_bytes_async(name, data, content_type="application/pdf")
    except Exception as e:
        logger.exception("PDF upload failed")
        raise HTTPException(status_code=500, detail=str(e))

    store.update_submission(
        submission_id, {"pdf_url": url, "status": SubmissionStatus.IN_PROGRESS}
    )
    return UploadResponse(url=url)


@app.post("/api/submissions/{submission_id}/send", response_model=SuccessResponse)
async def send_brief(submission_id: str, store: SubmissionStore = Depends(get_store)):
    """Email the uploaded PDF to the client."""
    submission = _require_submission(store, submission_id)
    if not submission.pdf_url:
        raise HTTPException(status_code=400, detail="No PDF uploaded yet")

    try:
        await send_brief_email(
            to=submission.email,
            founder_name=submission.founder_name,
            brand_name=submission.brand_name,
            pdf_url=submission.pdf_url,
        )
    except EmailDeliveryError as e:
        logger.exception("Failed to send email")
        raise HTTPException(status_code=500, detail=f"Failed to send email: {e}")

    store.update_submission(
        submission_id,
        {"status": SubmissionStatus.SENT, "sent_at": datetime.now(timezone.utc)},
    )
    return SuccessResponse(success=True)


# ============================================================================
# Product photos
# ============================================================================


@app.get("/api/submissions/{submission_id}/photos", response_model=list[ProductPhoto])
async def list_photos(submission_id: str, store: SubmissionStore = Depends(get_store)):
    return store.list_product_photos(submission_id)


@app.post("/api/submissions/{submission_id}/photos", response_model=ProductPhoto)
async def upload_photo(
    submission_id: str,
    file: UploadFile = File(...),
    store: SubmissionStore = Depends(get_store),
    blob_store: Optional[BlobStore] = Depends(get_blob_store),
):
    _require_submission(store, submission_id)
    if file.content_type not in PHOTO_CONTENT_TYPES:
        raise HTTPException(
            status_code=400, detail="Only image files (JPEG, PNG, WebP, GIF) are allowed"
        )
    if blob_store is None:
        raise HTTPException(status_code=503, detail="File storage not configured")

    filename = _safe_filename(file.filename, "photo")
    data = await file.read()
    name = f"product-photos/{submission_id}/{uuid.uuid4().hex[:8]}-{filename}"
    try:
        url = await blob_store.upload_bytes_async(name, data, content_type=file.content_type)
    except Exception as e:
        logger.exception("Photo upload failed")
        raise HTTPException(status_code=500, detail=str(e))

    return store.add_product_photo(submission_id, url=url, filename=filename)


@app.delete("/api/submissions/{submission_id}/photos", response_model=SuccessResponse)
async def delete_photo(
    submission_id: str,
    photo_id: Optional[str] = Query(None, alias="photoId"),
    store: SubmissionStore = Depends(get_store),
    blob_store: Optional[BlobStore] = Depends(get_blob_store),
):
    if not photo_id:
        raise HTTPException(status_code=400, detail="Photo ID required")
    photo = store.get_product_photo(submission_id, photo_id)
    if photo is None:
        raise HTTPException(status_code=404, detail="Photo not found")

    if blob_store is not None:
        try:
            await blob_store.delete_url_async(photo.url)
        except Exception as e:
            # The record goes either way
            logger.error("Failed to delete photo blob %s: %s", photo.url, e)

    store.delete_product_photo(submission_id, photo_id)
    return SuccessResponse(success=True)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "whitecoat_brief.app.main:app",
        host="0.0.0.0",
        port=port,
    )
