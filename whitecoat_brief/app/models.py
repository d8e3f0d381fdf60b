"""Pydantic models for submissions, ad concepts and the web API."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubmissionStatus(str, Enum):
    """Lifecycle of a submission.

    new -> generating -> generated -> in_progress -> sent, with
    generating -> new when a run fails.
    """

    NEW = "new"
    GENERATING = "generating"
    GENERATED = "generated"
    IN_PROGRESS = "in_progress"
    SENT = "sent"


# --- Ad concepts ---


class VisualAsset(BaseModel):
    """What the ad image should show."""

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(description="What the image should show")
    style: str = Field(default="", description="Photography style")
    key_elements: list[str] = Field(
        default_factory=list,
        alias="keyElements",
        description="Three or more elements that must appear",
    )


class AdConcept(BaseModel):
    """One proposed advertisement. Serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    ad_number: int = Field(default=0, alias="adNumber")
    title: str
    hook_type: str = Field(default="", alias="hookType")
    opening_hook: str = Field(default="", alias="openingHook")
    visual_asset: VisualAsset = Field(alias="visualAsset")
    body_script: str = Field(default="", alias="bodyScript")
    call_to_action: str = Field(default="", alias="callToAction")
    target_emotion: str = Field(default="", alias="targetEmotion")
    platform_recommendation: str = Field(default="", alias="platformRecommendation")


# --- Persisted records ---


class Submission(BaseModel):
    """One client intake record."""

    id: str
    brand_name: str
    founder_name: str
    email: str
    website: Optional[str] = None
    medical_credentials: str = ""
    specialty: str = ""
    product_type: str = ""
    current_revenue: str = ""
    biggest_challenge: str = ""
    target_audience: str = ""
    timeline: str = "Not specified"
    how_did_you_hear: str = "Not specified"
    additional_info: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.NEW
    ad_concepts: Optional[str] = None  # JSON list of AdConcept
    brief_html: Optional[str] = None
    brief_generated_at: Optional[datetime] = None
    pdf_url: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class GeneratedImage(BaseModel):
    """One generated image for an (ad number, image number) pair."""

    id: str
    submission_id: str
    ad_number: int
    image_number: int
    prompt: str
    image_url: str
    created_at: Optional[datetime] = None


class ProductPhoto(BaseModel):
    """A client product photo uploaded by staff."""

    id: str
    submission_id: str
    url: str
    filename: str
    created_at: Optional[datetime] = None


# --- API request/response models ---


class SubmissionCreate(BaseModel):
    """Public questionnaire payload."""

    brand_name: str
    founder_name: str
    email: str
    website: Optional[str] = None
    medical_credentials: str
    specialty: str
    product_type: str
    current_revenue: str
    biggest_challenge: str
    target_audience: str
    timeline: Optional[str] = None
    how_did_you_hear: Optional[str] = None
    additional_info: Optional[str] = None

    @field_validator("brand_name", "founder_name", "email")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class SubmissionUpdate(BaseModel):
    """Staff edits. Only fields that are set get written."""

    brand_name: Optional[str] = None
    founder_name: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    medical_credentials: Optional[str] = None
    specialty: Optional[str] = None
    product_type: Optional[str] = None
    current_revenue: Optional[str] = None
    biggest_challenge: Optional[str] = None
    target_audience: Optional[str] = None
    timeline: Optional[str] = None
    how_did_you_hear: Optional[str] = None
    additional_info: Optional[str] = None
    status: Optional[SubmissionStatus] = None
    pdf_url: Optional[str] = None
    sent_at: Optional[datetime] = None


class SubmissionCreated(BaseModel):
    """Response for a new questionnaire submission."""

    id: str


class SubmissionSummary(BaseModel):
    """Row in the admin submissions list."""

    id: str
    brand_name: str
    founder_name: str
    email: str
    status: SubmissionStatus
    created_at: Optional[datetime] = None


class SubmissionDetail(Submission):
    """Submission with its generated images, ordered for display."""

    generated_images: list[GeneratedImage] = []


class GenerateResponse(BaseModel):
    """Response body for a completed generation run."""

    success: bool
    submission: SubmissionDetail
    conceptsCount: int
    imagesGenerated: int
    imagesFailed: int
    errors: list[str] = []


class StatusImage(BaseModel):
    """Image entry in the status payload."""

    id: str
    adNumber: int
    imageNumber: int
    imageUrl: str


class GenerationStatus(BaseModel):
    """Polling payload while a run is in progress."""

    id: str
    status: SubmissionStatus
    hasBrief: bool
    briefGeneratedAt: Optional[datetime] = None
    conceptsCount: int
    imagesCompleted: int
    imagesTotal: int
    progress: int
    images: list[StatusImage] = []


class UploadResponse(BaseModel):
    """Response for a PDF upload."""

    url: str


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool
