"""Configuration settings for the WhiteCoat Brief service."""

import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    glif_api_token: str = os.getenv("GLIF_API_TOKEN", "")

    # Text models (LiteLLM ids; "claude-*" routes through the Anthropic SDK)
    concept_model: str = "gemini/gemini-2.0-flash"
    concept_max_tokens: int = 8000
    concept_temperature: float = 0.8
    insights_model: str = "gemini/gemini-2.0-flash"
    vision_model: str = "gemini/gemini-2.0-flash"

    # Image generation
    image_model: str = "gemini-2.5-flash-image"
    glif_api_url: str = "https://simple-api.glif.app/clozwqgs60013l80fkgmtf49o"
    image_batch_size: int = 3
    image_batch_delay: float = 0.5  # seconds between batches
    image_max_retries: int = 2
    image_retry_delay: float = 5.0  # base delay, doubled per retry

    # Website analysis
    insights_timeout: float = 30.0
    page_timeout: float = 10.0
    probe_timeout: float = 2.0
    image_fetch_timeout: float = 5.0
    page_content_chars: int = 30000
    max_content_chars: int = 50000
    max_vision_images: int = 2

    # Firestore
    firestore_project: str = os.getenv("GOOGLE_CLOUD_PROJECT", "")
    submissions_collection: str = "whitecoat_submissions"

    # Blob storage (S3-compatible)
    blob_bucket: str = ""
    blob_endpoint: str = ""
    blob_region: str = "us-east-1"
    blob_access_key: str = ""
    blob_secret_key: str = ""
    blob_public_base_url: str = ""
    blob_prefix: str = "whitecoat"

    # Outbound email
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_email: str = ""
    smtp_password: str = ""
    email_from_name: str = "WhiteCoat Brief"

    # Brief branding
    brief_title: str = "WhiteCoat Brief"

    class Config:
        env_file = ".env"
        extra = "ignore"


# Global settings instance
settings = Settings()
