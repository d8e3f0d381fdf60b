"""Record store for submissions, generated images and product photos."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from google.cloud import firestore

from ..config.settings import settings
from .models import GeneratedImage, ProductPhoto, Submission, SubmissionStatus

logger = logging.getLogger(__name__)

IMAGES_SUBCOLLECTION = 'generated_images'
PHOTOS_SUBCOLLECTION = 'product_photos'


class SubmissionStore(ABC):
    """CRUD over submissions and their child records."""

    @abstractmethod
    def create_submission(self, data: Dict[str, Any]) -> Submission:
        """Create a submission with status 'new'."""

    @abstractmethod
    def list_submissions(self) -> list[Submission]:
        """All submissions, newest first."""

    @abstractmethod
    def get_submission(self, submission_id: str) -> Optional[Submission]:
        """Get submission by id."""

    @abstractmethod
    def update_submission(self, submission_id: str, fields: Dict[str, Any]) -> Optional[Submission]:
        """Write the given fields and return the updated record."""

    @abstractmethod
    def delete_submission(self, submission_id: str) -> bool:
        """Delete a submission together with its images and photos."""

    @abstractmethod
    def list_generated_images(self, submission_id: str) -> list[GeneratedImage]:
        """Images ordered by ad number, then image number."""

    @abstractmethod
    def add_generated_image(
        self,
        submission_id: str,
        ad_number: int,
        image_number: int,
        prompt: str,
        image_url: str,
    ) -> GeneratedImage:
        """Persist one generated image."""

    @abstractmethod
    def delete_generated_images(self, submission_id: str) -> int:
        """Delete all generated images of a submission. Returns the count."""

    @abstractmethod
    def list_product_photos(self, submission_id: str) -> list[ProductPhoto]:
        """Product photos in upload order."""

    @abstractmethod
    def add_product_photo(self, submission_id: str, url: str, filename: str) -> ProductPhoto:
        """Persist one product photo."""

    @abstractmethod
    def get_product_photo(self, submission_id: str, photo_id: str) -> Optional[ProductPhoto]:
        """Get a product photo belonging to the submission."""

    @abstractmethod
    def delete_product_photo(self, submission_id: str, photo_id: str) -> bool:
        """Delete a product photo record."""


def _to_storable(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert enum values for Firestore."""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in fields.items()
    }


def _sort_key_created(record: Any) -> datetime:
    return record.created_at or datetime.min.replace(tzinfo=timezone.utc)


class FirestoreStore(SubmissionStore):
    """Firestore-backed store.

    Submissions live in one collection; generated images and product photos
    are subcollections of their submission document.
    """

    def __init__(self, project: Optional[str] = None, collection: Optional[str] = None):
        project = project or settings.firestore_project
        self.db = firestore.Client(project=project) if project else firestore.Client()
        self.submissions = self.db.collection(collection or settings.submissions_collection)

    def _images(self, submission_id: str):
        return self.submissions.document(submission_id).collection(IMAGES_SUBCOLLECTION)

    def _photos(self, submission_id: str):
        return self.submissions.document(submission_id).collection(PHOTOS_SUBCOLLECTION)

    # --- Submissions ---

    def create_submission(self, data: Dict[str, Any]) -> Submission:
        doc_ref = self.submissions.document()
        record = dict(data)
        record['status'] = SubmissionStatus.NEW.value
        record['created_at'] = datetime.now(timezone.utc)
        doc_ref.set(_to_storable(record))
        record['id'] = doc_ref.id
        return Submission(**record)

    def list_submissions(self) -> list[Submission]:
        submissions = []
        for doc in self.submissions.stream():
            data = doc.to_dict()
            data['id'] = doc.id
            submissions.append(Submission(**data))
        # Sort in Python to avoid requiring a Firestore index
        submissions.sort(key=_sort_key_created, reverse=True)
        return submissions

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        doc = self.submissions.document(submission_id).get()
        if doc.exists:
            data = doc.to_dict()
            data['id'] = doc.id
            return Submission(**data)
        return None

    def update_submission(self, submission_id: str, fields: Dict[str, Any]) -> Optional[Submission]:
        doc_ref = self.submissions.document(submission_id)
        if not doc_ref.get().exists:
            return None
        if fields:
            doc_ref.update(_to_storable(fields))
        return self.get_submission(submission_id)

    def delete_submission(self, submission_id: str) -> bool:
        doc_ref = self.submissions.document(submission_id)
        if not doc_ref.get().exists:
            return False
        # Subcollections are not removed with their parent document
        self.delete_generated_images(submission_id)
        for doc in self._photos(submission_id).stream():
            doc.reference.delete()
        doc_ref.delete()
        return True

    # --- Generated images ---

    def list_generated_images(self, submission_id: str) -> list[GeneratedImage]:
        images = []
        for doc in self._images(submission_id).stream():
            data = doc.to_dict()
            data['id'] = doc.id
            data['submission_id'] = submission_id
            images.append(GeneratedImage(**data))
        images.sort(key=lambda img: (img.ad_number, img.image_number))
        return images

    def add_generated_image(
        self,
        submission_id: str,
        ad_number: int,
        image_number: int,
        prompt: str,
        image_url: str,
    ) -> GeneratedImage:
        doc_ref = self._images(submission_id).document()
        data = {
            'ad_number': ad_number,
            'image_number': image_number,
            'prompt': prompt,
            'image_url': image_url,
            'created_at': datetime.now(timezone.utc),
        }
        doc_ref.set(data)
        return GeneratedImage(id=doc_ref.id, submission_id=submission_id, **data)

    def delete_generated_images(self, submission_id: str) -> int:
        deleted = 0
        for doc in self._images(submission_id).stream():
            doc.reference.delete()
            deleted += 1
        return deleted

    # --- Product photos ---

    def list_product_photos(self, submission_id: str) -> list[ProductPhoto]:
        photos = []
        for doc in self._photos(submission_id).stream():
            data = doc.to_dict()
            data['id'] = doc.id
            data['submission_id'] = submission_id
            photos.append(ProductPhoto(**data))
        photos.sort(key=_sort_key_created)
        return photos

    def add_product_photo(self, submission_id: str, url: str, filename: str) -> ProductPhoto:
        doc_ref = self._photos(submission_id).document()
        data = {
            'url': url,
            'filename': filename,
            'created_at': datetime.now(timezone.utc),
        }
        doc_ref.set(data)
        return ProductPhoto(id=doc_ref.id, submission_id=submission_id, **data)

    def get_product_photo(self, submission_id: str, photo_id: str) -> Optional[ProductPhoto]:
        doc = self._photos(submission_id).document(photo_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        data['id'] = doc.id
        data['submission_id'] = submission_id
        return ProductPhoto(**data)

    def delete_product_photo(self, submission_id: str, photo_id: str) -> bool:
        doc_ref = self._photos(submission_id).document(photo_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True


# Singleton
_store_instance: Optional[SubmissionStore] = None


def get_store() -> SubmissionStore:
    """Get or create the Firestore store singleton."""
    global _store_instance
    if _store_instance is None:
        _store_instance = FirestoreStore()
        logger.info("Firestore store initialized (collection=%s)", settings.submissions_collection)
    return _store_instance
