"""Exceptions raised by the brief-generation pipeline."""


class BriefError(Exception):
    """Base class for pipeline errors."""


class SubmissionNotFound(BriefError):
    """No submission exists with the requested id."""

    def __init__(self, submission_id: str):
        super().__init__(f"Submission not found: {submission_id}")
        self.submission_id = submission_id


class GenerationInProgress(BriefError):
    """A generation run is already active for this submission."""

    def __init__(self, submission_id: str):
        super().__init__(f"Brief generation already running for {submission_id}")
        self.submission_id = submission_id


class ConceptGenerationFailed(BriefError):
    """The text model did not produce a usable ad concept list."""


class BriefGenerationError(BriefError):
    """A run aborted after the submission was marked as generating."""


class EmailDeliveryError(BriefError):
    """The brief email could not be delivered."""
