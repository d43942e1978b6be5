"""Domain exceptions raised by the scorer, pipeline, backlog and backend."""

from __future__ import annotations


class StudyLabError(Exception):
    """Base class for every error raised by ``studylab``."""


class FormalityError(StudyLabError):
    """A transcript could not be scored."""


class EmptyTranscriptError(FormalityError):
    """The transcript produced zero scorable tokens."""

    def __init__(self, message: str = "No scorable tokens found in transcript") -> None:
        super().__init__(message)


class BackendError(StudyLabError):
    """A repository or batch-endpoint call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BackendError):
    """A requested record does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class InvalidBacklogStatus(StudyLabError):
    """A backlog status is not allowed for the item's type."""

    def __init__(self, item_type: str, status: str, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"Status {status!r} is not valid for {item_type!r} items "
            f"(allowed: {', '.join(allowed) or 'none'})"
        )
        self.item_type = item_type
        self.status = status
        self.allowed = allowed


class RulesVersionBumpNotConfirmed(StudyLabError):
    """A rules-version bump was requested without explicit confirmation."""


class FlowError(StudyLabError):
    """An illegal move through the participant study flow."""
