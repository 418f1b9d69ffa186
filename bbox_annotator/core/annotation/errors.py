"""
Error kinds of the annotation editor.

All of them are recovered inside the session: a failed operation leaves the
session usable and produces no undo entry.
"""


class AnnotationError(Exception):
    """Base class for recoverable annotation editing errors."""


class GeometryRejected(AnnotationError):
    """A clamped bbox would be degenerate or cannot fit the image."""


class StaleTargetReference(AnnotationError):
    """An operation targets an annotation id no longer in the store."""

    def __init__(self, annotation_id: str):
        super().__init__(f"Annotation {annotation_id!r} is no longer in the store")
        self.annotation_id = annotation_id


class PersistenceWriteFailure(AnnotationError):
    """The persistence collaborator reported a failed write."""

    def __init__(self, collection_key: str, reason: str = ""):
        super().__init__(f"Failed to save {collection_key!r}: {reason or 'unknown error'}")
        self.collection_key = collection_key
        self.reason = reason


class UserCancelledDeletion(AnnotationError):
    """The user declined the deletion confirmation."""
