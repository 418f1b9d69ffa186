"""
Persistence sync boundary.

Committed store snapshots are written through to a repository and
published on a change channel so other open views of the same image stay
eventually consistent. Writes are fire-and-forget: a failure is logged and
reported as an event, the in-memory store is never rolled back.

The repository is consumed duck-typed:

- ``save(collection_key, {"annotations": [...]}) -> {"success": bool, "error"?: str}``
- ``load(collection_key) -> {"annotations": [...]}``
- ``rename_class(old, new) -> int`` (optional)
"""

import logging
import uuid
from gettext import gettext as _
from pathlib import PurePath
from typing import Callable, Iterable, List, Optional

from .errors import PersistenceWriteFailure
from .events import AnnotationEvent, EventEmitter, EventType
from .state import Annotation

logger = logging.getLogger(__name__)

KEY_SUFFIX = "_annotation"


def collection_key_for(image_name: str) -> str:
    """Collection key of an image: its base name without extensions."""
    base = PurePath(image_name).name.split(".")[0]
    return f"{base}{KEY_SUFFIX}"


def parse_annotations(records: Iterable[dict]) -> List[Annotation]:
    """Build annotations from persisted records, skipping unreadable ones."""
    annotations = []
    for record in records or []:
        try:
            annotations.append(Annotation.from_dict(record))
        except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as e:
            logger.warning(_("Skipping malformed annotation record: {error}").format(error=e))
    return annotations


class PersistenceSync:
    """Write-through and change notification for one editing view."""

    def __init__(
        self,
        repository,
        channel: Optional[EventEmitter] = None,
        events: Optional[EventEmitter] = None,
        origin: Optional[str] = None,
    ):
        """
        Initialize the sync boundary.

        Args:
            repository: Persistence collaborator
            channel: Change channel shared by every view; a private one is
                created when omitted
            events: Emitter of the owning session, for SAVE_FAILED events
            origin: Identifier of this view on the channel
        """
        self.repository = repository
        self.channel = channel if channel is not None else EventEmitter()
        self.events = events
        self.origin = origin or str(uuid.uuid4())
        self._subscriptions = []

    def load(self, collection_key: str) -> List[Annotation]:
        """Load an image's annotations; failures yield an empty collection."""
        try:
            data = self.repository.load(collection_key) or {}
        except Exception:
            logger.exception(_("Error loading annotations for {key}").format(key=collection_key))
            return []
        annotations = parse_annotations(data.get("annotations") or [])
        logger.debug("Loaded %d annotations for %s", len(annotations), collection_key)
        return annotations

    def commit(self, collection_key: str, annotations: Iterable[Annotation]) -> bool:
        """
        Write a snapshot through to the repository and publish it.

        Returns:
            True if the repository accepted the write
        """
        records = [a.to_dict() for a in annotations]
        try:
            result = self.repository.save(collection_key, {"annotations": records}) or {}
            if not result.get("success"):
                raise PersistenceWriteFailure(collection_key, result.get("error", ""))
        except PersistenceWriteFailure as e:
            self._report_failure(collection_key, str(e))
            return False
        except Exception as e:
            logger.exception(_("Error saving annotations for {key}").format(key=collection_key))
            self._report_failure(collection_key, str(e), logged=True)
            return False

        self.publish(collection_key, records)
        return True

    def publish(self, collection_key: str, records: List[dict]):
        self.channel.emit(
            AnnotationEvent(
                EventType.ANNOTATIONS_UPDATED,
                {"collection_key": collection_key, "annotations": records, "origin": self.origin},
            )
        )

    def subscribe(self, callback: Callable[[str, List[Annotation]], None]):
        """
        Receive snapshots published by other views.

        ``callback`` gets the collection key and the parsed annotations.
        """

        def listener(event: AnnotationEvent):
            if event.data.get("origin") == self.origin:
                return
            callback(
                event.data["collection_key"],
                parse_annotations(event.data.get("annotations", [])),
            )

        self.channel.on(EventType.ANNOTATIONS_UPDATED, listener)
        self._subscriptions.append(listener)

    def close(self):
        """Stop receiving change notifications."""
        for listener in self._subscriptions:
            self.channel.off(EventType.ANNOTATIONS_UPDATED, listener)
        self._subscriptions.clear()

    def rename_class(self, old: str, new: str) -> int:
        """
        Rewrite a class reference in every persisted record of the image set.

        Returns:
            Number of records rewritten, 0 if the repository cannot rename
        """
        rename = getattr(self.repository, "rename_class", None)
        if rename is None:
            logger.warning("Repository does not support class renaming")
            return 0
        try:
            return int(rename(old, new) or 0)
        except Exception:
            logger.exception(_("Error renaming class {old} to {new}").format(old=old, new=new))
            return 0

    def _report_failure(self, collection_key: str, reason: str, logged: bool = False):
        if not logged:
            logger.error(_("Error saving annotations: {reason}").format(reason=reason))
        if self.events is not None:
            self.events.emit(
                AnnotationEvent(
                    EventType.SAVE_FAILED, {"collection_key": collection_key, "error": reason}
                )
            )
