"""
Annotation store for the open image.

The store is the single source of truth for annotation records. It only
changes through ``replace_all`` (image switch), ``apply`` (commands from the
undo log) and ``merge_external`` (change notifications from other views).
"""

import logging
from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .commands import Command, CommandKind
from .errors import GeometryRejected, StaleTargetReference
from .geometry import clamp_bbox, is_valid_bbox
from .state import Annotation

logger = logging.getLogger(__name__)


class AnnotationStore:
    """Ordered, id-unique collection of annotations for one image."""

    def __init__(self, bounds: Optional[Tuple[int, int]] = None, min_size: int = 1):
        self.bounds = bounds
        self.min_size = min_size
        self._annotations: List[Annotation] = []

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations))

    def __contains__(self, annotation_id: str) -> bool:
        return self.index_of(annotation_id) is not None

    def ids(self) -> List[str]:
        return [a.id for a in self._annotations]

    def snapshot(self) -> List[Annotation]:
        """Copy of the records, safe to keep across mutations."""
        return list(self._annotations)

    def to_dicts(self) -> List[dict]:
        return [a.to_dict() for a in self._annotations]

    def index_of(self, annotation_id: str) -> Optional[int]:
        for idx, annotation in enumerate(self._annotations):
            if annotation.id == annotation_id:
                return idx
        return None

    def get(self, annotation_id: str) -> Optional[Annotation]:
        idx = self.index_of(annotation_id)
        return None if idx is None else self._annotations[idx]

    def require(self, annotation_id: str) -> Annotation:
        """
        Get an annotation that an operation is about to act on.

        Raises:
            StaleTargetReference: If the id is no longer in the store
        """
        annotation = self.get(annotation_id)
        if annotation is None:
            raise StaleTargetReference(annotation_id)
        return annotation

    def ids_with_label(self, label: str) -> List[str]:
        return [a.id for a in self._annotations if a.label == label]

    def label_counts(self) -> Dict[str, int]:
        return dict(Counter(a.label for a in self._annotations))

    def repair(self, annotation: Annotation) -> Annotation:
        """Clamp a record into the image bounds."""
        if self.bounds is None:
            return annotation
        fixed = clamp_bbox(annotation.bbox, self.bounds, self.min_size)
        if fixed != annotation.bbox:
            logger.info(
                "Repaired out-of-bounds annotation %s: %s -> %s",
                annotation.id,
                annotation.bbox,
                fixed,
            )
            return annotation.with_bbox(fixed)
        return annotation

    def replace_all(
        self, annotations: Iterable[Annotation], bounds: Optional[Tuple[int, int]] = None
    ) -> int:
        """
        Replace the whole collection, e.g. when another image is opened.

        Records violating the bounds are clamped; duplicate ids keep their
        first occurrence.

        Returns:
            Number of records that were repaired or dropped
        """
        if bounds is not None:
            self.bounds = (int(bounds[0]), int(bounds[1]))

        records: List[Annotation] = []
        seen = set()
        fixed = 0
        for annotation in annotations:
            if annotation.id in seen:
                logger.warning("Dropping duplicate annotation id %s", annotation.id)
                fixed += 1
                continue
            try:
                repaired = self.repair(annotation)
            except GeometryRejected as e:
                logger.warning("Dropping annotation %s: %s", annotation.id, e)
                fixed += 1
                continue
            if repaired is not annotation:
                fixed += 1
            seen.add(annotation.id)
            records.append(repaired)

        self._annotations = records
        return fixed

    def apply(self, command: Command) -> List[str]:
        """
        Apply a command to the store.

        Records whose id is no longer (or already) present are skipped
        silently, so replaying a command against a store changed by another
        view never fails.

        Returns:
            Ids that were actually changed

        Raises:
            GeometryRejected: If a record would break the bbox invariants
        """
        for annotation in command.after:
            self._check(annotation)

        if command.kind == CommandKind.CREATE:
            return self._insert(command.after, command.positions)
        if command.kind == CommandKind.DELETE:
            return self._remove(command.before)
        if command.kind in (CommandKind.MOVE, CommandKind.RESIZE, CommandKind.CLASSIFY):
            return self._replace(command.after)
        raise ValueError(f"Unknown command kind: {command.kind!r}")

    def merge_external(self, annotations: Iterable[Annotation]) -> List[str]:
        """
        Take in records published by another view of the same image.

        Only records whose id is already present are replaced; the local
        ordering is kept.

        Returns:
            Ids whose record changed
        """
        changed = []
        for annotation in annotations:
            idx = self.index_of(annotation.id)
            if idx is None:
                continue
            try:
                repaired = self.repair(annotation)
            except GeometryRejected as e:
                logger.warning("Ignoring external update of %s: %s", annotation.id, e)
                continue
            if self._annotations[idx] != repaired:
                self._annotations[idx] = repaired
                changed.append(annotation.id)
        return changed

    def rename_label(self, old: str, new: str) -> int:
        """Point every record labelled ``old`` at ``new``; returns the count."""
        count = 0
        for idx, annotation in enumerate(self._annotations):
            if annotation.label == old:
                self._annotations[idx] = annotation.with_label(new)
                count += 1
        return count

    def _check(self, annotation: Annotation):
        if self.bounds is not None and not is_valid_bbox(
            annotation.bbox, self.bounds, self.min_size
        ):
            raise GeometryRejected(
                f"bbox {annotation.bbox} of {annotation.id} does not fit {self.bounds}"
            )

    def _insert(self, records, positions) -> List[str]:
        changed = []
        pairs = sorted(zip(positions, records), key=lambda p: p[0]) if positions else [
            (len(self._annotations), r) for r in records
        ]
        for position, annotation in pairs:
            if annotation.id in self:
                logger.debug("Skipping creation of existing annotation %s", annotation.id)
                continue
            self._annotations.insert(min(position, len(self._annotations)), annotation)
            changed.append(annotation.id)
        return changed

    def _remove(self, records) -> List[str]:
        doomed = {a.id for a in records}
        changed = [a.id for a in self._annotations if a.id in doomed]
        self._annotations = [a for a in self._annotations if a.id not in doomed]
        return changed

    def _replace(self, records) -> List[str]:
        changed = []
        for annotation in records:
            idx = self.index_of(annotation.id)
            if idx is None:
                logger.debug("Skipping update of missing annotation %s", annotation.id)
                continue
            self._annotations[idx] = annotation
            changed.append(annotation.id)
        return changed
