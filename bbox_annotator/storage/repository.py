"""
Annotation repositories.

Persist one ``{"annotations": [...]}`` document per collection key.
"""

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def _rename_in_document(document: dict, old: str, new: str) -> int:
    count = 0
    for record in document.get("annotations", []):
        if record.get("class") == old:
            record["class"] = new
            count += 1
    return count


class InMemoryRepository:
    """Repository keeping documents in a dict, for tests and previews."""

    def __init__(self, documents: Optional[Dict[str, dict]] = None):
        self.documents: Dict[str, dict] = copy.deepcopy(documents or {})
        self.save_calls: List[str] = []

    def save(self, collection_key: str, payload: dict) -> dict:
        self.save_calls.append(collection_key)
        self.documents[collection_key] = copy.deepcopy(payload)
        return {"success": True}

    def load(self, collection_key: str) -> dict:
        return copy.deepcopy(self.documents.get(collection_key, {"annotations": []}))

    def keys(self) -> List[str]:
        return sorted(self.documents)

    def rename_class(self, old: str, new: str) -> int:
        return sum(_rename_in_document(doc, old, new) for doc in self.documents.values())


class JsonDirectoryRepository:
    """
    Repository storing ``<collection_key>.json`` files in one directory.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a half-written document behind.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, collection_key: str) -> Path:
        if not collection_key or Path(collection_key).name != collection_key:
            raise ValueError(f"Invalid collection key: {collection_key!r}")
        return self.root / f"{collection_key}.json"

    def save(self, collection_key: str, payload: dict) -> dict:
        try:
            self._write(self.path_for(collection_key), payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save {collection_key}: {e}")
            return {"success": False, "error": str(e)}
        logger.debug(f"Saved annotations to {self.path_for(collection_key)}")
        return {"success": True}

    def load(self, collection_key: str) -> dict:
        path = self.path_for(collection_key)
        if not path.exists():
            return {"annotations": []}
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if "annotations" not in data:
            data["annotations"] = []
        return data

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self.root.glob("*.json"))

    def rename_class(self, old: str, new: str) -> int:
        total = 0
        for key in self.keys():
            document = self.load(key)
            count = _rename_in_document(document, old, new)
            if count:
                self._write(self.path_for(key), document)
                total += count
        logger.info(f"Renamed class {old!r} to {new!r} in {total} annotations")
        return total

    def _write(self, path: Path, payload: dict):
        fd, tmp_name = tempfile.mkstemp(dir=str(self.root), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
