"""
Class registry model.

Annotations reference classes by name. The registry holds the id, name and
display colour of each class; "Unclassified" is always present and cannot
be removed or renamed.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ...utils.config import UNCLASSIFIED


@dataclass(frozen=True)
class ClassInfo:
    """Registry entry for one annotation class."""

    id: int
    name: str
    color: str

    def to_dict(self):
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, data: dict):
        return cls(id=int(data["id"]), name=str(data["name"]), color=str(data["color"]))


DEFAULT_UNCLASSIFIED_COLOR = "#FF0000"


def digit_class_name(digit: int) -> str:
    """Class bound to a digit key: 0 is Unclassified, N is "Class N"."""
    if not 0 <= digit <= 9:
        raise ValueError(f"Digit out of range: {digit}")
    return UNCLASSIFIED if digit == 0 else f"Class {digit}"


class ClassRegistry:
    """Ordered collection of classes known to the editor."""

    def __init__(self, classes: Optional[Iterable[ClassInfo]] = None):
        self._classes: List[ClassInfo] = []
        for info in classes or []:
            if info.name not in self:
                self._classes.append(info)
        if UNCLASSIFIED not in self:
            self._classes.insert(0, ClassInfo(0, UNCLASSIFIED, DEFAULT_UNCLASSIFIED_COLOR))

    def __contains__(self, name: str) -> bool:
        return any(c.name == name for c in self._classes)

    def __iter__(self):
        return iter(list(self._classes))

    def __len__(self) -> int:
        return len(self._classes)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self._classes]

    def get(self, name: str) -> Optional[ClassInfo]:
        for info in self._classes:
            if info.name == name:
                return info
        return None

    def color_for(self, name: str) -> Optional[str]:
        info = self.get(name)
        return info.color if info else None

    def add(self, name: str, color: str) -> ClassInfo:
        """
        Register a new class.

        Raises:
            ValueError: If a class with that name already exists
        """
        if name in self:
            raise ValueError(f"Class {name!r} already exists")
        next_id = max((c.id for c in self._classes), default=-1) + 1
        info = ClassInfo(next_id, name, color)
        self._classes.append(info)
        return info

    def remove(self, name: str):
        """
        Remove a class.

        Raises:
            ValueError: For Unclassified, or an unknown class
        """
        if name == UNCLASSIFIED:
            raise ValueError(f"{UNCLASSIFIED!r} is reserved and cannot be removed")
        info = self.get(name)
        if info is None:
            raise ValueError(f"Unknown class {name!r}")
        self._classes.remove(info)

    def rename(self, old: str, new: str) -> ClassInfo:
        """
        Rename a class, keeping its id and colour.

        Raises:
            ValueError: For Unclassified, unknown names or a name clash
        """
        if UNCLASSIFIED in (old, new):
            raise ValueError(f"{UNCLASSIFIED!r} is reserved and cannot be renamed")
        info = self.get(old)
        if info is None:
            raise ValueError(f"Unknown class {old!r}")
        if new in self:
            raise ValueError(f"Class {new!r} already exists")
        renamed = ClassInfo(info.id, new, info.color)
        self._classes[self._classes.index(info)] = renamed
        return renamed

    def name_for_digit(self, digit: int) -> str:
        """Class bound to a digit key, whether or not it is registered yet."""
        return digit_class_name(digit)

    def to_list(self) -> List[dict]:
        return [c.to_dict() for c in self._classes]
