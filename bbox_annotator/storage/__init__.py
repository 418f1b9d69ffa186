"""
Storage module - reference persistence backends.

Any object with the same ``save``/``load``/``rename_class`` methods can be
handed to ``PersistenceSync`` instead.
"""

from .repository import InMemoryRepository, JsonDirectoryRepository

__all__ = ["InMemoryRepository", "JsonDirectoryRepository"]
