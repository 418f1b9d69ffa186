"""
Reversible commands and the undo/redo log.

Commands are plain data: a kind plus the affected annotation records before
and after the change. The store interprets them with a single apply
function, and undo applies the inverted command, so nothing captured by a
command can be mutated behind its back.
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Deque, Hashable, List, Optional, Sequence, Tuple

from .state import Annotation

logger = logging.getLogger(__name__)


class CommandKind(Enum):
    CREATE = "create"
    DELETE = "delete"
    MOVE = "move"
    RESIZE = "resize"
    CLASSIFY = "classify"

    @property
    def inverse(self) -> "CommandKind":
        if self == CommandKind.CREATE:
            return CommandKind.DELETE
        if self == CommandKind.DELETE:
            return CommandKind.CREATE
        return self


@dataclass(frozen=True)
class Command:
    """
    One reversible mutation of the annotation store.

    ``before`` holds the records as they were, ``after`` as they become.
    Creations have an empty ``before``, deletions an empty ``after``.
    ``positions`` are the store indices of the created or deleted records,
    aligned with whichever side holds them.
    """

    kind: CommandKind
    before: Tuple[Annotation, ...] = ()
    after: Tuple[Annotation, ...] = ()
    positions: Tuple[int, ...] = ()

    @classmethod
    def create(cls, annotation: Annotation, position: int) -> "Command":
        return cls(CommandKind.CREATE, after=(annotation,), positions=(position,))

    @classmethod
    def delete(
        cls, annotations: Sequence[Annotation], positions: Sequence[int]
    ) -> "Command":
        if len(annotations) != len(positions):
            raise ValueError("Every deleted annotation needs its store position")
        return cls(
            CommandKind.DELETE, before=tuple(annotations), positions=tuple(positions)
        )

    @classmethod
    def update(
        cls,
        kind: CommandKind,
        before: Sequence[Annotation],
        after: Sequence[Annotation],
    ) -> "Command":
        if kind in (CommandKind.CREATE, CommandKind.DELETE):
            raise ValueError(f"{kind.value} is not an in-place update")
        if [a.id for a in before] != [a.id for a in after]:
            raise ValueError("Update must touch the same ids before and after")
        return cls(kind, before=tuple(before), after=tuple(after))

    @property
    def ids(self) -> List[str]:
        records = self.after if self.after else self.before
        return [a.id for a in records]

    def inverted(self) -> "Command":
        """Command that undoes this one."""
        return Command(
            self.kind.inverse,
            before=self.after,
            after=self.before,
            positions=self.positions,
        )

    def merged_with(self, later: "Command") -> "Command":
        """Single command going from this one's start to ``later``'s end."""
        if later.kind != self.kind or later.ids != self.ids:
            raise ValueError("Only commands of the same kind and ids can be merged")
        return replace(self, after=later.after)

    @property
    def is_noop(self) -> bool:
        return self.before == self.after

    def describe(self) -> str:
        return f"{self.kind.value} {', '.join(self.ids)}"


class LogAction(Enum):
    PERFORM = "perform"
    UNDO = "undo"
    REDO = "redo"
    SETTLE = "settle"


LogListener = Callable[[LogAction, Command, bool], None]


class CommandLog:
    """
    Bounded undo/redo history.

    The log knows nothing about what commands mean; it hands them to
    ``apply_fn`` and keeps them ordered. Listeners are called after every
    application with the action, the command and whether the change is
    settled (a nudge burst is unsettled until its idle gap expires).
    """

    def __init__(
        self,
        apply_fn: Callable[[Command], None],
        max_depth: int = 50,
        scheduler=None,
        settle_delay: float = 0.1,
    ):
        """
        Initialize the log.

        Args:
            apply_fn: Interpreter applying a command to the store
            max_depth: Entries kept per stack, oldest evicted first
            scheduler: Object with ``call_later(delay, callback)`` used to
                settle coalesced bursts; without one every coalesced call
                settles immediately
            settle_delay: Idle gap in seconds that closes a burst
        """
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self._apply = apply_fn
        self.max_depth = max_depth
        self.scheduler = scheduler
        self.settle_delay = settle_delay

        self.undo_stack: Deque[Command] = deque(maxlen=max_depth)
        self.redo_stack: Deque[Command] = deque(maxlen=max_depth)

        self._listeners: List[LogListener] = []

        # Open coalescing burst and its single pending settle task
        self._burst_key: Optional[Hashable] = None
        self._pending = None

    def add_listener(self, listener: LogListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: LogListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    @property
    def burst_open(self) -> bool:
        return self._burst_key is not None

    def perform(self, command: Command):
        """Apply a new command and record it; clears the redo history."""
        self.flush()
        self._perform(command)
        self._notify(LogAction.PERFORM, command, True)

    def perform_coalesced(self, command: Command, key: Hashable):
        """
        Apply a command, merging it into the open burst with the same key.

        The first command of a burst is recorded like ``perform``; the
        following ones only replace the recorded end state, so the whole
        burst is one undo entry. Each call reschedules the settle task.
        """
        if self._burst_key == key and self.undo_stack:
            self._apply(command)
            self.undo_stack[-1] = self.undo_stack[-1].merged_with(command)
        else:
            self.flush()
            self._perform(command)
            self._burst_key = key
        self._notify(LogAction.PERFORM, command, False)
        self._reschedule()

    def undo(self) -> bool:
        """
        Revert the most recent command.

        Returns:
            True if a command was undone, False if there was no history
        """
        self.flush()
        if not self.undo_stack:
            return False
        command = self.undo_stack.pop()
        self._apply(command.inverted())
        self.redo_stack.append(command)
        logger.debug("Undid %s", command.describe())
        self._notify(LogAction.UNDO, command, True)
        return True

    def redo(self) -> bool:
        """
        Re-apply the most recently undone command.

        Returns:
            True if a command was redone, False if there was nothing to redo
        """
        self.flush()
        if not self.redo_stack:
            return False
        command = self.redo_stack.pop()
        self._apply(command)
        self.undo_stack.append(command)
        logger.debug("Redid %s", command.describe())
        self._notify(LogAction.REDO, command, True)
        return True

    def flush(self):
        """Settle the open burst now instead of waiting for its idle gap."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._burst_key is not None:
            self._settle()

    def clear(self):
        """Settle any open burst and forget all history."""
        self.flush()
        self.undo_stack.clear()
        self.redo_stack.clear()

    def _perform(self, command: Command):
        self._apply(command)
        self.redo_stack.clear()
        if len(self.undo_stack) == self.max_depth:
            logger.debug("Undo history full, dropping %s", self.undo_stack[0].describe())
        self.undo_stack.append(command)
        logger.debug("Performed %s", command.describe())

    def _reschedule(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self.scheduler is None:
            self._settle()
            return
        self._pending = self.scheduler.call_later(self.settle_delay, self._on_settle_due)

    def _on_settle_due(self):
        self._pending = None
        if self._burst_key is not None:
            self._settle()

    def _settle(self):
        self._burst_key = None
        if self.undo_stack and self.undo_stack[-1].is_noop:
            # Burst ended where it started
            logger.debug("Dropping empty burst %s", self.undo_stack.pop().describe())
            return
        if self.undo_stack:
            self._notify(LogAction.SETTLE, self.undo_stack[-1], True)

    def _notify(self, action: LogAction, command: Command, settled: bool):
        for listener in list(self._listeners):
            listener(action, command, settled)
