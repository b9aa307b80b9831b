"""
Bounded undo/redo history.

The ledger stores operations most-recent-last. After every ``record`` it
evicts entries beyond ``max_history_size`` (oldest first) and entries older
than ``max_history_age_ms``. An operation carries its own inverse as an async
callable; the ledger never inspects documents itself.

An undo that fails is not re-queued. Its outcome says whether it fully
succeeded, partially succeeded (some tasks could no longer be resolved) or
failed outright.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from taskvault.errors import UndoConfigError
from taskvault.models.task import Status
from taskvault.utils.ids import generate_operation_id

log = logging.getLogger(__name__)


class UndoOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @classmethod
    def from_counts(cls, succeeded: int, failed: int) -> "UndoOutcome":
        if failed == 0:
            return cls.SUCCESS
        if succeeded == 0:
            return cls.FAILED
        return cls.PARTIAL


ApplyFn = Callable[[], Awaitable[UndoOutcome]]


@dataclass
class UndoConfig:
    max_history_size: int = 10
    max_history_age_ms: float = 300_000
    enabled: bool = True

    def validate(self) -> None:
        if self.max_history_size < 1:
            raise UndoConfigError(
                f"max_history_size must be at least 1, got {self.max_history_size}",
                {"max_history_size": self.max_history_size},
            )
        if self.max_history_age_ms <= 0:
            raise UndoConfigError(
                f"max_history_age_ms must be positive, got {self.max_history_age_ms}",
                {"max_history_age_ms": self.max_history_age_ms},
            )


@dataclass
class UndoOperation:
    id: str
    description: str
    timestamp: float
    inverse_apply: ApplyFn = field(repr=False)
    reapply: Optional[ApplyFn] = field(default=None, repr=False)
    changes: List[Any] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "timestamp": self.timestamp,
            "changes": len(self.changes),
            "redoable": self.reapply is not None,
        }


@dataclass
class UndoResult:
    operation: UndoOperation
    outcome: UndoOutcome


def _now_ms() -> float:
    return time.time() * 1000


class UndoLedger:
    def __init__(
        self,
        config: Optional[UndoConfig] = None,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self._config = config or UndoConfig()
        self._config.validate()
        self._clock = clock
        self._history: List[UndoOperation] = []
        self._redo: List[UndoOperation] = []

    @property
    def config(self) -> UndoConfig:
        return self._config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def update_config(self, **changes: Any) -> None:
        """Replace individual settings, e.g. ``update_config(max_history_size=5)``."""
        config = replace(self._config, **changes)
        config.validate()
        self._config = config
        self._prune()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(
        self,
        description: str,
        inverse_apply: ApplyFn,
        *,
        reapply: Optional[ApplyFn] = None,
        changes: Sequence[Any] = (),
    ) -> Optional[str]:
        """Append an operation and return its id (None while disabled)."""
        if not self._config.enabled:
            return None

        operation = UndoOperation(
            id=generate_operation_id(),
            description=description,
            timestamp=self._clock(),
            inverse_apply=inverse_apply,
            reapply=reapply,
            changes=list(changes),
        )
        self._history.append(operation)
        self._redo.clear()
        self._prune()
        log.debug("Recorded %s: %s (%d in history)", operation.id, description, len(self._history))
        return operation.id

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def can_undo(self) -> bool:
        self._prune()
        return self._config.enabled and bool(self._history)

    def can_redo(self) -> bool:
        self._prune()
        return self._config.enabled and bool(self._redo)

    def last_operation(self) -> Optional[UndoOperation]:
        self._prune()
        return self._history[-1] if self._history else None

    def pop_for_undo(self) -> Optional[UndoOperation]:
        """Remove and return the most recent operation, or None."""
        if not self.can_undo():
            return None
        operation = self._history.pop()
        if operation.reapply is not None:
            self._redo.append(operation)
        return operation

    def pop_for_redo(self) -> Optional[UndoOperation]:
        if not self.can_redo():
            return None
        operation = self._redo.pop()
        self._history.append(operation)
        return operation

    async def undo(self) -> Optional[UndoResult]:
        """Pop the latest operation and run its inverse. None if nothing to undo."""
        operation = self.pop_for_undo()
        if operation is None:
            return None
        outcome = await self._run(operation, operation.inverse_apply, "undo")
        return UndoResult(operation=operation, outcome=outcome)

    async def redo(self) -> Optional[UndoResult]:
        operation = self.pop_for_redo()
        if operation is None or operation.reapply is None:
            return None
        outcome = await self._run(operation, operation.reapply, "redo")
        return UndoResult(operation=operation, outcome=outcome)

    def clear(self) -> None:
        self._history.clear()
        self._redo.clear()

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def redo_size(self) -> int:
        return len(self._redo)

    def history(self) -> List[UndoOperation]:
        """Snapshot of the history, oldest first."""
        return list(self._history)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, operation: UndoOperation, apply: ApplyFn, verb: str) -> UndoOutcome:
        try:
            outcome = await apply()
        except Exception:
            log.exception("Failed to %s %s (%s)", verb, operation.id, operation.description)
            return UndoOutcome.FAILED
        if outcome is UndoOutcome.SUCCESS:
            log.info("%s: %s", verb.capitalize(), operation.description)
        else:
            log.warning("%s of %s finished as %s", verb.capitalize(), operation.id, outcome.value)
        return outcome

    def _prune(self) -> None:
        cutoff = self._clock() - self._config.max_history_age_ms
        self._history = [op for op in self._history if op.timestamp > cutoff]
        if len(self._history) > self._config.max_history_size:
            evicted = len(self._history) - self._config.max_history_size
            self._history = self._history[evicted:]
        self._redo = [op for op in self._redo if op.timestamp > cutoff]


# ---------------------------------------------------------------------------
# Descriptions
# ---------------------------------------------------------------------------

def _plural(count: int) -> str:
    return "task" if count == 1 else f"{count} tasks"


def move_description(task_count: int, destination: str) -> str:
    return f"Moved {_plural(task_count)} to {destination}"


def status_description(task_count: int, status: Status) -> str:
    return f"Changed {_plural(task_count)} to {status.label}"


def attribute_description(task_count: int, name: str, removed: bool = False) -> str:
    verb = "Removed" if removed else "Set"
    return f"{verb} {name} on {_plural(task_count)}"


def tag_description(task_count: int, tag: str, removed: bool = False) -> str:
    if removed:
        return f"Removed #{tag} from {_plural(task_count)}"
    return f"Tagged {_plural(task_count)} with #{tag}"
