"""
Undo-recording wrapper around MutationEngine.

Before each edit, the previous value of everything the edit touches is
captured per task (attributes, marker, tags). The recorded inverse resolves
the tasks again by fingerprint, since the Task objects it saw will have been
replaced by a re-parse, and restores those values in one write per document.

The checkbox character is restored as it was written (``[c]`` stays
``[c]``). The rest of the line comes back in canonical form, so a bare
``@flag`` shortcut is restored as ``[flag:: true]``.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from taskvault.models.task import AttributeValue, Status, Task
from taskvault.operations.mutations import (
    EditFn,
    LineEdit,
    MutationEngine,
    MutationResult,
    add_tag_edit,
    chain,
    normalize_tag,
    remove_tag_edit,
    set_attribute_edit,
    set_mark_edit,
)
from taskvault.operations.undo import (
    UndoLedger,
    UndoOutcome,
    UndoResult,
    attribute_description,
    move_description,
    status_description,
    tag_description,
)

log = logging.getLogger(__name__)

TaskFinder = Callable[[str], Optional[Task]]


@dataclass
class TaskChange:
    """What one task looked like before an edit, limited to the touched parts."""

    fingerprint: str
    previous_attributes: Dict[str, Optional[AttributeValue]] = field(default_factory=dict)
    previous_status: Optional[Status] = None
    previous_mark: Optional[str] = None
    tags_added: List[str] = field(default_factory=list)
    tags_removed: List[str] = field(default_factory=list)

    def inverse_edit(self) -> EditFn:
        edits = [
            set_attribute_edit(k, v, validate=False) for k, v in self.previous_attributes.items()
        ]
        if self.previous_status is not None:
            edits.append(set_mark_edit(self.previous_status, self.previous_mark))
        edits.extend(remove_tag_edit(t) for t in self.tags_added)
        edits.extend(add_tag_edit(t) for t in self.tags_removed)
        return chain(*edits)


def snapshot(
    task: Task,
    attributes: Iterable[str] = (),
    status: bool = False,
    add_tags: Iterable[str] = (),
    remove_tags: Iterable[str] = (),
) -> TaskChange:
    return TaskChange(
        fingerprint=task.fingerprint,
        previous_attributes={name: task.attributes.get(name) for name in attributes},
        previous_status=task.status if status else None,
        previous_mark=task.mark if status else None,
        tags_added=[t for t in map(normalize_tag, add_tags) if t and t not in task.tags],
        tags_removed=[t for t in map(normalize_tag, remove_tags) if t in task.tags],
    )


class UndoableMutations:
    """
    Same operations as MutationEngine, over lists of tasks, with history.

    Every method returns the engine's MutationResult. Only tasks that were
    actually rewritten end up in the recorded operation.
    """

    def __init__(self, engine: MutationEngine, ledger: UndoLedger, find_task: TaskFinder) -> None:
        self.engine = engine
        self.ledger = ledger
        self._find_task = find_task

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def set_attribute(
        self, tasks: Sequence[Task], name: str, value: Optional[AttributeValue]
    ) -> MutationResult:
        removed = value is None or value is False
        return await self._run(
            tasks,
            set_attribute_edit(name, value),
            lambda t: snapshot(t, attributes=[name]),
            lambda n: attribute_description(n, name, removed=removed),
        )

    async def remove_attribute(self, tasks: Sequence[Task], name: str) -> MutationResult:
        return await self.set_attribute(tasks, name, None)

    async def add_tag(self, tasks: Sequence[Task], tag: str) -> MutationResult:
        return await self._run(
            tasks,
            add_tag_edit(tag),
            lambda t: snapshot(t, add_tags=[tag]),
            lambda n: tag_description(n, normalize_tag(tag)),
        )

    async def remove_tag(self, tasks: Sequence[Task], tag: str) -> MutationResult:
        return await self._run(
            tasks,
            remove_tag_edit(tag),
            lambda t: snapshot(t, remove_tags=[tag]),
            lambda n: tag_description(n, normalize_tag(tag), removed=True),
        )

    async def set_status(self, tasks: Sequence[Task], status: Status) -> MutationResult:
        completed = self.engine.completed_attribute
        return await self._run(
            tasks,
            self.engine.status_edit(status),
            lambda t: snapshot(t, attributes=[completed], status=True),
            lambda n: status_description(n, status),
        )

    async def move(
        self,
        tasks: Sequence[Task],
        due: Optional[str],
        tag: Optional[str] = None,
        status: Optional[Status] = None,
        tags_to_remove: Iterable[str] = (),
    ) -> MutationResult:
        tags_to_remove = tuple(tags_to_remove)
        attributes = [self.engine.due_attribute]
        if status is not None:
            attributes.append(self.engine.completed_attribute)
        return await self._run(
            tasks,
            self.engine.move_edit(due, tag, status, tags_to_remove),
            lambda t: snapshot(
                t,
                attributes=attributes,
                status=status is not None,
                add_tags=[tag] if tag else [],
                remove_tags=tags_to_remove,
            ),
            lambda n: move_description(n, due or "no date"),
        )

    async def normalize(self, tasks: Sequence[Task]) -> MutationResult:
        """Canonicalise task lines. Not recorded: the original shorthand is not kept."""
        return await self.engine.apply_edits([LineEdit(t, chain()) for t in tasks])

    async def undo(self) -> Optional[UndoResult]:
        return await self.ledger.undo()

    async def redo(self) -> Optional[UndoResult]:
        return await self.ledger.redo()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(
        self,
        tasks: Sequence[Task],
        edit: EditFn,
        capture: Callable[[Task], TaskChange],
        describe: Callable[[int], str],
    ) -> MutationResult:
        before = [(task, capture(task)) for task in tasks if task.line is not None]
        result = await self.engine.apply_edits([LineEdit(t, edit) for t in tasks])

        updated_ids = {id(t) for t in result.updated}
        changes = [change for task, change in before if id(task) in updated_ids]
        if changes:
            self.ledger.record(
                describe(len(changes)),
                lambda: self._apply_by_fingerprint([(c.fingerprint, c.inverse_edit()) for c in changes]),
                reapply=lambda: self._apply_by_fingerprint([(c.fingerprint, edit) for c in changes]),
                changes=changes,
            )
        return result

    async def _apply_by_fingerprint(self, edits: Sequence[Tuple[str, EditFn]]) -> UndoOutcome:
        line_edits: List[LineEdit] = []
        missing = 0
        for fingerprint, edit in edits:
            task = self._find_task(fingerprint)
            if task is None or task.line is None:
                log.warning("Cannot resolve task %r for undo", fingerprint)
                missing += 1
                continue
            line_edits.append(LineEdit(task, edit))

        result = await self.engine.apply_edits(line_edits)
        succeeded = len(result.updated)
        return UndoOutcome.from_counts(succeeded, missing + len(line_edits) - succeeded)
