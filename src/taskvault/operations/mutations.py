"""
Line-level task mutations written back to the owning document.

Every mutation follows the same cycle:

    1. re-read the document (never trust the indexed copy)
    2. resolve each task's ``line`` against the fresh text
    3. re-parse only that line, apply the change, re-serialise only that line
    4. splice the lines back together with the original EOL and write once

Edits are grouped by document, so a batch touching five tasks in two files
performs two reads and two writes. A failure in one document never stops the
others; batch calls report per-document failures in a MutationResult.

Tasks without a ``line`` (built programmatically, never parsed) are skipped.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from taskvault.errors import DocumentReadError, DocumentWriteError, StaleTaskError, TaskVaultError
from taskvault.models.document import Document
from taskvault.models.task import AttributeValue, Status, Task
from taskvault.parsers.document_parser import detect_eol
from taskvault.parsers.line_grammar import (
    AttributeParts,
    LineParts,
    check_attribute,
    check_tag,
    parse_line,
)
from taskvault.parsers.status_codec import convert_attributes, mark_to_status, status_to_mark

log = logging.getLogger(__name__)

EditFn = Callable[[LineParts, AttributeParts], None]


@dataclass
class LineEdit:
    """A change to apply to the line a task was parsed from."""

    task: Task
    apply: EditFn


@dataclass
class MutationResult:
    """Outcome of a batch: tasks rewritten, and failures keyed by document id."""

    updated: List[Task] = field(default_factory=list)
    failures: Dict[str, TaskVaultError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("#")


# ---------------------------------------------------------------------------
# Edit builders
# ---------------------------------------------------------------------------

def set_attribute_edit(
    name: str, value: Optional[AttributeValue], validate: bool = True
) -> EditFn:
    """
    ``None`` or ``False`` removes the attribute.

    Raises ValueError when ``validate`` is set and the pair would not read
    back from the line. Restoring a value read from a line skips the check.
    """
    if validate and value is not None and value is not False:
        name = check_attribute(name, value)

    def apply(parts: LineParts, attrs: AttributeParts) -> None:
        if value is None or value is False:
            attrs.attributes.pop(name, None)
        else:
            attrs.attributes[name] = value

    return apply


def add_tag_edit(tag: str) -> EditFn:
    """Raises ValueError if ``tag`` would not read back as a tag."""
    tag = check_tag(tag)

    def apply(parts: LineParts, attrs: AttributeParts) -> None:
        if tag not in attrs.tags:
            attrs.tags.append(tag)

    return apply


def remove_tag_edit(tag: str) -> EditFn:
    tag = normalize_tag(tag)

    def apply(parts: LineParts, attrs: AttributeParts) -> None:
        if tag in attrs.tags:
            attrs.tags.remove(tag)

    return apply


def set_mark_edit(status: Status, mark: Optional[str] = None) -> EditFn:
    """Change the checkbox marker only. ``mark`` keeps a non-canonical marker such as ``c``."""
    if mark is None or mark_to_status(mark) is not status:
        mark = status_to_mark(status)

    def apply(parts: LineParts, attrs: AttributeParts) -> None:
        parts.checkbox = mark

    return apply


def chain(*edits: EditFn) -> EditFn:
    def apply(parts: LineParts, attrs: AttributeParts) -> None:
        for edit in edits:
            edit(parts, attrs)

    return apply


# ---------------------------------------------------------------------------
# MutationEngine
# ---------------------------------------------------------------------------

class MutationEngine:
    """
    Applies semantic task edits as minimal text rewrites.

    Single-task primitives return the new document text (or None when the
    task has no line) and raise on failure. Batch variants never raise for
    per-document problems; they return a MutationResult instead.

    Tags and attributes that would not read back from the line (``#2024``,
    ``[note:: see [x]]``) are rejected with ValueError before anything is read.
    """

    def __init__(
        self,
        due_attribute: str = "due",
        completed_attribute: str = "completed",
        today: Callable[[], date] = date.today,
    ) -> None:
        self.due_attribute = due_attribute
        self.completed_attribute = completed_attribute
        self._today = today

    # ------------------------------------------------------------------
    # Edit builders that depend on configuration
    # ------------------------------------------------------------------

    def status_edit(self, status: Status) -> EditFn:
        """Marker plus completion date: stamped when closing, dropped when reopening."""
        completed = self.completed_attribute
        today = self._today().isoformat()

        def apply(parts: LineParts, attrs: AttributeParts) -> None:
            parts.checkbox = status_to_mark(status)
            if status.is_closed:
                attrs.attributes.setdefault(completed, today)
            else:
                attrs.attributes.pop(completed, None)

        return apply

    def move_edit(
        self,
        due: Optional[str],
        tag: Optional[str] = None,
        status: Optional[Status] = None,
        tags_to_remove: Iterable[str] = (),
    ) -> EditFn:
        edits = [set_attribute_edit(self.due_attribute, due)]
        edits.extend(remove_tag_edit(t) for t in tags_to_remove)
        if tag:
            edits.append(add_tag_edit(tag))
        if status is not None:
            edits.append(self.status_edit(status))
        return chain(*edits)

    # ------------------------------------------------------------------
    # Single-task primitives
    # ------------------------------------------------------------------

    async def update_attribute(
        self, task: Task, name: str, value: Optional[AttributeValue]
    ) -> Optional[str]:
        return await self._apply_one(task, set_attribute_edit(name, value))

    async def remove_attribute(self, task: Task, name: str) -> Optional[str]:
        return await self._apply_one(task, set_attribute_edit(name, None))

    async def append_tag(self, task: Task, tag: str) -> Optional[str]:
        return await self._apply_one(task, add_tag_edit(tag))

    async def remove_tag(self, task: Task, tag: str) -> Optional[str]:
        return await self._apply_one(task, remove_tag_edit(tag))

    async def set_status(self, task: Task, status: Status) -> Optional[str]:
        return await self._apply_one(task, self.status_edit(status))

    async def normalize(self, task: Task) -> Optional[str]:
        """Rewrite the task line in canonical form with shorthands expanded."""
        return await self._apply_one(task, chain())

    # ------------------------------------------------------------------
    # Batch variants
    # ------------------------------------------------------------------

    async def batch_update_attribute(
        self, tasks: Sequence[Task], name: str, value: Optional[AttributeValue]
    ) -> MutationResult:
        return await self.apply_edits([LineEdit(t, set_attribute_edit(name, value)) for t in tasks])

    async def batch_remove_attribute(self, tasks: Sequence[Task], name: str) -> MutationResult:
        return await self.apply_edits([LineEdit(t, set_attribute_edit(name, None)) for t in tasks])

    async def batch_append_tag(self, tasks: Sequence[Task], tag: str) -> MutationResult:
        return await self.apply_edits([LineEdit(t, add_tag_edit(tag)) for t in tasks])

    async def batch_remove_tag(self, tasks: Sequence[Task], tag: str) -> MutationResult:
        return await self.apply_edits([LineEdit(t, remove_tag_edit(tag)) for t in tasks])

    async def batch_set_status(self, tasks: Sequence[Task], status: Status) -> MutationResult:
        edit = self.status_edit(status)
        return await self.apply_edits([LineEdit(t, edit) for t in tasks])

    async def move(
        self,
        tasks: Sequence[Task],
        due: Optional[str],
        tag: Optional[str] = None,
        status: Optional[Status] = None,
        tags_to_remove: Iterable[str] = (),
    ) -> MutationResult:
        """
        Reschedule tasks: set the due date, optionally add a tag, drop tags
        and change status, all in one write per document.
        """
        edit = self.move_edit(due, tag, status, tuple(tags_to_remove))
        return await self.apply_edits([LineEdit(t, edit) for t in tasks])

    async def apply_edits(self, edits: Sequence[LineEdit]) -> MutationResult:
        """Apply arbitrary line edits, one read-modify-write per document."""
        result = MutationResult()
        for document, doc_edits in self._group_by_document(edits):
            try:
                await self.rewrite(document, doc_edits)
            except TaskVaultError as e:
                log.error("Mutation failed for %s: %s", document.id, e)
                result.failures[document.id] = e
                continue
            result.updated.extend(edit.task for edit in doc_edits)
        return result

    # ------------------------------------------------------------------
    # Read-modify-write
    # ------------------------------------------------------------------

    async def rewrite(self, document: Document, edits: Sequence[LineEdit]) -> str:
        """
        Apply ``edits`` to one document and write it back.

        Returns the new text. Nothing is written if any edit is stale.

        Raises:
            DocumentReadError / DocumentWriteError: storage failed
            StaleTaskError: a task's line no longer resolves to a task line
        """
        try:
            content = await document.get_content()
        except Exception as e:
            raise DocumentReadError(
                f"Failed to read {document.path}", document.id, {"original_error": str(e)}
            ) from e

        eol = detect_eol(content)
        lines = content.split(eol)
        for edit in edits:
            line_number = edit.task.line
            lines[line_number] = self._rewrite_line(document.id, lines, line_number, edit.apply)

        new_content = eol.join(lines)
        if new_content == content:
            log.debug("No change to %s", document.id)
            return content

        try:
            await document.set_content(new_content)
        except Exception as e:
            raise DocumentWriteError(
                f"Failed to write {document.path}", document.id, {"original_error": str(e)}
            ) from e
        log.debug("Rewrote %d line(s) in %s", len(edits), document.id)
        return new_content

    def _rewrite_line(
        self, document_id: str, lines: List[str], line_number: int, apply: EditFn
    ) -> str:
        if not 0 <= line_number < len(lines):
            raise StaleTaskError(
                f"Line {line_number} is out of range ({len(lines)} lines) in {document_id}",
                document_id,
                line_number,
            )
        line = lines[line_number]
        if not parse_line(line).is_task:
            raise StaleTaskError(
                f"Line {line_number} of {document_id} is no longer a task", document_id, line_number
            )
        return convert_attributes(
            line, due_attribute=self.due_attribute, today=self._today(), edit=apply
        )

    async def _apply_one(self, task: Task, apply: EditFn) -> Optional[str]:
        if task.line is None or task.document is None:
            return None
        return await self.rewrite(task.document, [LineEdit(task, apply)])

    def _group_by_document(
        self, edits: Sequence[LineEdit]
    ) -> List[Tuple[Document, List[LineEdit]]]:
        """Group edits by document id, keeping first-seen document order."""
        groups: Dict[str, Tuple[Document, List[LineEdit]]] = {}
        for edit in edits:
            task = edit.task
            if task.line is None or task.document is None:
                log.debug("Skipping task without a line: %r", task.text)
                continue
            groups.setdefault(task.document.id, (task.document, []))[1].append(edit)
        return list(groups.values())
