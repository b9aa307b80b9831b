"""
Core task data models.

A Task is rebuilt from scratch every time its document is parsed; nothing
about a Task object survives a re-parse. The only identity callers may carry
across a mutation/re-parse cycle is the derived ``fingerprint``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Dict, List, Optional, Union

if TYPE_CHECKING:
    from taskvault.models.document import Document

AttributeValue = Union[str, bool]


class Status(IntEnum):
    ATTENTION_REQUIRED = 0
    TODO = 1
    IN_PROGRESS = 2
    DELEGATED = 3
    COMPLETE = 4
    CANCELED = 5

    @property
    def is_closed(self) -> bool:
        """True for statuses that carry a completion date."""
        return self in (Status.COMPLETE, Status.CANCELED)

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @classmethod
    def from_label(cls, label: str) -> "Status":
        """Accept "in-progress", "in_progress" or "IN_PROGRESS"."""
        try:
            return cls[label.strip().upper().replace("-", "_")]
        except KeyError:
            raise ValueError(f"Unknown status '{label}'") from None


def task_fingerprint(document_id: str, line: Optional[int], text: str) -> str:
    """
    Build the fingerprint ``documentId-line-text``.

    A missing line counts as 0, so two line-less tasks with the same text in
    the same document share a fingerprint.
    """
    return f"{document_id}-{line or 0}-{text}"


@dataclass
class Task:
    """A single checkbox item and the subtasks nested beneath it."""

    text: str
    status: Status = Status.TODO
    attributes: Dict[str, AttributeValue] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    document: Optional["Document"] = field(default=None, repr=False)
    line: Optional[int] = None
    subtasks: List[Task] = field(default_factory=list)
    # Checkbox character as written, e.g. "c" for a task shown as canceled
    mark: Optional[str] = None

    @property
    def fingerprint(self) -> str:
        document_id = self.document.id if self.document is not None else ""
        return task_fingerprint(document_id, self.line, self.text)

    @property
    def is_ignored(self) -> bool:
        """True if the owning document asks to be hidden from default views."""
        if self.document is None:
            return False
        return bool(self.document.should_ignore())

    def all_tasks(self) -> List[Task]:
        """Return this task and all descendants as a flat list."""
        result = [self]
        for child in self.subtasks:
            result.extend(child.all_tasks())
        return result


@dataclass
class ParseResult:
    """Outcome of parsing one line of a document."""

    line_number: int
    is_task: bool
    indent_level: int = 0
    task: Optional[Task] = None


@dataclass
class DocumentEntry:
    """The top-level tasks of one tracked document."""

    document: "Document"
    tasks: List[Task] = field(default_factory=list)

    @property
    def document_id(self) -> str:
        return self.document.id

    def all_tasks(self) -> List[Task]:
        result: List[Task] = []
        for task in self.tasks:
            result.extend(task.all_tasks())
        return result
