from .task import (
    AttributeValue,
    DocumentEntry,
    ParseResult,
    Status,
    Task,
    task_fingerprint,
)
from .document import Document

__all__ = [
    "AttributeValue",
    "Document",
    "DocumentEntry",
    "ParseResult",
    "Status",
    "Task",
    "task_fingerprint",
]
