"""
Exception hierarchy for taskvault.

Every error carries a severity tier and a context dict so that the service
layer can render a structured payload without inspecting exception types.

    StaleTaskError         a task's line no longer resolves (recoverable)
    ParseError             a document could not be read/parsed (recoverable)
    DocumentReadError      read of a document failed during a mutation
    DocumentWriteError     write of a document failed during a mutation
    IndexConsistencyError  index and notification stream disagree (fatal)
    UndoConfigError        invalid undo configuration
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

ErrorTier = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"]


class TaskVaultError(Exception):
    """Base class for all taskvault errors."""

    code = "taskvault_error"

    def __init__(
        self,
        message: str,
        tier: ErrorTier = "MEDIUM",
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tier = tier
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "tier": self.tier,
            "details": self.context,
        }


class StaleTaskError(TaskVaultError):
    """The task's line number does not resolve against the current text."""

    code = "stale_task"

    def __init__(self, message: str, document_id: str, line: int) -> None:
        super().__init__(message, "MEDIUM", {"document_id": document_id, "line": line})
        self.document_id = document_id
        self.line = line


class ParseError(TaskVaultError):
    code = "parse_failed"

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        line: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(
            message, "MEDIUM", {**(context or {}), "document_id": document_id, "line": line}
        )
        self.document_id = document_id
        self.line = line


class FileOperationError(TaskVaultError):
    """A document read or write failed."""

    code = "file_operation_failed"

    def __init__(
        self,
        message: str,
        document_id: str,
        operation: Literal["read", "write"],
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(
            message, "HIGH", {**(context or {}), "document_id": document_id, "operation": operation}
        )
        self.document_id = document_id
        self.operation = operation


class DocumentReadError(FileOperationError):
    code = "read_failed"

    def __init__(self, message: str, document_id: str, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, document_id, "read", context)


class DocumentWriteError(FileOperationError):
    code = "write_failed"

    def __init__(self, message: str, document_id: str, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, document_id, "write", context)


class IndexConsistencyError(TaskVaultError):
    """The change-notification stream and the index have desynchronised."""

    code = "index_inconsistent"

    def __init__(self, message: str, document_id: str) -> None:
        super().__init__(message, "CRITICAL", {"document_id": document_id})
        self.document_id = document_id


class UndoConfigError(TaskVaultError):
    code = "undo_misconfigured"

    def __init__(self, message: str, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, "HIGH", context)
