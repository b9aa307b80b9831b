"""
Whole-document parser.

Main API:
    parse_content(text, document)   → List[Task]          (top-level tasks)
    parse_document(document)        → List[Task]          (awaits get_content)
    parse_documents(documents)      → List[DocumentEntry] (one per document)

Fenced code blocks (```) are skipped entirely. Subtasks are attached by
indentation: a task becomes the child of the nearest preceding task with a
strictly smaller indent width. Tree assembly works on an arena of parse
results addressed by index; Task.subtasks lists are materialised once, at the
end of the scan.
"""

import asyncio
import logging
import time
from datetime import date
from typing import List, Optional, Sequence

from taskvault.errors import ParseError
from taskvault.models.document import Document
from taskvault.models.task import DocumentEntry, ParseResult, Task
from taskvault.parsers.line_grammar import indentation_width, parse_attributes, parse_line
from taskvault.parsers.status_codec import expand_shorthand, mark_to_status

log = logging.getLogger(__name__)


def detect_eol(content: str) -> str:
    return "\r\n" if "\r\n" in content else "\n"


def is_fence(line: str) -> bool:
    return line.strip().startswith("```")


# ---------------------------------------------------------------------------
# Line → ParseResult
# ---------------------------------------------------------------------------

def parse_task_line(
    line: str,
    line_number: int,
    *,
    due_attribute: str = "due",
    today: Optional[date] = None,
) -> ParseResult:
    """Parse a single line; ``task`` is set only for checkbox lines."""
    parts = parse_line(line)
    indent_level = indentation_width(parts.indentation)
    if not parts.is_task:
        return ParseResult(line_number=line_number, is_task=False, indent_level=indent_level)

    attrs = parse_attributes(parts.body)
    task = Task(
        text=attrs.text,
        status=mark_to_status(parts.checkbox),
        mark=parts.checkbox,
        attributes=expand_shorthand(attrs.attributes, due_attribute=due_attribute, today=today),
        tags=attrs.tags,
        line=line_number,
    )
    return ParseResult(line_number=line_number, is_task=True, indent_level=indent_level, task=task)


# ---------------------------------------------------------------------------
# Tree assembly
# ---------------------------------------------------------------------------

def _assemble_tree(results: List[ParseResult]) -> List[Task]:
    """
    Link task results into a tree and return the top-level tasks.

    ``results`` must contain task results only, in document order.
    """
    parent_of: List[Optional[int]] = [None] * len(results)
    children: List[List[int]] = [[] for _ in results]
    stack: List[int] = []

    for idx, current in enumerate(results):
        while stack and results[stack[-1]].indent_level >= current.indent_level:
            stack.pop()
        if stack:
            parent_of[idx] = stack[-1]
            children[stack[-1]].append(idx)
        stack.append(idx)

    for idx, result in enumerate(results):
        result.task.subtasks = [results[c].task for c in children[idx]]

    return [results[idx].task for idx in range(len(results)) if parent_of[idx] is None]


def _set_document(tasks: Sequence[Task], document: Optional[Document]) -> None:
    for task in tasks:
        task.document = document
        _set_document(task.subtasks, document)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_lines(
    lines: Sequence[str],
    *,
    due_attribute: str = "due",
    today: Optional[date] = None,
) -> List[ParseResult]:
    """Parse every line, emitting non-task placeholders for fenced regions."""
    results: List[ParseResult] = []
    inside_fence = False
    for number, line in enumerate(lines):
        if is_fence(line):
            inside_fence = not inside_fence
            results.append(ParseResult(line_number=number, is_task=False))
            continue
        if inside_fence:
            results.append(ParseResult(line_number=number, is_task=False))
            continue
        results.append(parse_task_line(line, number, due_attribute=due_attribute, today=today))
    return results


def parse_content(
    content: str,
    document: Optional[Document] = None,
    *,
    due_attribute: str = "due",
    today: Optional[date] = None,
) -> List[Task]:
    """
    Parse a document's text into its top-level tasks.

    Args:
        content: Full document text
        document: Handle stored on every task (and every nested subtask)
        due_attribute: Attribute that date shorthands expand into
        today: Reference date for shorthand resolution (defaults to today)
    """
    lines = content.split(detect_eol(content))
    results = parse_lines(lines, due_attribute=due_attribute, today=today)
    task_results = [r for r in results if r.is_task]
    top_level = _assemble_tree(task_results)
    _set_document(top_level, document)
    return top_level


async def parse_document(
    document: Document,
    *,
    due_attribute: str = "due",
) -> List[Task]:
    """Read a document and parse it. Read failures become ParseError."""
    try:
        content = await document.get_content()
    except Exception as e:
        raise ParseError(
            f"Failed to read document content: {document.path}",
            document_id=document.id,
            context={"original_error": str(e)},
        ) from e
    return parse_content(content, document, due_attribute=due_attribute)


async def parse_documents(
    documents: Sequence[Document],
    *,
    due_attribute: str = "due",
) -> List[DocumentEntry]:
    """
    Parse many documents. A document that fails is logged and contributes an
    empty entry so that the rest of the batch still loads.
    """

    async def _parse_one(document: Document) -> DocumentEntry:
        try:
            tasks = await parse_document(document, due_attribute=due_attribute)
        except Exception:
            log.exception("Failed to parse %s", document.path)
            tasks = []
        return DocumentEntry(document=document, tasks=tasks)

    start = time.monotonic()
    log.debug("Loading %d documents", len(documents))
    entries = await asyncio.gather(*(_parse_one(d) for d in documents))
    log.debug(
        "Loaded %d documents in %.0fms", len(entries), (time.monotonic() - start) * 1000
    )
    return list(entries)
