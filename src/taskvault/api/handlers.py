"""
Task handler functions shared by MCP tools and REST API.

Core logic lives in handle_* functions (return dicts). Lookups that miss
return ``{"error": ...}``; invalid arguments raise ValueError. Mutations are
written to disk immediately and show up in the index once the watcher has
seen the change.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from taskvault.index.task_index import TaskIndex
from taskvault.models.task import Status, Task
from taskvault.operations.mutations import MutationResult
from taskvault.operations.undoable import UndoableMutations
from taskvault.parsers.line_grammar import check_attribute, check_tag
from taskvault.utils.dates import resolve_date_keyword

log = logging.getLogger(__name__)


def _task_to_dict(task: Task, include_subtasks: bool = True) -> dict:
    """Serialize a Task to a JSON-serializable dict."""
    d = {
        "fingerprint": task.fingerprint,
        "text": task.text,
        "status": task.status.label,
        "attributes": dict(task.attributes),
        "tags": list(task.tags),
        "document": task.document.id if task.document is not None else None,
        "line": task.line,
        "ignored": task.is_ignored,
    }
    if include_subtasks and task.subtasks:
        d["subtasks"] = [_task_to_dict(c, include_subtasks=True) for c in task.subtasks]
    return d


def _result_to_dict(result: MutationResult) -> dict:
    return {
        "updated": [t.fingerprint for t in result.updated],
        "failures": {doc_id: e.to_dict() for doc_id, e in result.failures.items()},
    }


def _parse_statuses(raw: Optional[str]) -> Optional[List[Status]]:
    if not raw:
        return None
    return [Status.from_label(part) for part in raw.split(",") if part.strip()]


def _resolve(index: TaskIndex, fingerprints: Sequence[str]) -> Tuple[List[Task], List[str]]:
    """Look tasks up by fingerprint; returns (found, missing)."""
    found: List[Task] = []
    missing: List[str] = []
    for fingerprint in fingerprints:
        task = index.find_by_fingerprint(fingerprint)
        if task is None:
            missing.append(fingerprint)
        else:
            found.append(task)
    return found, missing


def _not_found(missing: Sequence[str]) -> dict:
    return {"error": f"Task(s) not found: {', '.join(repr(m) for m in missing)}"}


def _resolve_due(due: Optional[str]) -> Optional[str]:
    """ISO date, date keyword or empty (clears). Anything else is rejected."""
    if not due:
        return None
    resolved = resolve_date_keyword(due)
    if resolved is None:
        raise ValueError(f"Unrecognised date '{due}'")
    return resolved


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def handle_task_list(
    index: TaskIndex,
    *,
    status: Optional[str] = None,
    tag: Optional[str] = None,
    document: Optional[str] = None,
    show_ignored: bool = False,
    include_subtasks: bool = False,
    limit: int = 200,
) -> List[dict]:
    """
    Filter the indexed tasks.

    ``include_subtasks`` searches nested tasks as well and returns them as
    separate entries; otherwise only top-level tasks are considered.
    """
    statuses = _parse_statuses(status)
    wanted_tag = tag.lstrip("#") if tag else None
    candidates = index.all_tasks() if include_subtasks else index.tasks

    results = []
    for task in candidates:
        if not show_ignored and task.is_ignored:
            continue
        if statuses is not None and task.status not in statuses:
            continue
        if wanted_tag and wanted_tag not in task.tags:
            continue
        if document and (task.document is None or task.document.id != document):
            continue
        results.append(_task_to_dict(task, include_subtasks=not include_subtasks))
        if len(results) >= limit:
            break
    return results


def handle_task_get(index: TaskIndex, *, fingerprint: str) -> dict:
    task = index.find_by_fingerprint(fingerprint)
    if task is None:
        return {"error": f"Task '{fingerprint}' not found"}
    return _task_to_dict(task, include_subtasks=True)


def handle_index_status(index: TaskIndex, mutations: UndoableMutations) -> Dict[str, Any]:
    ledger = mutations.ledger
    last = ledger.last_operation()
    return {
        **index.status(),
        "undo_enabled": ledger.enabled,
        "undo_history": ledger.history_size,
        "redo_history": ledger.redo_size,
        "last_operation": last.to_dict() if last else None,
    }


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def handle_task_set_status(
    index: TaskIndex, mutations: UndoableMutations, *, fingerprints: Sequence[str], status: str
) -> dict:
    new_status = Status.from_label(status)
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    return _result_to_dict(await mutations.set_status(tasks, new_status))


async def handle_task_set_attribute(
    index: TaskIndex,
    mutations: UndoableMutations,
    *,
    fingerprints: Sequence[str],
    name: str,
    value: str,
) -> dict:
    name = check_attribute(name, value)
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    return _result_to_dict(await mutations.set_attribute(tasks, name, value))


async def handle_task_remove_attribute(
    index: TaskIndex, mutations: UndoableMutations, *, fingerprints: Sequence[str], name: str
) -> dict:
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    return _result_to_dict(await mutations.remove_attribute(tasks, name.strip()))


async def handle_task_add_tag(
    index: TaskIndex, mutations: UndoableMutations, *, fingerprints: Sequence[str], tag: str
) -> dict:
    check_tag(tag)
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    return _result_to_dict(await mutations.add_tag(tasks, tag))


async def handle_task_remove_tag(
    index: TaskIndex, mutations: UndoableMutations, *, fingerprints: Sequence[str], tag: str
) -> dict:
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    return _result_to_dict(await mutations.remove_tag(tasks, tag))


async def handle_task_move(
    index: TaskIndex,
    mutations: UndoableMutations,
    *,
    fingerprints: Sequence[str],
    due: Optional[str],
    tag: Optional[str] = None,
    status: Optional[str] = None,
    remove_tags: Optional[str] = None,
) -> dict:
    resolved_due = _resolve_due(due)
    if tag:
        check_tag(tag)
    new_status = Status.from_label(status) if status else None
    tags_to_remove = [t.strip() for t in (remove_tags or "").split(",") if t.strip()]
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    result = await mutations.move(
        tasks, resolved_due, tag=tag or None, status=new_status, tags_to_remove=tags_to_remove
    )
    return _result_to_dict(result)


async def handle_task_normalize(
    index: TaskIndex, mutations: UndoableMutations, *, fingerprints: Sequence[str]
) -> dict:
    tasks, missing = _resolve(index, fingerprints)
    if missing:
        return _not_found(missing)
    return _result_to_dict(await mutations.normalize(tasks))


async def handle_undo(mutations: UndoableMutations) -> dict:
    result = await mutations.undo()
    if result is None:
        return {"error": "Nothing to undo"}
    return {"description": result.operation.description, "outcome": result.outcome.value}


async def handle_redo(mutations: UndoableMutations) -> dict:
    result = await mutations.redo()
    if result is None:
        return {"error": "Nothing to redo"}
    return {"description": result.operation.description, "outcome": result.outcome.value}
