"""
Checkbox marker ↔ Status mapping and shorthand attribute expansion.

Unknown markers are tolerated: anything not listed decodes to TODO.
"""

from datetime import date
from typing import Callable, Dict, Optional

from taskvault.models.task import AttributeValue, Status
from taskvault.parsers.line_grammar import (
    AttributeParts,
    LineParts,
    parse_attributes,
    parse_line,
    serialize_attributes,
    serialize_line,
)
from taskvault.utils.dates import resolve_date_keyword

PRIORITY_KEYWORDS = ("critical", "high", "medium", "low", "lowest")

_MARK_TO_STATUS: Dict[str, Status] = {
    " ": Status.TODO,
    "x": Status.COMPLETE,
    ">": Status.IN_PROGRESS,
    "-": Status.CANCELED,
    "c": Status.CANCELED,
    "]": Status.CANCELED,
    "!": Status.ATTENTION_REQUIRED,
    "d": Status.DELEGATED,
}

_STATUS_TO_MARK: Dict[Status, str] = {
    Status.TODO: " ",
    Status.COMPLETE: "x",
    Status.IN_PROGRESS: ">",
    Status.CANCELED: "-",
    Status.ATTENTION_REQUIRED: "!",
    Status.DELEGATED: "d",
}


def mark_to_status(mark: Optional[str]) -> Status:
    return _MARK_TO_STATUS.get((mark or "").lower(), Status.TODO)


def status_to_mark(status: Status) -> str:
    return _STATUS_TO_MARK[status]


def expand_shorthand(
    attributes: Dict[str, AttributeValue],
    *,
    due_attribute: str = "due",
    today: Optional[date] = None,
) -> Dict[str, AttributeValue]:
    """
    Rewrite shorthand attributes into their canonical form.

    - ``{"friday": True}``  → ``{due_attribute: "<next friday>"}``
    - ``{"high": True}``    → ``{"priority": "high"}``
    - ``{due_attribute: "tomorrow"}`` → ``{due_attribute: "<ISO date>"}``

    Other boolean keys are kept as ``True``. The input is not modified, and
    expanding an already expanded mapping returns an equal mapping.
    """
    expanded: Dict[str, AttributeValue] = {}
    for key, value in attributes.items():
        if value is True:
            if key in PRIORITY_KEYWORDS:
                expanded["priority"] = key
                continue
            resolved = resolve_date_keyword(key, today)
            if resolved is not None:
                expanded[due_attribute] = resolved
                continue
        elif key == due_attribute and isinstance(value, str):
            resolved = resolve_date_keyword(value, today)
            if resolved is not None:
                value = resolved
        expanded[key] = value
    return expanded


def convert_attributes(
    line: str,
    *,
    due_attribute: str = "due",
    today: Optional[date] = None,
    edit: Optional[Callable[[LineParts, AttributeParts], None]] = None,
) -> str:
    """
    Return ``line`` with its shorthand attributes expanded in place.

    ``edit`` runs on the expanded parts before the line is re-serialised;
    this is how every task mutation rewrites its line.
    """
    parts = parse_line(line)
    attrs = parse_attributes(parts.body)
    attrs.attributes = expand_shorthand(attrs.attributes, due_attribute=due_attribute, today=today)
    if edit is not None:
        edit(parts, attrs)
    parts.body = serialize_attributes(attrs)
    return serialize_line(parts)
