"""
Line-level grammar for task lines.

Two layers:

    parse_line(line)            → LineParts        (indentation / list marker / checkbox / body)
    serialize_line(parts)       → line             exact inverse of parse_line

    parse_attributes(body)      → AttributeParts   (text / attributes / tags)
    serialize_attributes(parts) → body             canonical form

Canonical body form::

    <text> #tag1 #tag2 [key:: value] [other:: value]

Tags come first, then attribute brackets in insertion order. Re-parsing a
canonical body yields the same AttributeParts, so serialize(parse(x)) is a
fixed point after one pass.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from taskvault.models.task import AttributeValue

# indentation, optional list marker (with its trailing gap), optional checkbox
# (only after a list marker, only when followed by whitespace and some text)
_LINE_RE = re.compile(
    r"^(?P<indent>[ \t]*)"
    r"(?:(?P<marker>[*+-]|\d+[.)])(?P<marker_gap>[ \t]+)"
    r"(?:\[(?P<check>.?)\](?P<check_gap>[ \t]+)(?=\S))?)?"
    r"(?P<body>.*)$"
)

# One scanner for every inline token so that a hashtag inside an attribute
# value is consumed as part of the attribute, not as a tag.
#   [key:: value]   dataview-style attribute
#   @key / @key(v)  shortcut attribute
#   #tag            hashtag (must start with a letter, so "#123" is not a tag)
_TAG = r"[^\W\d_][\w-]*"
_TOKEN_RE = re.compile(
    r"\[(?P<key>[^:\[\]]+)::(?P<value>[^\]]+)\]"
    r"|(?<![\w\[])@(?P<short>\w+)(?:\((?P<short_value>[^)]*)\))?(?![\w(])"
    rf"|(?<![\w#&/])#(?P<tag>{_TAG})"
)
_TAG_RE = re.compile(_TAG)

# Regions whose content is never tokenised
_MASK_RE = re.compile(r"\[\[.*?\]\]|`[^`]*`")

TAB_WIDTH = 4


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class LineParts:
    """A line split into its structural pieces. Gaps are kept verbatim."""

    indentation: str = ""
    list_marker: str = ""
    checkbox: Optional[str] = None
    body: str = ""
    marker_gap: str = " "
    checkbox_gap: str = " "

    @property
    def is_task(self) -> bool:
        return self.checkbox is not None


@dataclass
class AttributeParts:
    """A task body split into free text, attributes and tags."""

    text: str = ""
    attributes: Dict[str, AttributeValue] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Line layer
# ---------------------------------------------------------------------------

def indentation_width(indentation: str) -> int:
    """Spaces count 1, tabs count TAB_WIDTH."""
    return indentation.count(" ") + indentation.count("\t") * TAB_WIDTH


def parse_line(line: str) -> LineParts:
    m = _LINE_RE.match(line)
    if m is None:
        # Only reachable for strings containing a newline
        return LineParts(body=line)
    return LineParts(
        indentation=m.group("indent"),
        list_marker=m.group("marker") or "",
        checkbox=m.group("check"),
        body=m.group("body"),
        marker_gap=m.group("marker_gap") or " ",
        checkbox_gap=m.group("check_gap") or " ",
    )


def serialize_line(parts: LineParts) -> str:
    out = parts.indentation
    if parts.list_marker:
        out += parts.list_marker + parts.marker_gap
        if parts.checkbox is not None:
            out += f"[{parts.checkbox}]{parts.checkbox_gap}"
    return out + parts.body


# ---------------------------------------------------------------------------
# Body layer
# ---------------------------------------------------------------------------

def _mask(text: str) -> str:
    """Blank out wiki-links and inline code, keeping positions aligned."""
    return _MASK_RE.sub(lambda m: " " * len(m.group()), text)


def parse_attributes(body: str) -> AttributeParts:
    attributes: Dict[str, AttributeValue] = {}
    tags: List[str] = []
    removed = []

    # Match on the masked copy, read values from the original
    for m in _TOKEN_RE.finditer(_mask(body)):
        if m.group("key") is not None:
            key = body[m.start("key"):m.end("key")].strip()
            if not key:
                continue
            attributes[key] = body[m.start("value"):m.end("value")].strip()
        elif m.group("short") is not None:
            key = m.group("short").lower()
            if m.group("short_value") is None:
                attributes[key] = True
            else:
                attributes[key] = body[m.start("short_value"):m.end("short_value")].strip()
        else:
            tag = m.group("tag")
            if tag not in tags:
                tags.append(tag)
        removed.append(m.span())

    if not removed:
        return AttributeParts(text=body, attributes=attributes, tags=tags)

    pieces = []
    cursor = 0
    for start, end in removed:
        pieces.append(body[cursor:start])
        cursor = end
    pieces.append(body[cursor:])
    text = re.sub(r"\s+", " ", "".join(pieces)).strip()

    return AttributeParts(text=text, attributes=attributes, tags=tags)


def attribute_to_string(key: str, value: AttributeValue) -> str:
    if isinstance(value, bool):
        return f"[{key}:: {'true' if value else 'false'}]"
    return f"[{key}:: {value}]"


def serialize_attributes(parts: AttributeParts) -> str:
    pieces = [parts.text] if parts.text else []
    pieces.extend(f"#{tag}" for tag in parts.tags)
    pieces.extend(attribute_to_string(k, v) for k, v in parts.attributes.items())
    return " ".join(pieces)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def check_tag(tag: str) -> str:
    """
    Return ``tag`` without its leading ``#``.

    Raises ValueError if ``#tag`` would not parse back as the same tag.
    """
    name = tag.strip().lstrip("#")
    if not name:
        raise ValueError("Tag must not be empty")
    if not _TAG_RE.fullmatch(name):
        raise ValueError(
            f"Invalid tag '{tag}': must start with a letter and contain only "
            "letters, digits, '_' or '-'"
        )
    return name


def check_attribute(name: str, value: AttributeValue) -> str:
    """
    Return the trimmed attribute name.

    Raises ValueError unless ``[name:: value]`` parses back to exactly this
    name and (trimmed) value.
    """
    key = name.strip()
    if not key:
        raise ValueError("Attribute name must not be empty")
    if any(c in key for c in ":[]`\r\n"):
        raise ValueError(f"Invalid attribute name '{name}': ':', '[', ']' and '`' are not allowed")
    if isinstance(value, bool):
        return key
    if "\r" in value or "\n" in value:
        raise ValueError(f"Invalid value for attribute '{key}': line breaks are not allowed")
    parsed = parse_attributes(attribute_to_string(key, value))
    if parsed.text or parsed.tags or parsed.attributes != {key: value.strip()}:
        raise ValueError(f"Invalid value for attribute '{key}': {value!r} would not read back")
    return key
