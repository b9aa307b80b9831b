"""
Minimal YAML front-matter reader.

Only flat ``key: value`` pairs are needed (the "ignore this document" flag),
so no YAML library is involved.
"""

from typing import Dict, List, Optional, Tuple

IGNORE_KEY = "tasks-ignore"
_TRUE_VALUES = ("true", "yes", "on")


def extract_frontmatter(lines: List[str]) -> Tuple[List[str], int]:
    """
    Extract YAML front matter from the beginning of a document.

    Returns:
        (frontmatter_lines, body_start_index)
        frontmatter_lines excludes the --- delimiters.
        If there is no front matter, returns ([], 0).
    """
    i = 0
    # Skip leading blank lines
    while i < len(lines) and not lines[i].strip():
        i += 1

    if i >= len(lines) or lines[i].strip() != "---":
        return [], 0

    start = i + 1
    for end in range(start, len(lines)):
        if lines[end].strip() == "---":
            return lines[start:end], end + 1

    # Never closed, so not front matter
    return [], 0


def parse_frontmatter(content: str) -> Dict[str, str]:
    """Flat ``key: value`` pairs from the front matter; nested keys are skipped."""
    fm_lines, _ = extract_frontmatter(content.splitlines())
    values: Dict[str, str] = {}
    for line in fm_lines:
        if not line or line[0].isspace() or ":" not in line:
            continue
        key, _, value = line.partition(":")
        values[key.strip()] = value.strip().strip("'\"")
    return values


def read_ignore_flag(content: str) -> Optional[bool]:
    """True/False if the document sets ``tasks-ignore``, else None."""
    value = parse_frontmatter(content).get(IGNORE_KEY)
    if value is None:
        return None
    return value.lower() in _TRUE_VALUES
