"""
Filesystem-backed Document.

Reads and writes go through aiofiles so that document I/O never blocks the
event loop. ``newline=""`` keeps CRLF files byte-for-byte intact.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

import aiofiles

from taskvault.storage.frontmatter import read_ignore_flag

log = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


class FileDocument:
    """
    A Markdown file inside the vault.

    ``id`` is the vault-relative POSIX path, e.g. ``"projects/home.md"``.
    """

    def __init__(self, path: Path, vault_root: Path) -> None:
        self._path = Path(path)
        self._vault_root = Path(vault_root)
        self.id = self._path.relative_to(self._vault_root).as_posix()
        self._ignore: Optional[bool] = None

    @property
    def path(self) -> str:
        return str(self._path)

    def is_in_folder(self, folder: str) -> bool:
        prefix = folder.replace("\\", "/").strip("/")
        if not prefix:
            return True
        return self.id.startswith(prefix + "/")

    def should_ignore(self) -> Optional[bool]:
        """The ``tasks-ignore`` front-matter flag as of the last read."""
        return self._ignore

    async def get_content(self) -> str:
        async with aiofiles.open(self._path, "r", encoding="utf-8", newline="") as f:
            content = await f.read()
        self._ignore = read_ignore_flag(content)
        return content

    async def set_content(self, text: str) -> None:
        async with aiofiles.open(self._path, "w", encoding="utf-8", newline="") as f:
            await f.write(text)
        self._ignore = read_ignore_flag(text)
        log.debug("Wrote %s (%d chars)", self.id, len(text))

    def __repr__(self) -> str:
        return f"FileDocument({self.id!r})"


def scan_vault(vault_root: Path, exclude_dirs: Set[str]) -> List[Path]:
    """Return every Markdown file under vault_root, skipping excluded directories."""
    found: List[Path] = []
    for path in sorted(vault_root.rglob(f"*{DOCUMENT_SUFFIX}")):
        if not path.is_file():
            continue
        rel = path.relative_to(vault_root)
        # Check if any parent component is excluded
        if any(part in exclude_dirs for part in rel.parts[:-1]):
            continue
        found.append(path)
    return found
