"""In-memory Document, for tests and embedding."""

from typing import Optional

from taskvault.storage.frontmatter import read_ignore_flag


class MemoryDocument:
    def __init__(self, id: str, content: str = "", path: Optional[str] = None) -> None:
        self.id = id
        self.path = path or id
        self.content = content
        self.reads = 0
        self.writes = 0

    def is_in_folder(self, folder: str) -> bool:
        prefix = folder.strip("/")
        if not prefix:
            return True
        return self.id.startswith(prefix + "/")

    def should_ignore(self) -> Optional[bool]:
        return read_ignore_flag(self.content)

    async def get_content(self) -> str:
        self.reads += 1
        return self.content

    async def set_content(self, text: str) -> None:
        self.writes += 1
        self.content = text

    def __repr__(self) -> str:
        return f"MemoryDocument({self.id!r})"
