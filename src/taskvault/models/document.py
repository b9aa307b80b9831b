"""
Document provider contract.

The index and the mutation engine never touch storage directly; they talk to
objects satisfying this protocol. ``storage.file_document`` implements it over
the filesystem and ``storage.memory_document`` in memory.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Document(Protocol):
    id: str
    path: str

    def is_in_folder(self, folder: str) -> bool:
        ...

    def should_ignore(self) -> Optional[bool]:
        """Front-matter level "hide me" flag. None means not set."""
        ...

    async def get_content(self) -> str:
        ...

    async def set_content(self, text: str) -> None:
        ...
