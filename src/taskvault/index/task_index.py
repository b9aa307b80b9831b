"""
In-memory task index driven by document change notifications.

Design:
    entries    List[DocumentEntry]      (discovery order, one per tracked document)
    _tasks     Optional[List[Task]]     (private memo, dropped by every mutating call)
    on_update  UpdateEvent[List[Task]]  (fired after each successful mutating call)

Per document id the index moves Untracked → Tracked on create/update and back
to Untracked on delete or when the document moves into an ignored folder.
The index never patches itself from a mutation; it only re-parses documents
when the watcher reports a change.

Front-matter "ignore" flags are not filtered here. Tasks from such documents
stay in the index so that consumers can offer a "show ignored" view.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from taskvault.config import Settings
from taskvault.errors import IndexConsistencyError, ParseError
from taskvault.events import UpdateEvent
from taskvault.models.document import Document
from taskvault.models.task import DocumentEntry, Task
from taskvault.parsers.document_parser import parse_document, parse_documents

log = logging.getLogger(__name__)


class TaskIndex:
    """
    Owns the parsed tasks of every tracked document.

    Feed it with files_loaded() once at startup, then with the per-file
    notifications as the watcher reports changes. Read ``tasks`` for the
    top-level tasks or subscribe to ``on_update``.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or Settings()
        self._entries: List[DocumentEntry] = []
        self._tasks_cache: Optional[List[Task]] = None
        self._last_load: Optional[datetime] = None
        self.on_update: UpdateEvent[List[Task]] = UpdateEvent("task-index-update")

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def ignore_file(self, document: Document) -> bool:
        """True if the document lives in an ignored (archive) folder."""
        if not self._settings.ignore_archived:
            return False
        return any(document.is_in_folder(folder) for folder in self._settings.ignored_folders)

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    async def files_loaded(self, documents: Sequence[Document]) -> None:
        """
        Replace every entry with a fresh parse of ``documents``.

        If the batch as a whole fails, the previous entries stay in place.
        """
        wanted = [d for d in documents if not self.ignore_file(d)]
        log.debug(
            "files_loaded: %d documents, %d ignored", len(documents), len(documents) - len(wanted)
        )
        try:
            entries = await parse_documents(wanted, due_attribute=self._settings.due_date_attribute)
        except Exception:
            log.exception("Failed to load %d documents; keeping previous index", len(wanted))
            return

        self._entries = entries
        self._last_load = datetime.now()
        self._invalidate_cache()
        log.info(
            "Index loaded: %d documents, %d tasks",
            len(self._entries),
            sum(len(e.all_tasks()) for e in self._entries),
        )
        await self._trigger_update()

    async def file_updated(self, document: Document) -> None:
        index = self._find_entry_index(document.id)

        if self.ignore_file(document):
            if index is None:
                log.debug("file_updated: %s is ignored and untracked", document.id)
                return
            log.debug("file_updated: %s moved into an ignored folder, dropping", document.id)
            del self._entries[index]
            self._invalidate_cache()
            await self._trigger_update()
            return

        tasks = await self._parse(document)
        if tasks is None:
            return

        # Re-resolve: the list may have changed while the document was read
        index = self._find_entry_index(document.id)
        entry = DocumentEntry(document=document, tasks=tasks)
        if index is None:
            log.debug("file_updated: tracking %s (%d tasks)", document.id, len(tasks))
            self._entries.append(entry)
        else:
            log.debug("file_updated: re-parsed %s (%d tasks)", document.id, len(tasks))
            self._entries[index] = entry
        self._invalidate_cache()
        await self._trigger_update()

    async def file_created(self, document: Document) -> None:
        if self.ignore_file(document):
            log.debug("file_created: %s is ignored", document.id)
            return

        tasks = await self._parse(document)
        if tasks is None:
            return

        log.debug("file_created: tracking %s (%d tasks)", document.id, len(tasks))
        self._entries.append(DocumentEntry(document=document, tasks=tasks))
        self._invalidate_cache()
        await self._trigger_update()

    async def file_deleted(self, document: Document) -> None:
        """
        Drop a deleted document.

        Raises:
            IndexConsistencyError: the document was never tracked
        """
        if self.ignore_file(document):
            log.debug("file_deleted: %s is ignored", document.id)
            return

        index = self._find_entry_index(document.id)
        if index is None:
            raise IndexConsistencyError(
                f"Delete notification for untracked document: {document.id}", document.id
            )

        log.debug("file_deleted: dropping %s", document.id)
        del self._entries[index]
        self._invalidate_cache()
        await self._trigger_update()

    async def file_renamed(self, old_id: str, document: Document) -> None:
        """
        Re-point the entry tracked as ``old_id`` at ``document``.

        Tasks are not re-parsed; only their document handle changes. An
        unknown ``old_id`` is logged and ignored.
        """
        index = self._find_entry_index(old_id)
        if index is None:
            log.warning("file_renamed: %s is not tracked (now %s)", old_id, document.id)
            return

        if self.ignore_file(document):
            log.debug("file_renamed: %s → %s is ignored, dropping", old_id, document.id)
            del self._entries[index]
        else:
            log.debug("file_renamed: %s → %s", old_id, document.id)
            entry = self._entries[index]
            entry.document = document
            for task in entry.all_tasks():
                task.document = document
        self._invalidate_cache()
        await self._trigger_update()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> List[Task]:
        """Top-level tasks of every entry, in discovery then line order."""
        if self._tasks_cache is None:
            flattened: List[Task] = []
            for entry in self._entries:
                flattened.extend(entry.tasks)
            self._tasks_cache = flattened
        return self._tasks_cache

    @property
    def documents(self) -> List[Document]:
        return [entry.document for entry in self._entries]

    def all_tasks(self) -> List[Task]:
        """Every task including subtasks, depth first."""
        result: List[Task] = []
        for task in self.tasks:
            result.extend(task.all_tasks())
        return result

    def find_by_fingerprint(self, fingerprint: str) -> Optional[Task]:
        """Return the first task whose fingerprint matches, or None."""
        for task in self.all_tasks():
            if task.fingerprint == fingerprint:
                return task
        return None

    def get_entry(self, document_id: str) -> Optional[DocumentEntry]:
        index = self._find_entry_index(document_id)
        return self._entries[index] if index is not None else None

    # ------------------------------------------------------------------
    # Status / diagnostics
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        return {
            "documents_indexed": len(self._entries),
            "tasks_indexed": len(self.all_tasks()),
            "top_level_tasks": len(self.tasks),
            "last_load": self._last_load.isoformat() if self._last_load else None,
            "ignore_archived": self._settings.ignore_archived,
            "ignored_folders": list(self._settings.ignored_folders),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_entry_index(self, document_id: str) -> Optional[int]:
        for index, entry in enumerate(self._entries):
            if entry.document.id == document_id:
                return index
        return None

    async def _parse(self, document: Document) -> Optional[List[Task]]:
        """Parse one document; None (after logging) if it cannot be read."""
        try:
            return await parse_document(document, due_attribute=self._settings.due_date_attribute)
        except ParseError:
            log.exception("Failed to parse %s; keeping previous state", document.path)
            return None

    def _invalidate_cache(self) -> None:
        self._tasks_cache = None

    async def _trigger_update(self) -> None:
        errors = await self.on_update.fire(self.tasks)
        if errors:
            log.error("%d update subscriber(s) failed", len(errors))
