"""
Vault file system watcher, polling-based.

Docker volume mounts from Windows do not forward filesystem events (inotify)
into the container, so we use periodic mtime polling instead of an
event-based observer.

The watcher runs an asyncio task on the server's loop that:
1. Walks VAULT_ROOT every POLL_INTERVAL seconds
2. Compares (mtime, size) against the previous poll
3. Pairs a vanished file with a new file of identical (mtime, size) as a rename
4. Forwards each change to the TaskIndex, one notification at a time
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from taskvault.errors import IndexConsistencyError
from taskvault.index.task_index import TaskIndex
from taskvault.storage.file_document import FileDocument, scan_vault

log = logging.getLogger(__name__)

_DEFAULT_POLL_INTERVAL = 5.0

FileStamp = Tuple[float, int]


class VaultWatcher:
    """
    Polling-based vault watcher.

    Usage:
        watcher = VaultWatcher(index, vault_root, exclude_dirs)
        watcher.start()
        ...
        await watcher.stop()
    """

    def __init__(
        self,
        index: TaskIndex,
        vault_root: Path,
        exclude_dirs: Set[str],
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._index = index
        self._vault_root = vault_root
        self._exclude_dirs = exclude_dirs
        self._poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None

        # Known files and their stamps from the last poll cycle
        self._known_files: Dict[Path, FileStamp] = {}

    def seed(self) -> None:
        """Take the current state as the baseline without notifying anyone."""
        self._known_files = self._snapshot()

    def start(self) -> None:
        """Start the polling task on the running loop."""
        log.info("Starting vault watcher (polling every %.1fs)", self._poll_interval)
        self.seed()
        self._task = asyncio.get_running_loop().create_task(self._poll_loop(), name="vault-watcher")

    async def stop(self) -> None:
        log.info("Stopping vault watcher")
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.check_for_changes()
            except Exception:
                log.exception("Error during poll cycle")

    async def check_for_changes(self) -> int:
        """Single poll cycle. Returns the number of notifications sent."""
        current = self._snapshot()
        previous = self._known_files
        self._known_files = current

        created = [p for p in current if p not in previous]
        deleted = [p for p in previous if p not in current]
        modified = [p for p in current if p in previous and current[p] != previous[p]]

        renames: List[Tuple[Path, Path]] = []
        for old in list(deleted):
            match = next((new for new in created if current[new] == previous[old]), None)
            if match is not None:
                renames.append((old, match))
                deleted.remove(old)
                created.remove(match)

        sent = 0
        for old, new in renames:
            old_id = self._document_id(old)
            if self._index.get_entry(old_id) is None:
                # Moved out of an ignored folder: new to the index
                log.debug("Document entered the vault index: %s → %s", old, new)
                await self._notify(self._index.file_created, self._document(new))
            else:
                log.debug("Renamed document: %s → %s", old, new)
                await self._notify(self._index.file_renamed, old_id, self._document(new))
            sent += 1
        for path in created:
            log.debug("New document detected: %s", path)
            await self._notify(self._index.file_created, self._document(path))
            sent += 1
        for path in modified:
            log.debug("Modified document: %s", path)
            await self._notify(self._index.file_updated, self._document(path))
            sent += 1
        for path in deleted:
            log.debug("Deleted document: %s", path)
            await self._notify(self._index.file_deleted, self._document(path))
            sent += 1
        return sent

    async def _notify(self, method, *args) -> None:
        try:
            await method(*args)
        except IndexConsistencyError:
            log.exception("Index out of sync with the vault; reloading")
            await self.reload()

    async def reload(self) -> None:
        """Full rescan: rebuild the index from disk and reset the baseline."""
        paths = scan_vault(self._vault_root, self._exclude_dirs)
        await self._index.files_loaded([self._document(p) for p in paths])
        self.seed()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _document(self, path: Path) -> FileDocument:
        return FileDocument(path, self._vault_root)

    def _document_id(self, path: Path) -> str:
        return path.relative_to(self._vault_root).as_posix()

    def _snapshot(self) -> Dict[Path, FileStamp]:
        """Walk the vault and return {path: (mtime, size)} for every document."""
        snapshot: Dict[Path, FileStamp] = {}
        try:
            paths = scan_vault(self._vault_root, self._exclude_dirs)
        except OSError:
            log.exception("Error walking vault for documents")
            return dict(self._known_files)
        for path in paths:
            try:
                stat = path.stat()
            except OSError:
                continue
            snapshot[path] = (stat.st_mtime, stat.st_size)
        return snapshot
