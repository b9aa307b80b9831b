"""
taskvault MCP server entry point.

Startup sequence:
1. Load Settings from the environment
2. Build TaskIndex, MutationEngine, UndoLedger
3. Full vault scan into the index
4. Start the polling VaultWatcher task
5. Register all MCP tools
6. Start the REST API on the same event loop (if API_ENABLED)
7. Run MCP server (stdio transport)
"""

import asyncio
import logging
import sys
from typing import Optional, Tuple

import uvicorn
from mcp.server.fastmcp import FastMCP

from taskvault.api.app import create_app
from taskvault.api.tools import register_tools
from taskvault.config import Settings, load_settings
from taskvault.index.task_index import TaskIndex
from taskvault.operations.mutations import MutationEngine
from taskvault.operations.undo import UndoConfig, UndoLedger
from taskvault.operations.undoable import UndoableMutations
from taskvault.watcher.vault_watcher import VaultWatcher

log = logging.getLogger(__name__)


def build_services(settings: Settings) -> Tuple[TaskIndex, UndoableMutations]:
    """Wire the index and the undo-recording mutation layer."""
    index = TaskIndex(settings)
    engine = MutationEngine(
        due_attribute=settings.due_date_attribute,
        completed_attribute=settings.completed_date_attribute,
    )
    ledger = UndoLedger(
        UndoConfig(
            max_history_size=settings.undo_history_size,
            max_history_age_ms=settings.undo_history_max_age_ms,
            enabled=settings.undo_enabled,
        )
    )
    return index, UndoableMutations(engine, ledger, index.find_by_fingerprint)


async def run(settings: Settings) -> None:
    if settings.vault_root is None:
        raise ValueError("VAULT_ROOT is not set")
    index, mutations = build_services(settings)

    log.info("Vault root: %s", settings.vault_root)
    log.info("Excluded dirs: %s", sorted(settings.exclude_dirs))

    watcher = VaultWatcher(
        index, settings.vault_root, settings.exclude_dirs, poll_interval=settings.poll_interval
    )
    log.info("Scanning vault...")
    await watcher.reload()
    watcher.start()

    mcp = FastMCP("taskvault")
    register_tools(mcp, index, mutations)

    api_server: Optional[uvicorn.Server] = None
    api_task: Optional[asyncio.Task] = None
    if settings.api_enabled:
        config = uvicorn.Config(
            create_app(index, mutations), host="0.0.0.0", port=settings.api_port, log_level="warning"
        )
        api_server = uvicorn.Server(config)
        log.info("Starting REST API on port %d", settings.api_port)
        api_task = asyncio.create_task(api_server.serve(), name="rest-api")

    log.info("Starting taskvault server")
    try:
        await mcp.run_stdio_async()
    finally:
        await watcher.stop()
        if api_server is not None and api_task is not None:
            api_server.should_exit = True
            await api_task


def main() -> None:
    try:
        settings = load_settings()
    except ValueError as e:
        logging.basicConfig(stream=sys.stderr)
        log.error("Invalid configuration: %s", e)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if settings.vault_root is None:
        log.error("VAULT_ROOT environment variable is not set")
        sys.exit(1)
    if not settings.vault_root.is_dir():
        log.error("VAULT_ROOT does not exist or is not a directory: %s", settings.vault_root)
        sys.exit(1)

    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
