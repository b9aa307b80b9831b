"""MCP tool registration for taskvault."""

import json
import logging
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from taskvault.api.handlers import (
    handle_index_status,
    handle_redo,
    handle_task_add_tag,
    handle_task_get,
    handle_task_list,
    handle_task_move,
    handle_task_normalize,
    handle_task_remove_attribute,
    handle_task_remove_tag,
    handle_task_set_attribute,
    handle_task_set_status,
    handle_undo,
)
from taskvault.index.task_index import TaskIndex
from taskvault.operations.undoable import UndoableMutations

log = logging.getLogger(__name__)


def register_tools(mcp: FastMCP, index: TaskIndex, mutations: UndoableMutations) -> None:
    """Register all MCP tools onto the FastMCP instance."""

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @mcp.tool()
    def task_list(
        status: Optional[str] = None,
        tag: Optional[str] = None,
        document: Optional[str] = None,
        show_ignored: bool = False,
        include_subtasks: bool = False,
        limit: int = 200,
    ) -> str:
        """
        List indexed tasks with optional filtering.

        Every task is identified by its fingerprint ("<document>-<line>-<text>").
        Fingerprints change whenever a task's line or text changes, so list
        again after editing documents by hand.

        Args:
            status: Comma-separated statuses, e.g. "todo,in-progress". Valid:
                    attention-required, todo, in-progress, delegated, complete, canceled.
                    Omit for all.
            tag: Only tasks carrying this tag (with or without "#")
            document: Only tasks from this vault-relative document path
            show_ignored: Include tasks from documents with "tasks-ignore: true"
            include_subtasks: Match nested tasks too, returned as separate entries
            limit: Maximum number of results (default 200)

        Returns:
            JSON array of task objects
        """
        try:
            return json.dumps(
                handle_task_list(
                    index,
                    status=status,
                    tag=tag,
                    document=document,
                    show_ignored=show_ignored,
                    include_subtasks=include_subtasks,
                    limit=limit,
                ),
                indent=2,
            )
        except Exception as e:
            return json.dumps({"error": str(e)})

    @mcp.tool()
    def task_get(fingerprint: str) -> str:
        """
        Get a single task by fingerprint, with its subtasks.

        Args:
            fingerprint: Task fingerprint as returned by task_list

        Returns:
            JSON task object or error message
        """
        return json.dumps(handle_task_get(index, fingerprint=fingerprint), indent=2)

    @mcp.tool()
    def index_status() -> str:
        """
        Show index and undo history statistics.

        Returns:
            JSON with document count, task count, last load time, undo depth, etc.
        """
        return json.dumps(handle_index_status(index, mutations), indent=2)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @mcp.tool()
    async def task_set_status(fingerprints: List[str], status: str) -> str:
        """
        Change the status of one or more tasks.

        Completing or canceling a task stamps a completed date; reopening it
        removes the date.

        Args:
            fingerprints: Tasks to change
            status: todo, in-progress, delegated, attention-required, complete or canceled

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_set_status(
                index, mutations, fingerprints=fingerprints, status=status
            )
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_set_attribute(fingerprints: List[str], name: str, value: str) -> str:
        """
        Set an inline [name:: value] attribute on one or more tasks.

        Args:
            fingerprints: Tasks to change
            name: Attribute name, e.g. "due" or "priority"
            value: Attribute value

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_set_attribute(
                index, mutations, fingerprints=fingerprints, name=name, value=value
            )
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_remove_attribute(fingerprints: List[str], name: str) -> str:
        """
        Remove an inline attribute from one or more tasks.

        Args:
            fingerprints: Tasks to change
            name: Attribute name

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_remove_attribute(
                index, mutations, fingerprints=fingerprints, name=name
            )
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_add_tag(fingerprints: List[str], tag: str) -> str:
        """
        Add a #tag to one or more tasks.

        Args:
            fingerprints: Tasks to change
            tag: Tag name, with or without "#"

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_add_tag(index, mutations, fingerprints=fingerprints, tag=tag)
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_remove_tag(fingerprints: List[str], tag: str) -> str:
        """
        Remove a #tag from one or more tasks.

        Args:
            fingerprints: Tasks to change
            tag: Tag name, with or without "#"

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_remove_tag(
                index, mutations, fingerprints=fingerprints, tag=tag
            )
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_move(
        fingerprints: List[str],
        due: Optional[str] = None,
        tag: Optional[str] = None,
        status: Optional[str] = None,
        remove_tags: Optional[str] = None,
    ) -> str:
        """
        Reschedule tasks in a single write per document.

        Args:
            fingerprints: Tasks to move
            due: New due date (ISO date or "today", "tomorrow", "friday",
                 "next monday", "in 3 days"...). Omit or "" to clear.
            tag: Tag to add
            status: Status to set at the same time
            remove_tags: Comma-separated tags to remove

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_move(
                index,
                mutations,
                fingerprints=fingerprints,
                due=due,
                tag=tag,
                status=status,
                remove_tags=remove_tags,
            )
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_normalize(fingerprints: List[str]) -> str:
        """
        Rewrite task lines in canonical form, expanding shorthands such as
        @friday or @high into [due:: ...] and [priority:: ...]. Not undoable.

        Args:
            fingerprints: Tasks to rewrite

        Returns:
            JSON with updated fingerprints and per-document failures
        """
        try:
            result = await handle_task_normalize(index, mutations, fingerprints=fingerprints)
        except Exception as e:
            return json.dumps({"error": str(e)})
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def task_undo() -> str:
        """
        Undo the most recent task edit (within the configured history window).

        Returns:
            JSON with the operation description and outcome
            ("success", "partial" or "failed"), or an error if there is nothing to undo
        """
        try:
            return json.dumps(await handle_undo(mutations), indent=2)
        except Exception as e:
            return json.dumps({"error": str(e)})

    @mcp.tool()
    async def task_redo() -> str:
        """
        Redo the most recently undone task edit.

        Returns:
            JSON with the operation description and outcome, or an error
        """
        try:
            return json.dumps(await handle_redo(mutations), indent=2)
        except Exception as e:
            return json.dumps({"error": str(e)})
