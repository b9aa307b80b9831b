"""
Tests for api/tools.py.

Uses a real TaskIndex loaded from a temporary vault on disk.
Exercises the MCP tool handler functions directly (bypasses transport).
"""

import asyncio
import json
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from taskvault.api.tools import register_tools
from taskvault.config import Settings
from taskvault.server import build_services
from taskvault.watcher.vault_watcher import VaultWatcher

TODO_MD = (
    "# Inbox\n"
    "- [ ] Buy milk [due:: 2026-02-01] #shopping\n"
    "- [>] Write report #work\n"
    "  - [ ] Outline #work\n"
    "- [x] File taxes [completed:: 2026-01-10]\n"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_vault(tmp_path: Path) -> Path:
    vault = tmp_path / "vault"
    (vault / "Archive").mkdir(parents=True)
    (vault / "todo.md").write_text(TODO_MD, encoding="utf-8")
    (vault / "Archive" / "old.md").write_text("- [ ] Archived task\n", encoding="utf-8")
    (vault / "hidden.md").write_text(
        "---\ntasks-ignore: true\n---\n- [ ] Secret #work\n", encoding="utf-8"
    )
    return vault


def _run(coro):
    """Run a coroutine on a private loop, leaving the current loop alone."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _FakeMCP:
    """Minimal fake to capture tool registrations."""

    def __init__(self):
        self._tools = {}

    def tool(self, *args, **kwargs):
        """Decorator that records functions by name."""
        def decorator(fn):
            self._tools[fn.__name__] = fn
            return fn
        return decorator

    def get(self, name: str):
        return self._tools[name]


@pytest.fixture
def setup(tmp_path):
    vault = _make_vault(tmp_path)
    index, mutations = build_services(Settings(vault_root=vault))
    watcher = VaultWatcher(index, vault, set())
    _run(watcher.reload())

    mcp = _FakeMCP()
    register_tools(mcp, index, mutations)

    return mcp, index, vault


async def _resync(index, document_id: str = "todo.md") -> None:
    await index.file_updated(index.get_entry(document_id).document)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegistration:
    def test_all_tools_registered(self, setup):
        mcp, _, _ = setup
        assert set(mcp._tools) == {
            "task_list",
            "task_get",
            "index_status",
            "task_set_status",
            "task_set_attribute",
            "task_remove_attribute",
            "task_add_tag",
            "task_remove_tag",
            "task_move",
            "task_normalize",
            "task_undo",
            "task_redo",
        }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestTaskList:
    def test_top_level_tasks(self, setup):
        mcp, _, _ = setup
        tasks = json.loads(mcp.get("task_list")())
        assert [t["fingerprint"] for t in tasks] == [
            "todo.md-1-Buy milk",
            "todo.md-2-Write report",
            "todo.md-4-File taxes",
        ]
        report = tasks[1]
        assert report["status"] == "in-progress"
        assert report["subtasks"][0]["fingerprint"] == "todo.md-3-Outline"

    def test_archive_never_indexed(self, setup):
        mcp, _, _ = setup
        tasks = json.loads(mcp.get("task_list")(show_ignored=True))
        assert "Archived task" not in [t["text"] for t in tasks]

    def test_show_ignored(self, setup):
        mcp, _, _ = setup
        tasks = json.loads(mcp.get("task_list")(show_ignored=True))
        secret = next(t for t in tasks if t["text"] == "Secret")
        assert secret["ignored"] is True
        assert secret["fingerprint"] == "hidden.md-3-Secret"

    def test_filter_status(self, setup):
        mcp, _, _ = setup
        tasks = json.loads(mcp.get("task_list")(status="complete,canceled"))
        assert [t["text"] for t in tasks] == ["File taxes"]

    def test_filter_tag_with_subtasks(self, setup):
        mcp, _, _ = setup
        tasks = json.loads(mcp.get("task_list")(tag="#work", include_subtasks=True))
        assert [t["text"] for t in tasks] == ["Write report", "Outline"]
        assert "subtasks" not in tasks[0]

    def test_filter_document(self, setup):
        mcp, _, _ = setup
        tasks = json.loads(mcp.get("task_list")(document="hidden.md", show_ignored=True))
        assert [t["text"] for t in tasks] == ["Secret"]

    def test_limit(self, setup):
        mcp, _, _ = setup
        assert len(json.loads(mcp.get("task_list")(limit=1))) == 1

    def test_invalid_status(self, setup):
        mcp, _, _ = setup
        result = json.loads(mcp.get("task_list")(status="open"))
        assert "Unknown status" in result["error"]


class TestTaskGet:
    def test_get(self, setup):
        mcp, _, _ = setup
        task = json.loads(mcp.get("task_get")("todo.md-1-Buy milk"))
        assert task["attributes"] == {"due": "2026-02-01"}
        assert task["tags"] == ["shopping"]
        assert task["line"] == 1

    def test_not_found(self, setup):
        mcp, _, _ = setup
        result = json.loads(mcp.get("task_get")("todo.md-9-Nope"))
        assert "not found" in result["error"]


class TestIndexStatus:
    def test_status(self, setup):
        mcp, _, _ = setup
        status = json.loads(mcp.get("index_status")())
        assert status["documents_indexed"] == 2
        assert status["tasks_indexed"] == 5
        assert status["top_level_tasks"] == 4
        assert status["undo_history"] == 0
        assert status["last_operation"] is None


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class TestMutationTools:
    @pytest.mark.asyncio
    async def test_set_status_and_undo(self, setup):
        mcp, index, vault = setup
        original = (vault / "todo.md").read_text(encoding="utf-8")

        result = json.loads(await mcp.get("task_set_status")(["todo.md-1-Buy milk"], "complete"))
        assert result == {"updated": ["todo.md-1-Buy milk"], "failures": {}}
        today = date.today().isoformat()
        content = (vault / "todo.md").read_text(encoding="utf-8")
        assert f"- [x] Buy milk #shopping [due:: 2026-02-01] [completed:: {today}]" in content

        status = json.loads(mcp.get("index_status")())
        assert status["last_operation"]["description"] == "Changed task to complete"

        await _resync(index)
        undo = json.loads(await mcp.get("task_undo")())
        assert undo == {"description": "Changed task to complete", "outcome": "success"}
        assert (vault / "todo.md").read_text(encoding="utf-8") == (
            original.replace(
                "- [ ] Buy milk [due:: 2026-02-01] #shopping",
                "- [ ] Buy milk #shopping [due:: 2026-02-01]",
            )
        )

    @pytest.mark.asyncio
    async def test_set_and_remove_attribute(self, setup):
        mcp, index, vault = setup
        await mcp.get("task_set_attribute")(["todo.md-3-Outline"], "owner", "Sam")
        assert "  - [ ] Outline #work [owner:: Sam]\n" in (vault / "todo.md").read_text(encoding="utf-8")

        await _resync(index)
        await mcp.get("task_remove_attribute")(["todo.md-3-Outline"], "owner")
        assert "  - [ ] Outline #work\n" in (vault / "todo.md").read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_add_and_remove_tag(self, setup):
        mcp, index, vault = setup
        await mcp.get("task_add_tag")(["todo.md-4-File taxes"], "#finance")
        assert "- [x] File taxes #finance [completed:: 2026-01-10]" in (
            vault / "todo.md"
        ).read_text(encoding="utf-8")

        await _resync(index)
        await mcp.get("task_remove_tag")(["todo.md-4-File taxes"], "finance")
        assert "- [x] File taxes [completed:: 2026-01-10]" in (vault / "todo.md").read_text(
            encoding="utf-8"
        )

    @pytest.mark.asyncio
    async def test_empty_tag_rejected(self, setup):
        mcp, _, _ = setup
        result = json.loads(await mcp.get("task_add_tag")(["todo.md-1-Buy milk"], "#"))
        assert "must not be empty" in result["error"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tag", ["2024", "foo bar"])
    async def test_unreadable_tag_rejected(self, setup, tag):
        mcp, _, vault = setup
        result = json.loads(await mcp.get("task_add_tag")(["todo.md-1-Buy milk"], tag))
        assert "Invalid tag" in result["error"]
        assert (vault / "todo.md").read_text(encoding="utf-8") == TODO_MD

    @pytest.mark.asyncio
    async def test_wikilink_attribute_value(self, setup):
        mcp, index, vault = setup
        await mcp.get("task_set_attribute")(["todo.md-3-Outline"], "source", "[[Meeting notes]]")
        assert "  - [ ] Outline #work [source:: [[Meeting notes]]]\n" in (vault / "todo.md").read_text(
            encoding="utf-8"
        )

        await _resync(index)
        task = json.loads(mcp.get("task_get")("todo.md-3-Outline"))
        assert task["attributes"] == {"source": "[[Meeting notes]]"}

    @pytest.mark.asyncio
    async def test_unreadable_attribute_name_rejected(self, setup):
        mcp, _, _ = setup
        result = json.loads(await mcp.get("task_set_attribute")(["todo.md-3-Outline"], "a:b", "v"))
        assert "Invalid attribute name" in result["error"]

    @pytest.mark.asyncio
    async def test_move(self, setup):
        mcp, _, vault = setup
        result = json.loads(
            await mcp.get("task_move")(
                ["todo.md-1-Buy milk", "todo.md-2-Write report"],
                due="2026-03-01",
                tag="march",
                remove_tags="shopping, work",
            )
        )
        assert len(result["updated"]) == 2
        content = (vault / "todo.md").read_text(encoding="utf-8")
        assert "- [ ] Buy milk #march [due:: 2026-03-01]\n" in content
        assert "- [>] Write report #march [due:: 2026-03-01]\n" in content
        assert "  - [ ] Outline #work\n" in content

    @pytest.mark.asyncio
    async def test_move_invalid_date(self, setup):
        mcp, _, _ = setup
        result = json.loads(await mcp.get("task_move")(["todo.md-1-Buy milk"], due="someday"))
        assert "Unrecognised date" in result["error"]

    @pytest.mark.asyncio
    async def test_unknown_fingerprint(self, setup):
        mcp, _, vault = setup
        before = (vault / "todo.md").read_text(encoding="utf-8")
        result = json.loads(
            await mcp.get("task_set_status")(["todo.md-1-Buy milk", "nope"], "complete")
        )
        assert "not found" in result["error"]
        assert (vault / "todo.md").read_text(encoding="utf-8") == before

    @pytest.mark.asyncio
    async def test_stale_reported_per_document(self, setup):
        mcp, _, vault = setup
        (vault / "todo.md").write_text("# Emptied\n", encoding="utf-8")

        result = json.loads(await mcp.get("task_set_status")(["todo.md-2-Write report"], "todo"))
        assert result["updated"] == []
        assert result["failures"]["todo.md"]["code"] == "stale_task"

    @pytest.mark.asyncio
    async def test_normalize(self, setup):
        mcp, index, vault = setup
        (vault / "todo.md").write_text("- [ ] Call mom @high\n", encoding="utf-8")
        await _resync(index)

        result = json.loads(await mcp.get("task_normalize")(["todo.md-0-Call mom"]))
        assert result["updated"] == ["todo.md-0-Call mom"]
        assert (vault / "todo.md").read_text(encoding="utf-8") == "- [ ] Call mom [priority:: high]\n"

    @pytest.mark.asyncio
    async def test_undo_redo_empty(self, setup):
        mcp, _, _ = setup
        assert json.loads(await mcp.get("task_undo")()) == {"error": "Nothing to undo"}
        assert json.loads(await mcp.get("task_redo")()) == {"error": "Nothing to redo"}
