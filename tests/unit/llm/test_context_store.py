"""Tests for ContextStore."""
import pytest

from argus.core.exceptions import ContextNotFoundError
from argus.core.types import AccumulatedIssue, Message, Role, ToolCallRecord, ToolCallRequest
from argus.llm.context import ContextStore, drop_orphan_tool_results, estimate_tokens


def _user(text: str) -> Message:
    return Message(role=Role.USER, content=text)


class TestCreateAndGet:
    """Tests for context creation and lookup."""

    def test_create_sets_fields(self, store: ContextStore) -> None:
        context_id = store.create("/work", 12, 3, task_id="t1", owner="acme", repo="api", pr_number=9)

        context = store.get(context_id)
        assert context is not None
        assert context_id.startswith("ctx-")
        assert "-repo12-user3-" in context_id
        assert (context.owner, context.repo, context.pr_number, context.task_id) == ("acme", "api", 9, "t1")

    def test_initial_task_goes_to_metadata(self, store: ContextStore) -> None:
        context_id = store.create("/work", initial_task="code_review")

        assert store.get(context_id).metadata == {"current_task": "code_review"}

    def test_unknown_context(self, store: ContextStore) -> None:
        assert store.get("missing") is None
        assert store.append_message("missing", _user("hi")) is False
        assert store.delete("missing") is False

    def test_evicts_least_recently_updated(self) -> None:
        store = ContextStore(max_contexts=2)
        first = store.create("/a")
        second = store.create("/b")
        store.append_message(first, _user("keep me warm"))

        third = store.create("/c")

        assert len(store) == 2
        assert second not in store
        assert first in store and third in store

    def test_lists_by_user_and_repository(self, store: ContextStore) -> None:
        store.create("/a", repository_id=1, user_id=5)
        store.create("/b", repository_id=2, user_id=5)

        assert len(store.list_by_user(5)) == 2
        assert len(store.list_by_repository(2)) == 1


class TestMessageTrimming:
    """Tests for the per-context message ceiling."""

    def test_keeps_most_recent_messages(self) -> None:
        store = ContextStore(max_messages=2000)
        context_id = store.create("/work")
        for index in range(1050):
            store.append_message(context_id, _user(f"m{index}"))
        store.set_limits(max_contexts=100, max_messages=1000, max_tool_calls=500)

        store.append_message(context_id, _user("m1050"))

        messages = store.get(context_id).messages
        assert len(messages) == 1000
        assert messages[0].content == "m51"
        assert messages[-1].content == "m1050"

    def test_trimming_never_leaves_orphan_tool_results(self) -> None:
        store = ContextStore(max_messages=3)
        context_id = store.create("/work")
        calls = [ToolCallRequest(id="a", name="read_file"), ToolCallRequest(id="b", name="list_files")]
        store.append_message(context_id, _user("start"))
        store.append_message(context_id, Message(role=Role.ASSISTANT, content="", tool_calls=calls))
        store.append_message(context_id, Message(role=Role.TOOL, content="{}", tool_call_id="a"))
        store.append_message(context_id, Message(role=Role.TOOL, content="{}", tool_call_id="b"))

        store.append_message(context_id, _user("next"))

        assert [m.role for m in store.get(context_id).messages] == [Role.USER]

    def test_drop_orphan_tool_results(self) -> None:
        messages = [Message(role=Role.TOOL, content="x", tool_call_id="a"), _user("u")]

        assert drop_orphan_tool_results(messages) == [messages[1]]
        assert drop_orphan_tool_results(messages[1:]) == messages[1:]

    def test_tool_call_history_is_capped(self) -> None:
        store = ContextStore(max_tool_calls=2)
        context_id = store.create("/work")
        for index in range(3):
            store.append_tool_call(context_id, ToolCallRecord(id=str(index), tool_name="read_file", parameters={}))

        assert [r.id for r in store.get(context_id).tool_call_history] == ["1", "2"]


class TestIssuesAndCompaction:
    """Tests for the findings accumulator and message replacement."""

    def test_add_issues(self, store: ContextStore) -> None:
        context_id = store.create("/work")

        total = store.add_issues(context_id, [AccumulatedIssue(path="a.py", line=1)])
        total = store.add_issues(context_id, [AccumulatedIssue(path="b.py", line=2)])

        assert total == 2

    def test_add_issues_unknown_context(self, store: ContextStore) -> None:
        with pytest.raises(ContextNotFoundError):
            store.add_issues("missing", [])

    def test_replace_messages_keeps_accumulator(self, store: ContextStore) -> None:
        context_id = store.create("/work")
        store.append_message(context_id, _user("old"))
        store.add_issues(context_id, [AccumulatedIssue(path="a.py", line=1)])

        store.replace_messages(context_id, [_user("new")])

        context = store.get(context_id)
        assert [m.content for m in context.messages] == ["new"]
        assert len(context.accumulated_issues) == 1

    def test_estimate_tokens(self) -> None:
        assert estimate_tokens([_user("abcd"), _user("abcde")]) == 3


class TestExportImport:
    """Tests for context export and import."""

    def test_round_trip_gets_fresh_id_and_drops_credentials(self, store: ContextStore) -> None:
        context_id = store.create("/work", user_id=4, access_token="secret")
        store.append_message(context_id, _user("hello"))

        exported = store.export_context(context_id)
        new_id = store.import_context(exported)

        assert "secret" not in exported
        assert new_id is not None and new_id != context_id
        imported = store.get(new_id)
        assert imported.messages[0].content == "hello"
        assert imported.access_token is None

    def test_malformed_import(self, store: ContextStore) -> None:
        assert store.import_context("{not json") is None
        assert store.import_context('{"context": {}}') is None

    def test_stats(self, store: ContextStore) -> None:
        first = store.create("/a")
        store.create("/b")
        store.append_message(first, _user("x"))

        stats = store.stats()

        assert stats.total_contexts == 2
        assert stats.active_contexts == 1
        assert stats.average_messages_per_context == 0.5
