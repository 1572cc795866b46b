"""Tests for posting findings as review comments."""
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import httpx
import pytest

from argus.core.exceptions import NetworkError
from argus.core.types import AccumulatedIssue, IssueRange
from argus.orchestration.posting import (
    FindingPoster,
    GitHubReviewCommentClient,
    ReviewComment,
    build_comment,
    format_comment_body,
)


def _issue(path: str | None, line: int | None = 5, **extra: object) -> AccumulatedIssue:
    return AccumulatedIssue(path=path, line=line, message="Magic number", code_smell_type="MAGIC_NUMBERS", **extra)


class TestBuildComment:
    """Tests for comment construction."""

    def test_body_defaults(self) -> None:
        body = format_comment_body(AccumulatedIssue(path="a.py", line=1, message="Bad"))

        assert body == (
            "**🔴 Code Quality Issue** (Severity: medium)\n\nBad\n\n"
            "**Suggested Fix:**\nNo specific fix provided"
        )

    def test_multi_line_range_sets_start_line(self) -> None:
        comment = build_comment(_issue("a.py", line=8, range=IssueRange(start_line=4, end_line=8)))

        assert comment.start_line == 4
        assert comment.side == "RIGHT"

    def test_single_line_range_has_no_start_line(self) -> None:
        comment = build_comment(_issue("a.py", line=8, range=IssueRange(start_line=8)))

        assert comment.start_line is None

    def test_range_starting_after_line_has_no_start_line(self) -> None:
        comment = build_comment(_issue("a.py", line=8, range=IssueRange(start_line=12, end_line=14)))

        assert comment.line == 8
        assert comment.start_line is None

    def test_incomplete_finding_is_skipped(self) -> None:
        assert build_comment(_issue("a.py", line=None)) is None


class TestFindingPoster:
    """Tests for FindingPoster."""

    async def test_one_call_per_file(self) -> None:
        client = AsyncMock()
        client.create_review_comments = AsyncMock(side_effect=lambda o, r, n, comments, t: len(comments))
        poster = FindingPoster(client)

        result = await poster.post(
            [_issue("a.py"), _issue("b.py"), _issue("a.py", line=9), _issue(None)], "acme", "api", 7, "tok"
        )

        assert client.create_review_comments.await_count == 2
        first_call = client.create_review_comments.await_args_list[0].args
        assert first_call[:3] == ("acme", "api", 7)
        assert [c.line for c in first_call[3]] == [5, 9]
        assert result.success is True
        assert result.posted_count == 3
        assert result.total_issues == 4

    async def test_failure_for_one_file_does_not_stop_others(self) -> None:
        client = AsyncMock()
        client.create_review_comments = AsyncMock(side_effect=[NetworkError("rate limited"), 1])

        result = await FindingPoster(client).post([_issue("a.py"), _issue("b.py")], "acme", "api", 7, "tok")

        assert result.success is False
        assert result.posted_count == 1
        assert result.errors == ["Failed to post comments for a.py: rate limited"]


class TestGitHubReviewCommentClient:
    """Tests for the GitHub client against a mock transport."""

    @staticmethod
    def _client(handler: httpx.MockTransport) -> GitHubReviewCommentClient:
        client = GitHubReviewCommentClient("https://github.example/api/")

        @asynccontextmanager
        async def _http_client(access_token: str) -> AsyncIterator[httpx.AsyncClient]:
            async with httpx.AsyncClient(
                base_url=client.base_url,
                headers={"Authorization": f"Bearer {access_token}"},
                transport=handler,
            ) as http:
                yield http

        client._http_client = _http_client
        return client

    async def test_posts_review(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 1})

        client = self._client(httpx.MockTransport(handler))
        comment = ReviewComment(path="a.py", line=3, body="b")

        accepted = await client.create_review_comments("acme", "api", 7, [comment], "tok")

        assert accepted == 1
        request = seen[0]
        assert request.url.path == "/api/repos/acme/api/pulls/7/reviews"
        assert request.headers["Authorization"] == "Bearer tok"
        assert json.loads(request.content) == {
            "event": "COMMENT",
            "comments": [{"path": "a.py", "line": 3, "body": "b", "side": "RIGHT"}],
        }

    async def test_rejection_raises_network_error(self) -> None:
        client = self._client(httpx.MockTransport(lambda request: httpx.Response(422)))

        with pytest.raises(NetworkError, match="422"):
            await client.create_review_comments("acme", "api", 7, [ReviewComment(path="a", line=1, body="b")], "t")
