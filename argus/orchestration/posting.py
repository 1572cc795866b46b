# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Posting of accumulated findings as pull request review comments.

Findings are grouped by file and each file's comments are sent in one batch
call. A failure for one file is recorded and posting continues with the
next.
"""
from collections import defaultdict
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Literal, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from argus.core.exceptions import NetworkError
from argus.core.types import AccumulatedIssue


DEFAULT_GITHUB_API_URL = "https://api.github.com"


class ReviewComment(BaseModel):
    """One inline review comment.

    ``start_line`` is set only for multi-line comments.
    """

    path: str
    line: int
    body: str
    side: Literal["LEFT", "RIGHT"] = "RIGHT"
    start_line: int | None = None


class PostingResult(BaseModel):
    """Outcome of posting findings.

    Attributes:
        success: True when every file was posted without error.
        posted_count: Number of comments accepted.
        total_issues: Number of findings handed in.
        errors: One message per failed file.
    """

    success: bool
    posted_count: int = 0
    total_issues: int = 0
    errors: list[str] = Field(default_factory=list)


class ReviewCommentClient(Protocol):
    """Source-control review comment API."""

    async def create_review_comments(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        comments: Sequence[ReviewComment],
        access_token: str,
    ) -> int:
        """Create a batch of comments and return how many were accepted."""
        ...


class GitHubReviewCommentClient:
    """Posts comment batches through the GitHub pull request reviews API.

    Each batch becomes one review with event ``COMMENT``.
    """

    def __init__(self, base_url: str = DEFAULT_GITHUB_API_URL, timeout_seconds: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds, connect=5.0)

    @asynccontextmanager
    async def _http_client(self, access_token: str) -> AsyncIterator[httpx.AsyncClient]:
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {access_token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        async with httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self._timeout) as client:
            yield client

    async def create_review_comments(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        comments: Sequence[ReviewComment],
        access_token: str,
    ) -> int:
        """Create one review carrying ``comments``.

        Raises:
            NetworkError: If the request fails or GitHub rejects it.
        """
        payload = {
            "event": "COMMENT",
            "comments": [comment.model_dump(exclude_none=True) for comment in comments],
        }
        try:
            async with self._http_client(access_token) as client:
                response = await client.post(f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews", json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"GitHub rejected review comments: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"GitHub request failed: {e}") from e
        return len(comments)


def format_comment_body(issue: AccumulatedIssue) -> str:
    return (
        f"**🔴 {issue.code_smell_type or 'Code Quality Issue'}** "
        f"(Severity: {issue.severity or 'medium'})\n\n"
        f"{issue.message}\n\n"
        f"**Suggested Fix:**\n{issue.suggested_fix or 'No specific fix provided'}"
    )


def build_comment(issue: AccumulatedIssue) -> ReviewComment | None:
    """Comment for a finding, or None when it lacks a path, line or message."""
    if not issue.path or issue.line is None or not issue.message:
        return None
    start_line = issue.range.start_line if issue.range else None
    return ReviewComment(
        path=issue.path,
        line=issue.line,
        body=format_comment_body(issue),
        start_line=start_line if start_line is not None and start_line < issue.line else None,
    )


def group_by_path(issues: Sequence[AccumulatedIssue]) -> dict[str, list[AccumulatedIssue]]:
    grouped: dict[str, list[AccumulatedIssue]] = defaultdict(list)
    for issue in issues:
        if not issue.path:
            logger.warning("Skipping finding without path", code_smell_type=issue.code_smell_type)
            continue
        grouped[issue.path].append(issue)
    return dict(grouped)


class FindingPoster:
    """Hands deduplicated findings to a review comment client, one call per file."""

    def __init__(self, client: ReviewCommentClient) -> None:
        self.client = client

    async def post(
        self,
        issues: Sequence[AccumulatedIssue],
        owner: str,
        repo: str,
        pr_number: int,
        access_token: str,
    ) -> PostingResult:
        """Post findings as review comments.

        Args:
            issues: Deduplicated findings.
            owner: Repository owner.
            repo: Repository name.
            pr_number: Pull request number.
            access_token: Bearer credential for the comment API.

        Returns:
            PostingResult; per-file failures are listed in ``errors``.
        """
        posted = 0
        errors: list[str] = []
        for path, file_issues in group_by_path(issues).items():
            comments = [c for c in (build_comment(issue) for issue in file_issues) if c is not None]
            if not comments:
                continue
            try:
                posted += await self.client.create_review_comments(
                    owner, repo, pr_number, comments, access_token
                )
            except Exception as e:
                logger.error("Failed to post comments", path=path, error=str(e))
                errors.append(f"Failed to post comments for {path}: {e}")

        logger.info(
            "Findings posted",
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            posted_count=posted,
            failed_files=len(errors),
        )
        return PostingResult(
            success=not errors,
            posted_count=posted,
            total_issues=len(issues),
            errors=errors,
        )
