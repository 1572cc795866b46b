# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Workspace accessor backed by a local checkout."""
import asyncio
import fnmatch
import re
from pathlib import Path

from loguru import logger

from argus.core.exceptions import FileSystemError, PathTraversalError
from argus.tools.capabilities import CodeSnippet, FileEntry, SearchMatch


IGNORED_DIRS: frozenset[str] = frozenset({
    ".git",
    ".hg",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    "dist",
    "build",
})

MAX_FILE_BYTES = 1_000_000
MAX_MATCH_PREVIEW = 500
SNIPPET_LINES = 40


class LocalWorkspace:
    """Read-only workspace accessor over a directory on disk.

    Every path is resolved against the root and rejected if it escapes it,
    including through symlinks.

    Attributes:
        root: Resolved workspace root.
    """

    def __init__(self, root: str | Path) -> None:
        root_path = Path(root)
        if not root_path.is_dir():
            raise FileSystemError(f"Workspace root is not a directory: {root}")
        self.root = root_path.resolve()

    def _resolve(self, path: str) -> Path:
        """Resolve a workspace-relative path, rejecting escapes.

        Args:
            path: Relative (or root-anchored absolute) path.

        Returns:
            The resolved absolute path.

        Raises:
            PathTraversalError: If the path resolves outside the root.
        """
        candidate = Path(path.strip() or ".")
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise PathTraversalError(
                f"Path '{path}' resolves to '{resolved}' which is outside the workspace"
            )
        return resolved

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _iter_files(self, base: Path) -> list[Path]:
        if base.is_file():
            return [base]
        files: list[Path] = []
        for path in sorted(base.rglob("*")):
            if any(part in IGNORED_DIRS for part in path.relative_to(self.root).parts):
                continue
            if path.is_file():
                files.append(path)
        return files

    async def read_file(self, path: str) -> str:
        resolved = self._resolve(path)
        if not resolved.is_file():
            raise FileSystemError(f"File not found: {path}")
        if resolved.stat().st_size > MAX_FILE_BYTES:
            raise FileSystemError(f"File too large to read: {path}")
        return await asyncio.to_thread(resolved.read_text, encoding="utf-8", errors="replace")

    async def list_files(self, path: str, recursive: bool = False) -> list[FileEntry]:
        resolved = self._resolve(path)
        if not resolved.is_dir():
            raise FileSystemError(f"Directory not found: {path}")

        def _list() -> list[FileEntry]:
            children = resolved.rglob("*") if recursive else resolved.iterdir()
            entries: list[FileEntry] = []
            for child in sorted(children):
                if any(part in IGNORED_DIRS for part in child.relative_to(self.root).parts):
                    continue
                is_file = child.is_file()
                entries.append(
                    FileEntry(
                        name=child.name,
                        path=self._relative(child),
                        type="file" if is_file else "dir",
                        size=child.stat().st_size if is_file else None,
                    )
                )
            return entries

        return await asyncio.to_thread(_list)

    async def search_files(self, path: str, regex: str, file_pattern: str | None = None) -> list[SearchMatch]:
        resolved = self._resolve(path)
        if not resolved.exists():
            raise FileSystemError(f"Path not found: {path}")
        try:
            pattern = re.compile(regex)
        except re.error as e:
            raise ValueError(f"Invalid regex '{regex}': {e}") from e

        def _search() -> list[SearchMatch]:
            results: list[SearchMatch] = []
            for file in self._iter_files(resolved):
                if file_pattern and not fnmatch.fnmatch(file.name, file_pattern):
                    continue
                if file.stat().st_size > MAX_FILE_BYTES:
                    continue
                text = file.read_text(encoding="utf-8", errors="replace")
                hits = [
                    f"{number} | {line}"
                    for number, line in enumerate(text.splitlines(), start=1)
                    if pattern.search(line)
                ]
                if hits:
                    results.append(
                        SearchMatch(
                            file=self._relative(file),
                            matches=len(hits),
                            content="\n".join(hits)[:MAX_MATCH_PREVIEW],
                        )
                    )
            return results

        results = await asyncio.to_thread(_search)
        logger.debug("Workspace search finished", regex=regex, files=len(results))
        return results

    async def search_code(self, query: str, limit: int = 50) -> list[CodeSnippet]:
        """Rank fixed-size chunks by the share of query terms they contain."""
        terms = {term.lower() for term in re.findall(r"\w+", query) if len(term) > 2}
        if not terms:
            return []

        def _rank() -> list[CodeSnippet]:
            snippets: list[CodeSnippet] = []
            for file in self._iter_files(self.root):
                if file.stat().st_size > MAX_FILE_BYTES:
                    continue
                lines = file.read_text(encoding="utf-8", errors="replace").splitlines()
                for start in range(0, len(lines), SNIPPET_LINES):
                    chunk = "\n".join(lines[start:start + SNIPPET_LINES])
                    lowered = chunk.lower()
                    hits = sum(1 for term in terms if term in lowered)
                    if not hits:
                        continue
                    snippets.append(
                        CodeSnippet(
                            file_path=self._relative(file),
                            score=round(hits / len(terms), 3),
                            start_line=start + 1,
                            end_line=min(start + SNIPPET_LINES, len(lines)),
                            content=chunk,
                        )
                    )
            snippets.sort(key=lambda s: s.score, reverse=True)
            return snippets[:limit]

        return await asyncio.to_thread(_rank)
