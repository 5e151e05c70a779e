"""Additional review context assembled from the repository.

Every section is fetched via the GitHub API pinned to the PR's head SHA, so
all context belongs to the same immutable snapshot as the diff. Sections are
computed independently: one failing section records an ``"error: ..."``
string under its key instead of aborting the others, and the orchestrator
strips such entries before anything reaches a prompt.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import PurePosixPath
from typing import Protocol

from prquorum_core.config import load_knowledge_base
from prquorum_core.models import ReviewRequest
from prquorum_core.utils.code import is_code_file, language_of

logger = logging.getLogger(__name__)

# Every changed file costs one get_commits() call; 10 commits is enough for a
# strong coupling signal.
_MAX_COMMIT_LOOKBACK = 10
_MAX_COCHANGED_PER_FILE = 5

# A monorepo with 10,000 tracked files adds no signal beyond a few hundred paths.
_CODE_INDEX_LIMIT = 300

_KNOWLEDGE_BASE_CHAR_LIMIT = 8_000

ERROR_MARKERS = ("error", "timeout", "exceeded", "invalid")

# Test/spec filename patterns. {stem} = filename without extension,
# {suffix} = extension including the dot.
_TEST_PATTERNS = [
    "test_{stem}{suffix}",  # Python:      test_reviewer.py
    "{stem}_test{suffix}",  # Go / Rust:   reviewer_test.go
    "{stem}.test{suffix}",  # JS / TS:     reviewer.test.ts
    "{stem}.spec{suffix}",  # JS / TS:     reviewer.spec.js
    "{stem}_spec{suffix}",  # Ruby:        reviewer_spec.rb
]


class ContextAssembler(Protocol):
    def assemble(self, request: ReviewRequest, company_id: str) -> dict: ...


def _has_error_marker(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in ERROR_MARKERS)


def _is_failure_message(value) -> bool:
    # Repository paths carry no whitespace; failure records are prose.
    return isinstance(value, str) and any(c.isspace() for c in value) and _has_error_marker(value)


def _strip_nested(value):
    if isinstance(value, dict):
        return {k: _strip_nested(v) for k, v in value.items() if not _is_failure_message(v)}
    if isinstance(value, list):
        return [_strip_nested(item) for item in value if not _is_failure_message(item)]
    return value


def strip_error_sections(context: dict) -> dict:
    """Drop sections that failed and failure messages recorded inside sections.

    A top-level section is dropped when its name or string value mentions
    "error", "timeout", "exceeded" or "invalid" (case-insensitive). Below
    the top level only prose strings carrying a marker are dropped; keys
    there are data such as file paths and are kept as-is.
    """
    cleaned = {}
    for key, value in context.items():
        if _has_error_marker(str(key)):
            continue
        if isinstance(value, str) and _has_error_marker(value):
            continue
        cleaned[key] = _strip_nested(value)
    return cleaned


def build_code_index(tree) -> list[str]:
    """Return tracked blob paths at the tree snapshot, capped at _CODE_INDEX_LIMIT."""
    paths = [f.path for f in tree.tree if f.type == "blob"]
    return paths[:_CODE_INDEX_LIMIT]


def fetch_cochanged_paths(repo, file_path: str, head_sha: str) -> list[str]:
    """Return paths historically committed alongside ``file_path``, most frequent first.

    Co-change coupling is language-agnostic: files modified in the same
    commits are coupled whether or not an import expresses it.
    """
    counter: Counter[str] = Counter()
    # Lazy iteration avoids forcing PyGithub to page past what we need.
    commits = repo.get_commits(sha=head_sha, path=file_path)
    for i, commit in enumerate(commits):
        if i >= _MAX_COMMIT_LOOKBACK:
            break
        for f in commit.files:
            if f.filename != file_path:
                counter[f.filename] += 1
    return [path for path, _ in counter.most_common(_MAX_COCHANGED_PER_FILE)]


def find_test_file(file_path: str, tracked: set[str]) -> str | None:
    """Locate the test or spec file paired with a source file by naming convention."""
    stem = PurePosixPath(file_path).stem
    suffix = PurePosixPath(file_path).suffix
    for pattern in _TEST_PATTERNS:
        name = pattern.format(stem=stem, suffix=suffix)
        matches = sorted(p for p in tracked if PurePosixPath(p).name == name)
        if matches:
            return matches[0]
    return None


class RepoContextAssembler:
    """Builds the dependency graph, language signals, code index and knowledge base sections."""

    def __init__(self, repo, config: dict | None = None):
        self.repo = repo
        self.config = config or {}

    def assemble(self, request: ReviewRequest, company_id: str) -> dict:
        code_files = [f.filename for f in request.files if is_code_file(f.filename)]
        logger.debug("Assembling context for %d file(s) (company=%s)", len(code_files), company_id)

        tree = None
        try:
            tree = self.repo.get_git_tree(request.head_sha, recursive=True)
        except Exception as e:
            logger.warning("Could not fetch repo tree; tree-based context will be skipped: %s", e)

        context: dict = {}
        context["dependency_graph"] = self._section(self._dependency_graph, code_files, request.head_sha)
        context["language_signals"] = self._section(self._language_signals, code_files, tree)
        context["code_index"] = self._section(self._code_index, tree)
        if self.config.get("knowledge_base"):
            context["knowledge_base"] = self._section(self._knowledge_base)
        return context

    @staticmethod
    def _section(builder, *args):
        try:
            return builder(*args)
        except Exception as e:
            logger.warning("Context section %s failed: %s", builder.__name__.lstrip("_"), e)
            return f"error: {type(e).__name__}: {e}"

    def _dependency_graph(self, files: list[str], head_sha: str) -> dict[str, list[str]]:
        graph = {}
        for path in files:
            graph[path] = fetch_cochanged_paths(self.repo, path, head_sha)
        return graph

    def _language_signals(self, files: list[str], tree) -> dict:
        languages = Counter(lang for lang in (language_of(f) for f in files) if lang)
        signals: dict = {"languages": dict(languages.most_common())}
        if tree is not None:
            tracked = {f.path for f in tree.tree if f.type == "blob"}
            signals["test_files"] = {f: find_test_file(f, tracked) for f in files}
        return signals

    def _code_index(self, tree) -> list[str]:
        if tree is None:
            raise RuntimeError("repository tree unavailable")
        return build_code_index(tree)

    def _knowledge_base(self) -> str:
        return load_knowledge_base(self.config)[:_KNOWLEDGE_BASE_CHAR_LIMIT]
