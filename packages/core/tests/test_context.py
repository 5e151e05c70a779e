"""Tests for repository context assembly.

Each helper in context.py is tested in isolation so failures are easy to
localise; the assembler tests use a mocked PyGithub repository.
"""

import types
from unittest.mock import MagicMock

from github import GithubException

from prquorum_core.models import PullRequestFile, ReviewRequest
from prquorum_core.utils.context import (
    _CODE_INDEX_LIMIT,
    _MAX_COMMIT_LOOKBACK,
    RepoContextAssembler,
    build_code_index,
    fetch_cochanged_paths,
    find_test_file,
    strip_error_sections,
)

SHA = "c" * 40

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_tree(*paths: str):
    """Return a mock git tree whose blobs have the given paths."""
    tree = MagicMock()
    tree.tree = [types.SimpleNamespace(path=p, type="blob") for p in paths]
    return tree


def _make_commit(*filenames: str):
    commit = MagicMock()
    commit.files = [types.SimpleNamespace(filename=f) for f in filenames]
    return commit


def _request(*filenames):
    files = tuple(PullRequestFile(filename=f, status="modified", patch="@@ -1 +1 @@\n+x") for f in filenames)
    return ReviewRequest(owner="acme", repo="api", pr_number=1, head_sha=SHA, base_sha="0" * 40, files=files)


# ---------------------------------------------------------------------------
# strip_error_sections
# ---------------------------------------------------------------------------


class TestStripErrorSections:
    def test_drops_string_values_with_markers(self):
        context = {
            "a": "error: GithubException: 502",
            "b": "Request TIMEOUT",
            "c": "quota exceeded",
            "d": "Invalid token",
            "e": "fine",
        }
        assert strip_error_sections(context) == {"e": "fine"}

    def test_drops_keys_with_markers(self):
        assert strip_error_sections({"last_error": {"x": 1}, "ok": 1}) == {"ok": 1}

    def test_recurses_into_nested_values(self):
        context = {"deps": {"a.py": ["b.py", "timeout fetching c.py"], "note": "error: lookup failed"}, "n": 3}
        assert strip_error_sections(context) == {"deps": {"a.py": ["b.py"]}, "n": 3}

    def test_keeps_file_paths_that_contain_markers(self):
        context = {
            "dependency_graph": {"src/errors.py": ["src/timeout.go"], "src/app.py": []},
            "language_signals": {"test_files": {"src/errors.py": "tests/test_errors.py"}},
            "code_index": ["src/errors.py", "cmd/invalid_input.go"],
        }
        assert strip_error_sections(context) == context

    def test_drops_failed_section_next_to_error_named_file(self):
        context = {
            "dependency_graph": {"src/errors.py": ["src/app.py"]},
            "code_index": "error: RuntimeError: repository tree unavailable",
        }
        assert strip_error_sections(context) == {"dependency_graph": {"src/errors.py": ["src/app.py"]}}

    def test_non_string_values_untouched(self):
        assert strip_error_sections({"count": 4, "flag": None}) == {"count": 4, "flag": None}


# ---------------------------------------------------------------------------
# build_code_index
# ---------------------------------------------------------------------------


class TestBuildCodeIndex:
    def test_lists_blobs_only(self):
        tree = MagicMock()
        tree.tree = [
            types.SimpleNamespace(path="src", type="tree"),
            types.SimpleNamespace(path="src/a.py", type="blob"),
        ]
        assert build_code_index(tree) == ["src/a.py"]

    def test_capped(self):
        tree = _make_tree(*(f"f{i}.py" for i in range(_CODE_INDEX_LIMIT + 50)))
        assert len(build_code_index(tree)) == _CODE_INDEX_LIMIT


# ---------------------------------------------------------------------------
# fetch_cochanged_paths
# ---------------------------------------------------------------------------


class TestFetchCochangedPaths:
    def test_most_frequent_first(self):
        repo = MagicMock()
        repo.get_commits.return_value = [
            _make_commit("src/a.py", "src/b.py", "src/c.py"),
            _make_commit("src/a.py", "src/b.py"),
        ]
        assert fetch_cochanged_paths(repo, "src/a.py", SHA) == ["src/b.py", "src/c.py"]
        repo.get_commits.assert_called_once_with(sha=SHA, path="src/a.py")

    def test_lookback_limited(self):
        repo = MagicMock()
        commits = [_make_commit("src/a.py", "src/b.py") for _ in range(_MAX_COMMIT_LOOKBACK)]
        commits.append(_make_commit("src/a.py", "src/late.py"))
        repo.get_commits.return_value = commits
        assert "src/late.py" not in fetch_cochanged_paths(repo, "src/a.py", SHA)


# ---------------------------------------------------------------------------
# find_test_file
# ---------------------------------------------------------------------------


class TestFindTestFile:
    def test_python_convention(self):
        tracked = {"tests/test_reviewer.py", "src/reviewer.py"}
        assert find_test_file("src/reviewer.py", tracked) == "tests/test_reviewer.py"

    def test_js_convention(self):
        assert find_test_file("src/app.ts", {"src/app.test.ts"}) == "src/app.test.ts"

    def test_no_match(self):
        assert find_test_file("src/app.go", {"src/other_test.go"}) is None


# ---------------------------------------------------------------------------
# RepoContextAssembler
# ---------------------------------------------------------------------------


class TestRepoContextAssembler:
    def test_assembles_every_section(self):
        repo = MagicMock()
        repo.get_git_tree.return_value = _make_tree("src/a.py", "tests/test_a.py", "README.md")
        repo.get_commits.return_value = [_make_commit("src/a.py", "src/b.py")]

        context = RepoContextAssembler(repo).assemble(_request("src/a.py", "logo.png"), "acme")

        assert context["dependency_graph"] == {"src/a.py": ["src/b.py"]}
        assert context["language_signals"] == {
            "languages": {"Python": 1},
            "test_files": {"src/a.py": "tests/test_a.py"},
        }
        assert context["code_index"] == ["src/a.py", "tests/test_a.py", "README.md"]
        assert "knowledge_base" not in context
        repo.get_git_tree.assert_called_once_with(SHA, recursive=True)

    def test_failed_section_recorded_as_error_string(self):
        repo = MagicMock()
        repo.get_git_tree.side_effect = GithubException(404, "Not Found", None)
        repo.get_commits.side_effect = GithubException(502, "Bad Gateway", None)

        context = RepoContextAssembler(repo).assemble(_request("src/a.py"), "acme")

        assert context["dependency_graph"].startswith("error: GithubException")
        assert context["code_index"].startswith("error: RuntimeError")
        # Language signals need no API call beyond the tree.
        assert context["language_signals"] == {"languages": {"Python": 1}}
        assert set(strip_error_sections(context)) == {"language_signals"}

    def test_knowledge_base_included_when_configured(self, tmp_path):
        kb = tmp_path / "kb.md"
        kb.write_text("Always use structured logging.")
        repo = MagicMock()
        repo.get_git_tree.return_value = _make_tree("src/a.py")
        repo.get_commits.return_value = []

        context = RepoContextAssembler(repo, {"knowledge_base": str(kb)}).assemble(_request("src/a.py"), "acme")

        assert context["knowledge_base"] == "Always use structured logging."

    def test_missing_knowledge_base_is_an_error_section(self, tmp_path):
        repo = MagicMock()
        repo.get_git_tree.return_value = _make_tree("src/a.py")
        repo.get_commits.return_value = []
        config = {"knowledge_base": str(tmp_path / "missing.md")}

        context = RepoContextAssembler(repo, config).assemble(_request("src/a.py"), "acme")

        assert context["knowledge_base"].startswith("error: FileNotFoundError")
