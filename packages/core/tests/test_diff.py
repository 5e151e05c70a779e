"""Tests for unified-diff helpers used to locate the code a comment targets."""

from prquorum_core.utils.diff import get_patch_range_content, new_file_lines, parse_patch


def test_empty_patch():
    assert parse_patch("") == []


def test_malformed_hunk_header_does_not_raise():
    assert parse_patch("@@ bad header @@\n+line one") == []


def test_lines_numbered_across_hunks():
    patch = (
        "@@ -1,2 +1,3 @@\n context a\n+added in hunk 1\n context b\n"
        "@@ -10,2 +11,3 @@\n context c\n+added in hunk 2"
    )
    assert new_file_lines(patch) == {
        1: "context a",
        2: "added in hunk 1",
        3: "context b",
        11: "context c",
        12: "added in hunk 2",
    }


class TestParsePatch:
    PATCH = "@@ -1,3 +1,4 @@\n context\n-removed\n+added line\n context2\n"

    def test_one_hunk(self):
        assert len(parse_patch(self.PATCH)) == 1

    def test_removed_lines_have_no_new_line_number(self):
        hunk = parse_patch(self.PATCH)[0]
        assert hunk.new_lines == {1: "context", 2: "added line", 3: "context2"}

    def test_no_newline_marker_ignored(self):
        patch = "@@ -1 +1 @@\n-old\n+new\n\\ No newline at end of file"
        assert new_file_lines(patch) == {1: "new"}


class TestGetPatchRangeContent:
    PATCH = "@@ -10,3 +10,4 @@\n def f():\n-    return 1\n+    x = 2\n+    return x\n \n"

    def test_single_line(self):
        assert get_patch_range_content(self.PATCH, 11, 11) == "    x = 2"

    def test_multi_line_range(self):
        assert get_patch_range_content(self.PATCH, 10, 12) == "def f():\n    x = 2\n    return x"

    def test_range_outside_patch_is_none(self):
        assert get_patch_range_content(self.PATCH, 11, 40) is None

    def test_empty_patch_is_none(self):
        assert get_patch_range_content("", 1, 1) is None
