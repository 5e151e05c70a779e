"""Tests for parsing free-text model output."""

import json

import pytest

from prquorum_core.errors import ResponseParseError, VerdictParseError
from prquorum_core.parsing import (
    category_from_body,
    extract_suggestion,
    has_suggestion,
    parse_approval_verdict,
    parse_comment_items,
)

VALID = json.dumps([{"path": "src/a.py", "line": 3, "body": "Missing error handling"}])


class TestParseCommentItems:
    def test_parses_valid_list(self):
        items = parse_comment_items(VALID)
        assert items == [{"path": "src/a.py", "line": 3, "start_line": None, "body": "Missing error handling"}]

    def test_strips_markdown_fence(self):
        assert len(parse_comment_items(f"```json\n{VALID}\n```")) == 1

    def test_preserves_code_blocks_inside_bodies(self):
        payload = json.dumps([{"path": "a.py", "line": 1, "body": "Use:\n```suggestion\nfoo()\n```"}])
        items = parse_comment_items(f"```json\n{payload}\n```")
        assert "```suggestion" in items[0]["body"]

    def test_accepts_wrapped_object(self):
        raw = json.dumps({"comments": [{"path": "a.py", "line": 2, "comment": "x"}]})
        items = parse_comment_items(raw)
        assert items[0]["body"] == "x"

    def test_empty_list_means_no_issues(self):
        assert parse_comment_items("[]") == []

    def test_start_line_kept(self):
        raw = json.dumps([{"path": "a.py", "line": 5, "start_line": 3, "body": "x"}])
        assert parse_comment_items(raw)[0]["start_line"] == 3

    def test_incomplete_items_dropped(self):
        raw = json.dumps(
            [
                {"path": "a.py", "body": "no line"},
                {"line": 1, "body": "no path"},
                {"path": "a.py", "line": 1},
                {"path": "a.py", "line": 0, "body": "zero line"},
                {"path": "a.py", "line": "7", "body": "string line"},
            ]
        )
        items = parse_comment_items(raw)
        assert [i["line"] for i in items] == [7]

    def test_invalid_json_raises(self):
        with pytest.raises(ResponseParseError):
            parse_comment_items("not json at all")

    def test_non_list_raises(self):
        with pytest.raises(ResponseParseError):
            parse_comment_items(json.dumps({"verdict": "ok"}))

    def test_non_object_entries_raise(self):
        with pytest.raises(ResponseParseError):
            parse_comment_items(json.dumps(["just a string"]))


class TestSuggestions:
    BODY = "Rename it.\n\n```suggestion\nvalue = compute()\n```\n"

    def test_extracts_suggestion(self):
        assert extract_suggestion(self.BODY) == "value = compute()\n"

    def test_no_suggestion(self):
        assert extract_suggestion("plain comment") is None
        assert has_suggestion("plain comment") is False

    def test_has_suggestion(self):
        assert has_suggestion(self.BODY) is True


class TestCategoryFromBody:
    def test_json_body_with_category(self):
        assert category_from_body(json.dumps({"category": "security", "text": "x"})) == "security"

    def test_plain_text_defaults_to_general(self):
        assert category_from_body("**[BUG]**\n\nNull deref") == "general"

    def test_json_without_category(self):
        assert category_from_body(json.dumps({"text": "x"})) == "general"

    def test_json_list_defaults_to_general(self):
        assert category_from_body("[1, 2]") == "general"

    def test_default_used_for_plain_text(self):
        assert category_from_body("**[BUG]**\n\nNull deref", "bug") == "bug"


class TestParseApprovalVerdict:
    def test_bare_approve(self):
        verdict = parse_approval_verdict("approve")
        assert verdict.approve is True
        assert verdict.reason == ""

    def test_approve_with_reason(self):
        verdict = parse_approval_verdict("  Approve:   only style nits were raised  ")
        assert verdict.approve is True
        assert verdict.reason == "only style nits were raised"

    def test_reject_with_reason(self):
        verdict = parse_approval_verdict("REJECT: SQL injection in handler")
        assert verdict.approve is False
        assert verdict.reason == "SQL injection in handler"

    @pytest.mark.parametrize(
        "text",
        ["", "approved", "approve because it is fine", "reject", "reject:   ", "LGTM", "maybe: later"],
    )
    def test_unrecognised_shapes_raise(self, text):
        with pytest.raises(VerdictParseError):
            parse_approval_verdict(text)
