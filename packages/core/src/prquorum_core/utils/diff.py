"""Unified-diff helpers used to locate the code a comment targets."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DiffHunk:
    # new-file line number → line content, for added and context lines
    new_lines: dict[int, str] = field(default_factory=dict)


def _hunk_new_start(header: str) -> int | None:
    try:
        new_file_range = header.split("+")[1].split(" ")[0]
        return int(new_file_range.split(",")[0])
    except (IndexError, ValueError):
        return None


def parse_patch(patch_text: str) -> list[DiffHunk]:
    """Split a unified diff patch into hunks keyed by new-file line numbers."""
    hunks: list[DiffHunk] = []
    current: DiffHunk | None = None
    file_line: int | None = None

    for line in (patch_text or "").splitlines():
        if line.startswith("@@"):
            file_line = _hunk_new_start(line)
            current = DiffHunk() if file_line is not None else None
            if current is not None:
                hunks.append(current)
            continue
        if current is None or file_line is None:
            continue
        if line.startswith("-") and not line.startswith("---"):
            continue  # removed line: no new-file line number
        if line.startswith("\\"):
            continue  # "\ No newline at end of file"
        content = line[1:] if line and line[0] in ("+", " ") else line
        current.new_lines[file_line] = content
        file_line += 1

    return hunks


def new_file_lines(patch_text: str) -> dict[int, str]:
    """All new-file lines visible in the patch (added and context)."""
    lines: dict[int, str] = {}
    for hunk in parse_patch(patch_text):
        lines.update(hunk.new_lines)
    return lines


def get_patch_range_content(patch_text: str, start_line: int, end_line: int) -> str | None:
    """Return new-file lines start_line..end_line joined by newlines.

    None when any line in the range is not visible in the patch.
    """
    visible = new_file_lines(patch_text)
    chunk = []
    for number in range(start_line, end_line + 1):
        if number not in visible:
            return None
        chunk.append(visible[number])
    return "\n".join(chunk)
