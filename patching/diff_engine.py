"""Filtered, path-normalized diffs between a baseline tree and a live tree.

The diff tool reports paths the way it saw them, which means absolute paths
into a throwaway scratch directory plus modification timestamps. Neither is
portable nor stable across runs, so the engine rewrites every file header to
``a/<label>/...`` and ``b/<label>/...`` and drops timestamps, keeping only the
epoch stamp that marks an added or removed file. The result applies with
``patch -p1`` from the project root and is byte-identical for unchanged trees.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path

from patching.diff_tools import EPOCH_TIMESTAMP, DiffTool
from patching.exclusions import ExclusionFilter

logger = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@")
EXCLUDE_ARGUMENT = re.compile(r" --exclude=\S+")
TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})(?:\.(\d+))? ([+-]\d{4})$")


class DiffEngine:
    """Computes portable patches by driving a diff tool with an exclusion filter.

    Attributes:
        diff_tool: Structural diff tool comparing two directory trees.
        exclusions: Paths that never appear in the produced patches.
    """

    def __init__(self, diff_tool: DiffTool, exclusions: ExclusionFilter | None = None) -> None:
        self.diff_tool = diff_tool
        self.exclusions = exclusions if exclusions is not None else ExclusionFilter.default()

    def diff(self, baseline_root: str | Path, live_root: str | Path, label: str) -> str:
        """Diff the pristine baseline against the live package.

        Args:
            baseline_root: Directory of the freshly installed package.
            live_root: Directory of the installed, possibly edited package.
            label: Project-relative location of the package, for example
                ``node_modules/@scope/name``. Used as the path below the
                ``a/`` and ``b/`` prefixes.

        Returns:
            Normalized unified diff, or an empty string if nothing but excluded
            paths differ.

        Raises:
            DiffError: If the diff tool fails.
        """
        baseline_root = Path(baseline_root)
        live_root = Path(live_root)

        raw = self.diff_tool.diff(baseline_root, live_root, self.exclusions)
        if not raw.strip():
            logger.info(f"No differences between {baseline_root} and {live_root}")
            return ""

        normalized = normalize_diff(raw, baseline_root, live_root, label)
        logger.debug(f"Normalized diff for {label}: {len(normalized)} characters")
        return normalized if normalized.strip() else ""


def normalize_diff(raw: str, old_root: Path, new_root: Path, label: str) -> str:
    """Rewrite tool-specific paths in ``raw`` to ``a/<label>`` and ``b/<label>``.

    Hunk bodies are passed through untouched. Their length is tracked from
    the hunk header so that a removed line starting with ``--`` is never
    mistaken for a file header. Lines are split on ``\\n`` only, so CR and
    other control characters stay part of the line they belong to.

    Header timestamps are dropped, except on the side of a file that does
    not exist: that side keeps a canonical epoch stamp so that GNU patch
    creates and deletes files instead of leaving empty ones behind.
    """
    label = label.strip("/")
    roots = [
        (str(old_root).rstrip("/"), f"a/{label}"),
        (str(new_root).rstrip("/"), f"b/{label}"),
    ]
    # Longest root first so that nested roots are never partially replaced
    roots.sort(key=lambda item: len(item[0]), reverse=True)

    lines = [line for line in re.split(r"(?<=\n)", raw) if line]
    out: list[str] = []
    old_remaining = new_remaining = 0
    index = 0

    while index < len(lines):
        line = lines[index]
        index += 1

        if old_remaining > 0 or new_remaining > 0:
            tag = line[:1]
            if tag == " ":
                old_remaining -= 1
                new_remaining -= 1
                out.append(line)
                continue
            if tag == "-":
                old_remaining -= 1
                out.append(line)
                continue
            if tag == "+":
                new_remaining -= 1
                out.append(line)
                continue
            if tag == "\\":
                out.append(line)
                continue
            # Truncated hunk; resynchronize on the next header
            old_remaining = new_remaining = 0

        if line.startswith("@@"):
            counts = _hunk_counts(line)
            if counts is not None:
                old_remaining, new_remaining = counts
            out.append(line)
        elif line.startswith("--- ") and index < len(lines) and lines[index].startswith("+++ "):
            new_line = lines[index]
            index += 1
            counts = _hunk_counts(lines[index]) if index < len(lines) else None
            old_absent = counts is not None and counts[0] == 0
            new_absent = counts is not None and counts[1] == 0
            out.append(_rewrite_file_header(line, roots, old_absent))
            out.append(_rewrite_file_header(new_line, roots, new_absent))
        elif line.startswith("--- ") or line.startswith("+++ "):
            out.append(_rewrite_file_header(line, roots, False))
        elif line.startswith("diff "):
            out.append(_replace_roots(EXCLUDE_ARGUMENT.sub("", line), roots))
        elif line.startswith("Binary files ") or line.startswith("Symbolic links "):
            out.append(_replace_roots(line, roots))
        else:
            out.append(line)

    return "".join(out)


def _hunk_counts(line: str) -> tuple[int, int] | None:
    """Return the old and new line counts of a hunk header, if ``line`` is one."""
    match = HUNK_HEADER.match(line)
    if match is None:
        return None
    old_count = int(match.group(1)) if match.group(1) is not None else 1
    new_count = int(match.group(2)) if match.group(2) is not None else 1
    return old_count, new_count


def _rewrite_file_header(line: str, roots: list[tuple[str, str]], may_be_absent: bool) -> str:
    marker, rest = line[:4], line[4:]
    path, _, stamp = rest.rstrip("\r\n").partition("\t")
    for root, prefix in roots:
        if path == root or path.startswith(root + "/"):
            path = prefix + path[len(root):]
            break
    if may_be_absent and _is_epoch(stamp):
        return f"{marker}{path}\t{EPOCH_TIMESTAMP}\n"
    return f"{marker}{path}\n"


def _is_epoch(stamp: str) -> bool:
    """Check whether a header timestamp denotes the epoch in any time zone."""
    match = TIMESTAMP.match(stamp.strip())
    if match is None or (match.group(2) and match.group(2).strip("0")):
        return False
    moment = datetime.strptime(f"{match.group(1)} {match.group(3)}", "%Y-%m-%d %H:%M:%S %z")
    return moment.timestamp() == 0


def _replace_roots(line: str, roots: list[tuple[str, str]]) -> str:
    for root, prefix in roots:
        line = line.replace(root + "/", prefix + "/")
    return line
