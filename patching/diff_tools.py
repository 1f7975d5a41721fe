"""Structural diff tools producing unified diffs between two directory trees.

Two interchangeable implementations are provided behind the ``DiffTool``
interface. ``GnuDiffTool`` shells out to GNU diff and is the default.
``PythonDiffTool`` computes the same kind of output in-process with
:mod:`difflib` and needs no external binaries.

Both tools honor an :class:`~patching.exclusions.ExclusionFilter`, never follow
symbolic links, and treat files missing on one side as empty, so additions
and removals show up as regular hunks whose missing side is stamped with the
epoch.
"""

from __future__ import annotations

import difflib
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from core.exceptions import DiffError
from patching.exclusions import ExclusionFilter

logger = logging.getLogger(__name__)

NO_NEWLINE_MARKER = "\\ No newline at end of file\n"

# Header timestamp marking a side that does not exist, as written by ``diff -N``.
# GNU patch deletes a file whose new side carries it and ends up empty.
EPOCH_TIMESTAMP = "1970-01-01 00:00:00.000000000 +0000"


class DiffTool(ABC):
    """Abstract structural diff tool."""

    @abstractmethod
    def diff(self, old_root: Path, new_root: Path, exclusions: ExclusionFilter) -> str:
        """Return the unified diff turning ``old_root`` into ``new_root``.

        Identical trees yield an empty string. Paths in the output are the
        tool's own spelling of paths under the two roots.

        Raises:
            DiffError: If the tool could not compare the trees.
        """
        pass


class GnuDiffTool(DiffTool):
    """GNU diff backend (``diff -Naur --no-dereference``)."""

    def __init__(self, context_lines: int = 3, executable: str = "diff") -> None:
        self.context_lines = context_lines
        self.executable = executable

    def build_command(
        self, old_root: Path, new_root: Path, exclusions: ExclusionFilter
    ) -> list[str]:
        return [
            self.executable,
            "-N",
            "-a",
            "-r",
            f"-U{self.context_lines}",
            "--no-dereference",
            *exclusions.diff_arguments(),
            str(old_root),
            str(new_root),
        ]

    def diff(self, old_root: Path, new_root: Path, exclusions: ExclusionFilter) -> str:
        command = self.build_command(old_root, new_root, exclusions)
        logger.debug(f"Running diff: {' '.join(command)}")

        try:
            # Bytes, so that CR characters in file content are not translated
            result = subprocess.run(command, capture_output=True)
        except OSError as e:
            raise DiffError(f"Could not run {self.executable}: {e}") from e

        # 0 means identical, 1 means differences were found
        if result.returncode not in (0, 1):
            detail = result.stderr.decode("utf-8", errors="replace").strip()
            raise DiffError(
                f"{self.executable} failed: {detail or f'exit code {result.returncode}'}"
            )

        return result.stdout.decode("utf-8", errors="replace")


class PythonDiffTool(DiffTool):
    """In-process diff backend built on :func:`difflib.unified_diff`."""

    def __init__(self, context_lines: int = 3) -> None:
        self.context_lines = context_lines

    def diff(self, old_root: Path, new_root: Path, exclusions: ExclusionFilter) -> str:
        for root in (old_root, new_root):
            if not root.is_dir():
                raise DiffError(f"Not a directory: {root}")

        old_entries = self._collect(old_root, exclusions)
        new_entries = self._collect(new_root, exclusions)

        chunks = []
        for rel in sorted(set(old_entries) | set(new_entries)):
            chunks.append(
                self._diff_entry(
                    old_root / rel,
                    new_root / rel,
                    old_entries.get(rel),
                    new_entries.get(rel),
                )
            )
        return "".join(chunks)

    def _collect(self, root: Path, exclusions: ExclusionFilter) -> dict[str, Path]:
        """Map every non-excluded file and symlink below ``root`` by relative path."""
        entries: dict[str, Path] = {}
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            current = Path(dirpath)
            kept = []
            for name in sorted(dirnames):
                if exclusions.matches_name(name):
                    continue
                if (current / name).is_symlink():
                    # A link to a directory is compared as a link, not walked
                    entries[(current / name).relative_to(root).as_posix()] = current / name
                    continue
                kept.append(name)
            dirnames[:] = kept

            for name in filenames:
                if exclusions.matches_name(name):
                    continue
                path = current / name
                entries[path.relative_to(root).as_posix()] = path
        return entries

    def _diff_entry(
        self,
        old_label: Path,
        new_label: Path,
        old_path: Path | None,
        new_path: Path | None,
    ) -> str:
        old_link = old_path is not None and old_path.is_symlink()
        new_link = new_path is not None and new_path.is_symlink()

        if old_link or new_link:
            old_target = os.readlink(old_path) if old_link else None
            new_target = os.readlink(new_path) if new_link else None
            if old_target == new_target and old_link == new_link:
                return ""
            return (
                f"Symbolic links {old_label} -> {old_target} and "
                f"{new_label} -> {new_target} differ\n"
            )

        old_bytes = old_path.read_bytes() if old_path is not None else b""
        new_bytes = new_path.read_bytes() if new_path is not None else b""
        if old_bytes == new_bytes:
            return ""

        old_text = self._decode(old_bytes)
        new_text = self._decode(new_bytes)
        if old_text is None or new_text is None:
            return f"Binary files {old_label} and {new_label} differ\n"

        lines = difflib.unified_diff(
            _split_lines(old_text),
            _split_lines(new_text),
            fromfile=str(old_label),
            tofile=str(new_label),
            fromfiledate=EPOCH_TIMESTAMP if old_path is None else "",
            tofiledate=EPOCH_TIMESTAMP if new_path is None else "",
            n=self.context_lines,
        )

        out = [f"diff -Naur {old_label} {new_label}\n"]
        for line in lines:
            if line.endswith("\n"):
                out.append(line)
            else:
                out.append(line + "\n" + NO_NEWLINE_MARKER)
        return "".join(out)

    @staticmethod
    def _decode(data: bytes) -> str | None:
        if b"\0" in data:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return None


def create_diff_tool(name: str, context_lines: int = 3) -> DiffTool:
    """Build the diff tool selected in configuration."""
    if name == "gnu":
        return GnuDiffTool(context_lines=context_lines)
    if name == "python":
        return PythonDiffTool(context_lines=context_lines)
    raise ValueError(f"Unknown diff tool: {name}")


def _split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping line endings, as patch tools count lines."""
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines
