"""Structural patch tools applying unified diffs to a directory tree.

A patch tool reports one of three outcomes as an :class:`ApplyResult`:
applied now, already present, or failed. How a particular tool signals
those outcomes (exit codes, messages) stays inside its adapter.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from core.types import ApplyResult, ApplyStatus

logger = logging.getLogger(__name__)

# GNU patch exit status: 0 all hunks applied, 1 some hunks rejected or
# skipped (with --forward, "previously applied"), 2 serious trouble.
PATCH_OK = 0
PATCH_HUNKS_SKIPPED = 1


class PatchTool(ABC):
    """Abstract structural patch tool."""

    @abstractmethod
    def apply(self, patch_file: Path, target_root: Path, strip_level: int = 1) -> ApplyResult:
        """Apply ``patch_file`` forward-only and non-interactively to ``target_root``.

        Args:
            patch_file: Unified diff to apply.
            target_root: Directory the patch paths are relative to after
                stripping ``strip_level`` leading components.
            strip_level: Number of leading path components to strip.

        Returns:
            Tagged result; never raises for a patch that does not apply.
        """
        pass


class GnuPatchTool(PatchTool):
    """GNU patch backend.

    Every patch is first tried with ``--dry-run`` so that a conflicting patch
    leaves neither partial hunks nor ``.rej`` files behind. When forward mode
    skips hunks, a reverse dry run tells an already applied patch apart from
    a genuine conflict: only a patch that reverses cleanly is fully present.
    """

    def __init__(self, executable: str = "patch") -> None:
        self.executable = executable

    def build_command(
        self,
        patch_file: Path,
        strip_level: int,
        dry_run: bool = False,
        reverse: bool = False,
    ) -> list[str]:
        command = [self.executable, f"-p{strip_level}", "--silent"]
        if reverse:
            # --force never flips a reverse patch that looks unreversed
            command += ["--reverse", "--force"]
        else:
            command += ["--forward", "--batch"]
        if dry_run:
            command.append("--dry-run")
        command.append(f"--input={patch_file}")
        return command

    def apply(self, patch_file: Path, target_root: Path, strip_level: int = 1) -> ApplyResult:
        patch_file = Path(patch_file).resolve()
        target_root = Path(target_root)

        try:
            check = self._run_command(
                self.build_command(patch_file, strip_level, dry_run=True), target_root
            )
        except OSError as e:
            return ApplyResult(status=ApplyStatus.FAILED, detail=f"Could not run {self.executable}: {e}")

        if check.returncode == PATCH_OK:
            result = self._run_command(self.build_command(patch_file, strip_level), target_root)
            if result.returncode == PATCH_OK:
                return ApplyResult(status=ApplyStatus.APPLIED)
            return ApplyResult(status=ApplyStatus.FAILED, detail=_output(result))

        if check.returncode == PATCH_HUNKS_SKIPPED:
            reverse = self._run_command(
                self.build_command(patch_file, strip_level, dry_run=True, reverse=True),
                target_root,
            )
            if reverse.returncode == PATCH_OK:
                return ApplyResult(status=ApplyStatus.ALREADY_APPLIED)
            logger.debug(f"Reverse check for {patch_file.name} failed: {_output(reverse)}")

        return ApplyResult(status=ApplyStatus.FAILED, detail=_output(check))

    def _run_command(self, command: list[str], cwd: Path) -> subprocess.CompletedProcess:
        """Run the patch executable in ``cwd`` with captured output."""
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            stdin=subprocess.DEVNULL,
        )
        logger.debug(f"Command '{' '.join(command)}' completed with exit code {result.returncode}")
        return result


def _output(result: subprocess.CompletedProcess) -> str:
    text = (result.stderr or "").strip() or (result.stdout or "").strip()
    return text or f"exit code {result.returncode}"
