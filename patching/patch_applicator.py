"""Batch application of stored patches onto the installed package tree.

Each patch goes through its own small state machine: pending, then applied,
already applied, or failed. Already applied counts as success so that
``apply`` can run after every install. A failing patch is recorded and the
batch moves on; one bad patch never blocks the others.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from core.types import ApplyOutcome, ApplyResult, ApplyStatus, ApplySummary
from patching.patch_store import PatchStore
from patching.patch_tools import PatchTool

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[ApplyOutcome], None]


class PatchApplicator:
    """Applies patch files in order and aggregates their outcomes.

    Attributes:
        patch_tool: Tool performing the forward-only, non-interactive apply.
        strip_level: Leading path components stripped from patch paths.
    """

    def __init__(self, patch_tool: PatchTool, strip_level: int = 1) -> None:
        self.patch_tool = patch_tool
        self.strip_level = strip_level

    def apply_patch(self, patch_path: str | Path, target_root: str | Path) -> ApplyOutcome:
        """Apply a single patch and classify the outcome.

        Unexpected errors from the tool are converted into a failed outcome
        for this patch only.
        """
        patch_path = Path(patch_path)
        logger.info(f"Applying {patch_path.name} to {target_root}")

        try:
            result = self.patch_tool.apply(patch_path, Path(target_root), self.strip_level)
        except Exception as e:
            logger.error(f"Patch tool raised for {patch_path.name}: {e}")
            result = ApplyResult(status=ApplyStatus.FAILED, detail=str(e))

        outcome = ApplyOutcome(
            patch_path=patch_path,
            status=result.status,
            detail=result.first_detail_line if result.status is ApplyStatus.FAILED else "",
        )

        if outcome.status is ApplyStatus.FAILED:
            logger.warning(f"Failed to apply {patch_path.name}: {outcome.detail}")
        else:
            logger.info(f"{patch_path.name}: {outcome.status.value}")
        return outcome

    def apply_all(
        self,
        patch_paths: Iterable[str | Path],
        target_root: str | Path,
        on_outcome: OutcomeCallback | None = None,
    ) -> ApplySummary:
        """Apply every patch in enumeration order without short-circuiting.

        Args:
            patch_paths: Patch files to apply.
            target_root: Directory patch paths are resolved against.
            on_outcome: Optional callback invoked after each patch, used by
                the CLI to report progress as it happens.

        Returns:
            Summary of all outcomes; empty when there was nothing to apply.
        """
        summary = ApplySummary()
        for patch_path in patch_paths:
            outcome = self.apply_patch(patch_path, target_root)
            summary.outcomes.append(outcome)
            if on_outcome is not None:
                on_outcome(outcome)

        logger.info(f"Apply finished: {summary.applied} applied, {summary.failed} failed")
        return summary

    def apply_store(
        self,
        store: PatchStore,
        target_root: str | Path,
        on_outcome: OutcomeCallback | None = None,
    ) -> ApplySummary:
        """Apply every patch held by ``store``. A missing store is a no-op."""
        return self.apply_all(store.list_all(), target_root, on_outcome=on_outcome)
