"""Coordination of the ``create`` and ``apply`` patch workflows.

``create`` provisions a pristine baseline of an installed package, diffs it
against the live copy and stores the result. It is a single unit of work:
any provisioning or diff error aborts it without writing a patch, and the
baseline scratch directory is always removed. ``apply`` replays every stored
patch onto the live tree, isolating failures per patch.
"""

from __future__ import annotations

import logging
import warnings

from core.config import Config
from core.exceptions import EmptyDiffWarning
from core.types import ApplySummary, PackageIdentity, PatchMetadata
from patching import (
    DiffEngine,
    ExclusionFilter,
    GnuPatchTool,
    PatchApplicator,
    PatchStore,
    create_diff_tool,
)
from patching.patch_applicator import OutcomeCallback
from provisioning import BaselineProvisioner, create_installers

logger = logging.getLogger(__name__)


class PatchCoordinator:
    """Drives the patch lifecycle for one project.

    Components are built from configuration unless supplied explicitly,
    which lets tests substitute in-process fakes for the installers and the
    patch tool.

    Attributes:
        config: Configuration for this invocation.
        provisioner: Produces pristine baselines of installed packages.
        diff_engine: Computes filtered, normalized patches.
        store: Patch file directory.
        applicator: Applies stored patches to the live tree.
    """

    def __init__(
        self,
        config: Config,
        provisioner: BaselineProvisioner | None = None,
        diff_engine: DiffEngine | None = None,
        store: PatchStore | None = None,
        applicator: PatchApplicator | None = None,
    ) -> None:
        self.config = config
        self.project_root = config.get_project_root()

        self.provisioner = provisioner or BaselineProvisioner(
            self.project_root,
            create_installers(
                config.provision.installers, config.provision.install_timeout_seconds
            ),
            node_modules_dir=config.provision.node_modules_dir,
            scratch_dir_name=config.provision.scratch_dir_name,
        )

        if diff_engine is None:
            exclusions = ExclusionFilter.default().extended(*config.diff.extra_exclude_patterns)
            diff_engine = DiffEngine(
                create_diff_tool(config.diff.tool, config.diff.context_lines), exclusions
            )
        self.diff_engine = diff_engine

        self.store = store or PatchStore(
            config.get_patches_dir(), config.patches.large_patch_threshold_kb
        )
        self.applicator = applicator or PatchApplicator(
            GnuPatchTool(), strip_level=config.apply.strip_level
        )

        logger.debug(f"Initialized patch coordinator for {self.project_root}")

    def create_patch(self, package_name: str) -> PatchMetadata | None:
        """Capture local edits to an installed package as a patch file.

        Args:
            package_name: Installed package to capture, possibly scoped.

        Returns:
            Metadata of the written patch, or None when the live package does
            not differ from a clean install (an :class:`EmptyDiffWarning` is
            emitted in that case).

        Raises:
            PackageNotFoundError: If the package is not installed.
            ProvisionError: If no installer could fetch the baseline.
            DiffError: If the diff tool failed.
        """
        live_path = self.provisioner.live_package_path(package_name)

        with self.provisioner.provision(package_name) as baseline:
            label = live_path.relative_to(self.project_root).as_posix()
            logger.info(f"Generating diff for {baseline.identity.spec}")
            patch_text = self.diff_engine.diff(baseline.package_path, live_path, label)

        if not patch_text:
            warnings.warn(
                f"No changes detected for {baseline.identity.spec}. "
                f"Did you modify files in {live_path}?",
                EmptyDiffWarning,
                stacklevel=2,
            )
            return None

        return self.store.write(baseline.identity, patch_text)

    def apply_patches(self, on_outcome: OutcomeCallback | None = None) -> ApplySummary:
        """Apply every stored patch to the project, one at a time."""
        return self.applicator.apply_store(self.store, self.project_root, on_outcome=on_outcome)

    def list_patches(self) -> list[tuple[PackageIdentity | None, PatchMetadata]]:
        """Describe every stored patch with the release it targets."""
        return [
            (self.store.identity_for(path), self.store.metadata_for(path))
            for path in self.store.list_all()
        ]
