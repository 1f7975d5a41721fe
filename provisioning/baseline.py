"""Provisioning of pristine baseline copies of installed packages.

A baseline is a fresh install of exactly the release found in the live
``node_modules`` tree, made inside a scratch directory in the project root.
The scratch directory belongs to a single ``create`` run: any stale leftover
is deleted first and the directory is removed again when the
:meth:`BaselineProvisioner.provision` context exits, whichever way it exits.
"""

from __future__ import annotations

import json
import logging
import shutil
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from core.exceptions import DepatchError, PackageNotFoundError, ProvisionError
from core.types import PackageIdentity
from provisioning.installers import Installer

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"
SCRATCH_MANIFEST = {"name": "temp", "version": "1.0.0"}


@dataclass
class Baseline:
    """A provisioned pristine package.

    Attributes:
        identity: Exact release that was installed.
        scratch_dir: Throwaway project the release was installed into.
        package_path: Directory of the installed package inside ``scratch_dir``.
    """

    identity: PackageIdentity
    scratch_dir: Path
    package_path: Path


class BaselineProvisioner:
    """Installs clean copies of packages for diffing against the live tree.

    Attributes:
        project_root: Project whose ``node_modules`` holds the live packages.
        installers: Installers tried in order until one succeeds.
        node_modules_dir: Live package directory relative to ``project_root``.
        scratch_dir: Scratch project directory used for baseline installs.
    """

    def __init__(
        self,
        project_root: str | Path,
        installers: Sequence[Installer],
        node_modules_dir: str = "node_modules",
        scratch_dir_name: str = ".depatch-tmp",
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.installers = list(installers)
        self.node_modules_dir = self.project_root / node_modules_dir
        self.scratch_dir = self.project_root / scratch_dir_name

    def live_package_path(self, package_name: str) -> Path:
        """Return the live install location of ``package_name``."""
        return self.node_modules_dir.joinpath(*_name_parts(package_name))

    def read_identity(self, package_name: str) -> PackageIdentity:
        """Read the exact name and version from the live package manifest.

        Raises:
            PackageNotFoundError: If the package is not installed.
            DepatchError: If its manifest is unreadable or lacks name/version.
        """
        package_path = self.live_package_path(package_name)
        if not package_path.is_dir():
            raise PackageNotFoundError(package_name, str(self.node_modules_dir))

        manifest_path = package_path / MANIFEST_FILENAME
        if not manifest_path.is_file():
            raise PackageNotFoundError(package_name, str(self.node_modules_dir))

        try:
            with open(manifest_path, encoding="utf-8") as f:
                manifest = json.load(f)
            identity = PackageIdentity(
                name=manifest.get("name", ""), version=manifest.get("version", "")
            )
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            raise DepatchError(f"Invalid manifest {manifest_path}: {e}") from e

        logger.info(f"Live package {package_name} is {identity.spec}")
        return identity

    @contextmanager
    def provision(self, package_name: str) -> Iterator[Baseline]:
        """Install a pristine copy of the live release of ``package_name``.

        The package must already be installed; its manifest decides which
        release is fetched. Missing packages fail before the scratch
        directory is touched.

        Args:
            package_name: Name of the installed package, possibly scoped.

        Yields:
            The provisioned baseline. Valid only inside the ``with`` block.

        Raises:
            PackageNotFoundError: If the package is not installed.
            ProvisionError: If every installer failed.
        """
        identity = self.read_identity(package_name)

        try:
            self._prepare_scratch()
            package_path = self._install(identity)
            yield Baseline(identity=identity, scratch_dir=self.scratch_dir, package_path=package_path)
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Remove the scratch directory if present."""
        if self.scratch_dir.exists() or self.scratch_dir.is_symlink():
            if self.scratch_dir.is_symlink():
                self.scratch_dir.unlink()
            else:
                shutil.rmtree(self.scratch_dir)
            logger.info(f"Cleaned up scratch directory: {self.scratch_dir}")

    def _prepare_scratch(self) -> None:
        if self.scratch_dir.exists() or self.scratch_dir.is_symlink():
            logger.warning(f"Removing stale scratch directory: {self.scratch_dir}")
            self.cleanup()

        self.scratch_dir.mkdir(parents=True)
        with open(self.scratch_dir / MANIFEST_FILENAME, "w", encoding="utf-8") as f:
            json.dump(SCRATCH_MANIFEST, f, indent=2)

    def _install(self, identity: PackageIdentity) -> Path:
        """Try every installer in order and return the installed package path."""
        package_path = self.scratch_dir.joinpath("node_modules", *_name_parts(identity.name))
        failures: list[str] = []

        for installer in self.installers:
            logger.info(f"Installing clean version of {identity.spec} with {installer.name}")
            result = installer.install(identity, self.scratch_dir)

            if result.success and package_path.is_dir():
                return package_path
            if result.success:
                result.detail = f"{package_path.relative_to(self.scratch_dir)} missing after install"
                result.success = False

            failures.append(result.describe())
            logger.warning(f"Installer {installer.name} failed for {identity.spec}: {result.detail}")

        raise ProvisionError(identity.spec, failures)


def _name_parts(package_name: str) -> tuple[str, ...]:
    """Split a package name into path components, rejecting traversal."""
    parts = PurePosixPath(package_name).parts
    if (
        not parts
        or PurePosixPath(package_name).is_absolute()
        or any(part in (".", "..") for part in parts)
        or len(parts) > 2
        or (len(parts) == 2 and not parts[0].startswith("@"))
    ):
        raise PackageNotFoundError(package_name)
    return parts
