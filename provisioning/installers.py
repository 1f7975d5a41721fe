"""Package installers used to fetch pristine copies of pinned releases.

Each installer installs exactly one ``name@version`` into a directory that
already holds a throwaway ``package.json``. Installers are tried in sequence
by the baseline provisioner: bun first because it is fast, then npm with
``--legacy-peer-deps`` to relax peer dependency resolution.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from core.types import PackageIdentity

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_TIMEOUT_SECONDS = 60


@dataclass
class InstallResult:
    """Outcome of one installer attempt."""

    installer: str
    success: bool
    detail: str = ""

    def describe(self) -> str:
        return f"{self.installer}: {self.detail}" if self.detail else self.installer


class Installer(ABC):
    """Abstract package installer."""

    name: str = "installer"

    @abstractmethod
    def install(self, identity: PackageIdentity, target_dir: Path) -> InstallResult:
        """Install ``identity`` into ``target_dir``.

        Failures (timeouts, registry errors, missing executables) are reported
        through the result rather than raised.
        """
        pass


class CommandInstaller(Installer):
    """Installer driven by an external command with a timeout ceiling."""

    def __init__(self, timeout_seconds: int = DEFAULT_INSTALL_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def build_command(self, identity: PackageIdentity) -> list[str]:
        pass

    def install(self, identity: PackageIdentity, target_dir: Path) -> InstallResult:
        command = self.build_command(identity)
        logger.debug(f"Running '{' '.join(command)}' in {target_dir}")

        try:
            result = subprocess.run(
                command,
                cwd=target_dir,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command '{' '.join(command)}' timed out after {self.timeout_seconds} seconds")
            return InstallResult(
                self.name, False, f"timed out after {self.timeout_seconds} seconds"
            )
        except OSError as e:
            return InstallResult(self.name, False, f"could not run {command[0]}: {e}")

        if result.returncode != 0:
            output = (result.stderr or "").strip() or (result.stdout or "").strip()
            first_line = output.splitlines()[0] if output else f"exit code {result.returncode}"
            return InstallResult(self.name, False, first_line)

        return InstallResult(self.name, True)


class BunInstaller(CommandInstaller):
    """Fast primary installer (``bun add``)."""

    name = "bun"

    def build_command(self, identity: PackageIdentity) -> list[str]:
        return ["bun", "add", identity.spec]


class NpmInstaller(CommandInstaller):
    """Fallback installer with relaxed peer dependency resolution."""

    name = "npm"

    def build_command(self, identity: PackageIdentity) -> list[str]:
        return ["npm", "install", "--no-save", "--legacy-peer-deps", identity.spec]


INSTALLERS: dict[str, type[CommandInstaller]] = {
    BunInstaller.name: BunInstaller,
    NpmInstaller.name: NpmInstaller,
}


def create_installers(
    names: list[str], timeout_seconds: int = DEFAULT_INSTALL_TIMEOUT_SECONDS
) -> list[Installer]:
    """Build installers in the configured order."""
    installers: list[Installer] = []
    for name in names:
        if name not in INSTALLERS:
            raise ValueError(f"Unknown installer: {name}")
        installers.append(INSTALLERS[name](timeout_seconds=timeout_seconds))
    return installers
