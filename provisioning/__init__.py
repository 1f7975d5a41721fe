"""Baseline provisioning: fresh installs of pinned package releases."""

from provisioning.baseline import Baseline, BaselineProvisioner
from provisioning.installers import (
    BunInstaller,
    Installer,
    InstallResult,
    NpmInstaller,
    create_installers,
)

__all__ = [
    "Baseline",
    "BaselineProvisioner",
    "BunInstaller",
    "InstallResult",
    "Installer",
    "NpmInstaller",
    "create_installers",
]
