"""Error and warning taxonomy shared by every depatch component.

Fatal conditions are exceptions derived from ``DepatchError`` so that the CLI
can report them uniformly. Non-fatal conditions are ``UserWarning`` subclasses
emitted through :mod:`warnings`, leaving the caller free to surface or ignore
them.
"""

from __future__ import annotations


class DepatchError(Exception):
    """Base exception for all depatch failures."""

    pass


class ConfigError(DepatchError):
    """Raised when a configuration file cannot be loaded or validated."""

    pass


class PackageNotFoundError(DepatchError):
    """Raised when the package to patch is not installed in the live tree."""

    def __init__(self, package_name: str, search_path: str | None = None) -> None:
        self.package_name = package_name
        self.search_path = search_path
        location = f" in {search_path}" if search_path else ""
        super().__init__(f"Package {package_name} not found{location}")


class ProvisionError(DepatchError):
    """Raised when every installer failed to produce a baseline tree.

    Attributes:
        failures: One human-readable line per failed installer, in the order
            the installers were attempted.
    """

    def __init__(self, spec: str, failures: list[str]) -> None:
        self.spec = spec
        self.failures = list(failures)
        details = "; ".join(self.failures) if self.failures else "no installer configured"
        super().__init__(f"Could not install clean copy of {spec}: {details}")


class DiffError(DepatchError):
    """Raised when the diff tool itself fails (not when trees differ)."""

    pass


class EmptyDiffWarning(UserWarning):
    """The filtered diff between baseline and live tree is empty."""


class LargePatchWarning(UserWarning):
    """A written patch exceeds the size heuristic and may contain binary content."""
