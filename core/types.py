"""Domain types for package identities, patch metadata and apply outcomes."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

PATCH_SUFFIX = ".patch"
NAME_SEPARATOR = "+"


class PackageIdentity(BaseModel):
    """Exact pinned identity of an installed dependency.

    Attributes:
        name: Package name as declared in its manifest, possibly scoped
            (``@scope/name``).
        version: Exact version string from the same manifest.
    """

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)

    @property
    def spec(self) -> str:
        """Installer argument pinning this exact release (``name@version``)."""
        return f"{self.name}@{self.version}"

    @property
    def sanitized_name(self) -> str:
        """Name with path separators replaced so it fits in a flat filename."""
        return self.name.replace("/", NAME_SEPARATOR)

    @property
    def patch_filename(self) -> str:
        return f"{self.sanitized_name}{NAME_SEPARATOR}{self.version}{PATCH_SUFFIX}"

    @classmethod
    def from_patch_filename(cls, filename: str) -> PackageIdentity:
        """Recover the identity encoded in a patch filename.

        Args:
            filename: Bare filename such as ``@scope+name+1.2.3.patch``.

        Returns:
            The identity the file was written for.

        Raises:
            ValueError: If the filename does not follow the naming scheme.
        """
        if not filename.endswith(PATCH_SUFFIX):
            raise ValueError(f"Not a patch file: {filename}")

        stem = filename[: -len(PATCH_SUFFIX)]
        sanitized, sep, version = stem.rpartition(NAME_SEPARATOR)
        if not sep or not sanitized or not version:
            raise ValueError(f"Patch filename has no version: {filename}")

        # Only scoped names ever contained a separator
        if sanitized.startswith("@"):
            name = sanitized.replace(NAME_SEPARATOR, "/", 1)
        else:
            name = sanitized
        return cls(name=name, version=version)

    def __str__(self) -> str:
        return self.spec


class PatchMetadata(BaseModel):
    """Derived, non-persisted facts about a patch file reported to the operator."""

    path: Path
    line_count: int
    size_bytes: int
    sha256: str
    is_large: bool = False

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024

    @property
    def short_hash(self) -> str:
        return self.sha256[:12]


class ApplyStatus(str, Enum):
    """Outcome of applying a single patch file."""

    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    FAILED = "failed"


class ApplyResult(BaseModel):
    """Tagged result returned by a patch tool for one patch file.

    Attributes:
        status: Which of the three outcomes occurred.
        detail: Tool output explaining a failure; empty on success.
    """

    status: ApplyStatus
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is not ApplyStatus.FAILED

    @property
    def first_detail_line(self) -> str:
        for line in self.detail.splitlines():
            if line.strip():
                return line.strip()
        return ""


class ApplyOutcome(BaseModel):
    """Result of applying one stored patch during an ``apply`` run."""

    patch_path: Path
    status: ApplyStatus
    detail: str = ""

    @property
    def name(self) -> str:
        return self.patch_path.name


class ApplySummary(BaseModel):
    """Aggregated outcomes of one ``apply`` run, in application order."""

    outcomes: list[ApplyOutcome] = Field(default_factory=list)

    @property
    def applied(self) -> int:
        """Patches that are in place after the run, whether applied now or before."""
        return sum(1 for o in self.outcomes if o.status is not ApplyStatus.FAILED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is ApplyStatus.FAILED)

    @property
    def total(self) -> int:
        return len(self.outcomes)
