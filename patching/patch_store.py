"""Directory of named patch files, one per pinned package release.

Patch files are named ``{sanitized-name}+{version}.patch`` so that the name
alone identifies the release a patch was captured against. Scoped package
names (``@scope/name``) have their separator replaced with ``+``; since ``/``
cannot otherwise appear in a package name the scheme never collides.

The store does no locking. Writes overwrite the single file for a release and
concurrent writers to the same release are last-writer-wins.
"""

from __future__ import annotations

import hashlib
import logging
import warnings
from pathlib import Path

from core.exceptions import LargePatchWarning
from core.types import PATCH_SUFFIX, PackageIdentity, PatchMetadata

logger = logging.getLogger(__name__)

DEFAULT_LARGE_PATCH_THRESHOLD_KB = 100


def compute_metadata(
    path: Path, patch_text: str, large_patch_threshold_kb: float = DEFAULT_LARGE_PATCH_THRESHOLD_KB
) -> PatchMetadata:
    """Derive line count, byte size and SHA-256 digest of a patch body."""
    data = patch_text.encode("utf-8")
    return PatchMetadata(
        path=path,
        line_count=len(patch_text.splitlines()),
        size_bytes=len(data),
        sha256=hashlib.sha256(data).hexdigest(),
        is_large=len(data) / 1024 > large_patch_threshold_kb,
    )


class PatchStore:
    """Persistent store of patch files for installed packages.

    Attributes:
        patches_dir: Directory holding the patch files. Created on first write.
        large_patch_threshold_kb: Size above which a written patch is flagged
            as suspiciously large.
    """

    def __init__(
        self,
        patches_dir: str | Path,
        large_patch_threshold_kb: float = DEFAULT_LARGE_PATCH_THRESHOLD_KB,
    ) -> None:
        self.patches_dir = Path(patches_dir)
        self.large_patch_threshold_kb = large_patch_threshold_kb

    def path_for(self, identity: PackageIdentity) -> Path:
        """Return the patch file location for a package release."""
        return self.patches_dir / identity.patch_filename

    def write(self, identity: PackageIdentity, patch_text: str) -> PatchMetadata:
        """Write (or overwrite) the patch for a package release.

        The patch is always written. When it exceeds the size threshold a
        :class:`LargePatchWarning` is emitted, since oversized patches usually
        mean binary files slipped past the exclusions.

        Args:
            identity: Exact release the patch was computed against.
            patch_text: Unified diff to store, written byte-for-byte as UTF-8.

        Returns:
            Metadata describing the written file.
        """
        self.patches_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(identity)

        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(patch_text)

        metadata = compute_metadata(path, patch_text, self.large_patch_threshold_kb)
        logger.info(
            f"Wrote patch {path}: {metadata.line_count} lines, "
            f"{metadata.size_kb:.2f} KB, sha256 {metadata.short_hash}"
        )

        if metadata.is_large:
            logger.warning(
                f"Patch {path.name} is {metadata.size_kb:.2f} KB "
                f"({metadata.line_count} lines)"
            )
            warnings.warn(
                f"Patch is {metadata.size_kb:.2f} KB ({metadata.line_count} lines). "
                "This might include binary files. Consider adding more excludes.",
                LargePatchWarning,
                stacklevel=2,
            )

        return metadata

    def list_all(self) -> list[Path]:
        """List stored patch files sorted by filename.

        Returns:
            Paths of every ``*.patch`` file; empty if the directory is missing.
        """
        if not self.patches_dir.is_dir():
            return []
        return sorted(
            p for p in self.patches_dir.iterdir() if p.is_file() and p.name.endswith(PATCH_SUFFIX)
        )

    def metadata_for(self, path: str | Path) -> PatchMetadata:
        """Compute metadata for an already stored patch file."""
        path = Path(path)
        text = path.read_bytes().decode("utf-8", errors="replace")
        return compute_metadata(path, text, self.large_patch_threshold_kb)

    def identity_for(self, path: str | Path) -> PackageIdentity | None:
        """Recover the package release a stored patch belongs to, if parseable."""
        try:
            return PackageIdentity.from_patch_filename(Path(path).name)
        except ValueError:
            logger.debug(f"Patch filename does not encode a package release: {path}")
            return None
