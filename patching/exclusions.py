"""Static policy deciding which package paths never belong in a patch.

Binary artifacts, build outputs, media, fonts, nested dependency trees and
version-control or OS metadata are excluded. Keeping them out keeps patches
small, reviewable and text-only, and because the filter is handed to the diff
tool these files are never read at all.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import PurePath

from pydantic import BaseModel

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "node_modules",
    ".git",
    ".DS_Store",
    # Android binaries
    "*.so",
    "*.jar",
    "*.aar",
    "*.class",
    "*.dex",
    "*.apk",
    # iOS binaries
    "*.a",
    "*.framework",
    "*.xcframework",
    "*.dylib",
    # Build outputs
    "build",
    ".gradle",
    ".transforms",
    "Pods",
    "DerivedData",
    ".cxx",
    # Media
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.webp",
    # Fonts
    "*.ttf",
    "*.otf",
    "*.woff",
    "*.woff2",
)


class ExclusionFilter(BaseModel):
    """Immutable set of exclusion patterns.

    Literal patterns (``node_modules``, ``build``) match any path component
    anywhere in the path. Glob patterns (``*.so``) are matched against each
    component too, so both files and directories such as ``Foo.framework``
    are caught. This mirrors how ``diff --exclude`` treats its patterns.

    Attributes:
        patterns: Exclusion patterns in the order they were given.
    """

    model_config = {"frozen": True}

    patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS

    @classmethod
    def default(cls) -> ExclusionFilter:
        return cls()

    def extended(self, *patterns: str) -> ExclusionFilter:
        """Return a new filter with additional patterns appended.

        Duplicates and empty strings are ignored.
        """
        merged = list(self.patterns)
        for pattern in patterns:
            if pattern and pattern not in merged:
                merged.append(pattern)
        return ExclusionFilter(patterns=tuple(merged))

    def matches_name(self, name: str) -> bool:
        """Check a single file or directory name against every pattern."""
        return any(fnmatchcase(name, pattern) for pattern in self.patterns)

    def is_excluded(self, path: str | PurePath) -> bool:
        """Check whether any component of ``path`` is excluded.

        Args:
            path: Relative or absolute path inside a package tree. For absolute
                paths the caller should pass the part below the package root,
                otherwise ancestors such as ``node_modules`` match too.

        Returns:
            True if the path must be left out of the diff.
        """
        parts = PurePath(path).parts
        return any(self.matches_name(part) for part in parts if part not in ("/", ""))

    def diff_arguments(self) -> list[str]:
        """Translate the filter into GNU diff ``--exclude`` arguments."""
        return [f"--exclude={pattern}" for pattern in self.patterns]
