"""Patch computation, storage and application."""

from patching.diff_engine import DiffEngine
from patching.diff_tools import DiffTool, GnuDiffTool, PythonDiffTool, create_diff_tool
from patching.exclusions import DEFAULT_EXCLUDE_PATTERNS, ExclusionFilter
from patching.patch_applicator import PatchApplicator
from patching.patch_store import PatchStore
from patching.patch_tools import GnuPatchTool, PatchTool

__all__ = [
    "DEFAULT_EXCLUDE_PATTERNS",
    "DiffEngine",
    "DiffTool",
    "ExclusionFilter",
    "GnuDiffTool",
    "GnuPatchTool",
    "PatchApplicator",
    "PatchStore",
    "PatchTool",
    "PythonDiffTool",
    "create_diff_tool",
]
