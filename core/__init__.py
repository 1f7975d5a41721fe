"""Core modules for depatch."""

from core.config import Config, LoggingConfig, load_config, resolve_config
from core.exceptions import (
    ConfigError,
    DepatchError,
    DiffError,
    EmptyDiffWarning,
    LargePatchWarning,
    PackageNotFoundError,
    ProvisionError,
)
from core.types import (
    ApplyOutcome,
    ApplyResult,
    ApplyStatus,
    ApplySummary,
    PackageIdentity,
    PatchMetadata,
)

__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "ApplyStatus",
    "ApplySummary",
    "Config",
    "ConfigError",
    "DepatchError",
    "DiffError",
    "EmptyDiffWarning",
    "LargePatchWarning",
    "LoggingConfig",
    "PackageIdentity",
    "PackageNotFoundError",
    "PatchMetadata",
    "ProvisionError",
    "load_config",
    "resolve_config",
]
