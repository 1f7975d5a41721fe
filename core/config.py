"""Configuration management and validation for depatch.

This module defines Pydantic models for every tunable part of the patch
lifecycle and loads them from an optional YAML file. Every field carries a
default so that depatch runs without any configuration file at all; a
``depatch.yaml`` in the project root overrides only the values it names.

Key configuration areas include:
- Patch storage location and the large-patch heuristic
- Baseline provisioning (installers, timeout, scratch directory)
- Diff tool selection and additional exclusion patterns
- Logging
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.exceptions import ConfigError

CONFIG_FILENAMES = ("depatch.yaml", "depatch.yml")

SUPPORTED_INSTALLERS = ("bun", "npm")
SUPPORTED_DIFF_TOOLS = ("gnu", "python")


class PatchesConfig(BaseModel):
    """Configuration for the patch store.

    Attributes:
        patches_dir: Directory holding patch files, relative to the project root.
        large_patch_threshold_kb: Size above which a written patch triggers an
            advisory warning suggesting more exclusions.
    """

    patches_dir: str = "patches"
    large_patch_threshold_kb: float = Field(default=100, gt=0)


class ProvisionConfig(BaseModel):
    """Configuration for installing pristine baseline copies of packages.

    Attributes:
        node_modules_dir: Directory of installed packages, relative to the
            project root.
        scratch_dir_name: Name of the throwaway install directory created in
            the project root for each ``create`` run.
        install_timeout_seconds: Ceiling for each installer attempt.
        installers: Installers to try, in order.
    """

    node_modules_dir: str = "node_modules"
    scratch_dir_name: str = ".depatch-tmp"
    install_timeout_seconds: int = Field(default=60, gt=0)
    installers: list[str] = Field(default_factory=lambda: list(SUPPORTED_INSTALLERS))

    @field_validator("installers")
    @classmethod
    def validate_installers(cls, v: list[str]) -> list[str]:
        """Validate that at least one known installer is configured."""
        if not v:
            raise ValueError("At least one installer must be configured")
        unknown = [name for name in v if name not in SUPPORTED_INSTALLERS]
        if unknown:
            raise ValueError(
                f"Unknown installers: {', '.join(unknown)}. "
                f"Supported: {', '.join(SUPPORTED_INSTALLERS)}"
            )
        return v

    @field_validator("scratch_dir_name")
    @classmethod
    def validate_scratch_dir_name(cls, v: str) -> str:
        """Keep the scratch directory a direct child of the project root."""
        if not v or Path(v).name != v or v in (".", ".."):
            raise ValueError(f"Scratch directory must be a plain name: {v!r}")
        return v


class DiffConfig(BaseModel):
    """Configuration for computing patches."""

    tool: str = "gnu"
    extra_exclude_patterns: list[str] = Field(default_factory=list)
    context_lines: int = Field(default=3, ge=0)

    @field_validator("tool")
    @classmethod
    def validate_tool(cls, v: str) -> str:
        if v not in SUPPORTED_DIFF_TOOLS:
            raise ValueError(
                f"Unknown diff tool: {v}. Supported: {', '.join(SUPPORTED_DIFF_TOOLS)}"
            )
        return v


class ApplyConfig(BaseModel):
    """Configuration for applying stored patches."""

    strip_level: int = Field(default=1, ge=0)


class LoggingConfig(BaseModel):
    """Configuration for diagnostic logging."""

    level: str = "WARNING"
    log_file: str | None = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class Config(BaseModel):
    """Main configuration for depatch."""

    project_root: str = Field(
        default=".", description="Directory containing node_modules and patches"
    )

    patches: PatchesConfig = Field(default_factory=PatchesConfig)
    provision: ProvisionConfig = Field(default_factory=ProvisionConfig)
    diff: DiffConfig = Field(default_factory=DiffConfig)
    apply: ApplyConfig = Field(default_factory=ApplyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_project_root(self) -> Path:
        return Path(self.project_root).resolve()

    def get_patches_dir(self) -> Path:
        """Get the patch store directory, resolved against the project root."""
        return self.get_project_root() / self.patches.patches_dir

    def get_node_modules_dir(self) -> Path:
        return self.get_project_root() / self.provision.node_modules_dir


def load_config(config_path: str | Path) -> Config:
    """Load configuration from YAML file.

    A relative ``project_root`` in the file is resolved against the directory
    containing the file.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    if config_path.suffix.lower() not in [".yaml", ".yml"]:
        raise ValueError(
            f"Unsupported config file format: {config_path.suffix}. "
            "Only YAML format (.yaml or .yml) is supported."
        )

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {config_path}")

    root = Path(data.get("project_root", "."))
    if not root.is_absolute():
        data["project_root"] = str(config_path.resolve().parent / root)

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def find_config(start_dir: str | Path) -> Path | None:
    """Return the first depatch configuration file found in ``start_dir``."""
    start_dir = Path(start_dir)
    for filename in CONFIG_FILENAMES:
        candidate = start_dir / filename
        if candidate.is_file():
            return candidate
    return None


def resolve_config(config_path: str | Path | None, cwd: str | Path) -> Config:
    """Load an explicit config file, a discovered one, or the defaults.

    Args:
        config_path: Explicit path given by the user, if any.
        cwd: Working directory used as the project root when no file is found.

    Returns:
        Config object for this invocation.
    """
    if config_path is not None:
        try:
            return load_config(config_path)
        except (FileNotFoundError, ValueError) as e:
            raise ConfigError(str(e)) from e

    discovered = find_config(cwd)
    if discovered is not None:
        return load_config(discovered)

    return Config(project_root=str(Path(cwd).resolve()))
