"""Configuration schema for patchy.

Configuration is loaded from .patchy/config.yml in the repository root.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_ROOT = ".patchy"
CONFIG_FILE = "config.yml"

_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_FORBIDDEN_REF_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


def is_valid_branch_name(name: str) -> bool:
    """Approximate `git check-ref-format --branch` without calling git."""
    if not name or name == "@" or name.startswith(("-", "/")) or name.endswith(("/", ".", ".lock")):
        return False
    if ".." in name or "@{" in name or "//" in name or _FORBIDDEN_REF_CHARS.search(name):
        return False
    return not any(part.startswith(".") for part in name.split("/"))


class GitHubConfig(BaseModel):
    """GitHub API access."""

    model_config = ConfigDict(frozen=True)

    api_url: str = "https://api.github.com"
    clone_url_template: str = "https://github.com/{repo}.git"
    timeout_seconds: float = 30.0
    max_concurrency: int = 4
    token: str | None = None

    @field_validator("max_concurrency")
    @classmethod
    def validate_max_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v

    def clone_url(self, repo: str) -> str:
        return self.clone_url_template.format(repo=repo)


class TelemetryConfig(BaseModel):
    """Telemetry and logging configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    # Kept outside .patchy/ so it is never committed with the configuration.
    log_path: str = ".git/patchy/telemetry.jsonl"


class PatchyConfig(BaseModel):
    """Complete patchy run configuration."""

    model_config = ConfigDict(frozen=True)

    repo: str
    remote_branch: str
    local_branch: str
    pull_requests: list[str] = Field(default_factory=list)
    patches: frozenset[str] = Field(default_factory=frozenset)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("repo")
    @classmethod
    def validate_repo(cls, v: str) -> str:
        v = v.strip()
        if not _REPO_RE.match(v):
            raise ValueError(f"Invalid repo: {v!r}. Must look like 'owner/name'")
        return v

    @field_validator("remote_branch", "local_branch")
    @classmethod
    def validate_branch(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_branch_name(v):
            raise ValueError(f"Invalid branch name: {v!r}")
        return v

    @field_validator("pull_requests", mode="before")
    @classmethod
    def validate_pull_requests(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            raise ValueError("pull_requests must be a list of pull request numbers")
        numbers: list[str] = []
        for item in v:
            if isinstance(item, bool):
                raise ValueError(f"Invalid pull request number: {item!r}")
            text = str(item).strip().lstrip("#")
            if not text.isdigit() or int(text) <= 0:
                raise ValueError(f"Invalid pull request number: {item!r}")
            numbers.append(str(int(text)))
        return numbers

    @field_validator("patches", mode="before")
    @classmethod
    def validate_patches(cls, v: Any) -> frozenset[str]:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            raise ValueError("patches must be a list of patch names")
        names = set()
        for item in v:
            name = str(item).strip()
            if name.endswith(".patch"):
                name = name[: -len(".patch")]
            if not name or "/" in name or name.startswith("."):
                raise ValueError(f"Invalid patch name: {item!r}")
            names.add(name)
        return frozenset(names)

    @classmethod
    def load_from_file(cls, config_path: Path | str) -> PatchyConfig:
        """Load configuration from a YAML file, applying env overrides."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        return cls(**apply_env_overrides(data))

    @classmethod
    def load_from_repo(cls, repo_path: Path | str) -> PatchyConfig:
        """Load configuration from the repository's .patchy/config.yml."""
        return cls.load_from_file(Path(repo_path) / CONFIG_ROOT / CONFIG_FILE)


def apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of raw config data with environment overrides applied."""
    data = dict(data)
    github = dict(data.get("github") or {})
    telemetry = dict(data.get("telemetry") or {})

    if token := os.getenv("PATCHY_GITHUB_TOKEN") or os.getenv("GITHUB_TOKEN"):
        github.setdefault("token", token)
    if url := os.getenv("PATCHY_GITHUB_API_URL"):
        github["api_url"] = url

    if os.getenv("PATCHY_TELEMETRY") == "1":
        telemetry["enabled"] = True
    if log_path := os.getenv("PATCHY_TELEMETRY_PATH"):
        telemetry["log_path"] = log_path

    data["github"] = github
    data["telemetry"] = telemetry
    return data


def load_config(repo_path: Path | str) -> PatchyConfig:
    """
    Load configuration for a repository.

    Args:
        repo_path: Path to the repository root

    Returns:
        Loaded and validated configuration
    """
    return PatchyConfig.load_from_repo(repo_path)


DEFAULT_CONFIG = """\
# patchy configuration
#
# The upstream repository to merge pull requests from.
repo: owner/name

# Branch of `repo` the pull requests are merged onto.
remote_branch: main

# Local branch overwritten with the result (asks for confirmation first).
local_branch: main

# Pull request numbers, merged in this order.
pull_requests: []

# Patch files in .patchy/ to apply, without the .patch extension.
# Create them with `patchy gen-patch <commit>`.
patches: []
"""
