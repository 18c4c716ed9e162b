"""Application state and configuration."""

from __future__ import annotations

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from porter.core.base import BaseConfig, BaseState
from porter.core.log import Logger
from porter.core.yaml_settings import YamlWithIncludesSettingsSource

# Names usable as the first component of a {template} in YAML values,
# e.g. {platformdirs.user_state_dir} or {os.getcwd}.
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class SourceConfig(BaseConfig):
    """Repository the commits are taken from."""

    name: str = Field(description="Display name of the source project")
    path: Path = Field(description="Working tree of the source repository")
    branch: str = Field(description="Branch the commits are selected on")
    commit_id: str | list[str] | None = Field(
        default=None,
        alias="commit-id",
        description=(
            "A single id replays every commit after it up to the "
            "branch tip; a list replays exactly those commits"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)


class TargetConfig(BaseConfig):
    """Repository the commits are replayed onto."""

    name: str = Field(description="Display name of the target project")
    path: Path = Field(description="Working tree of the target repository")
    branch: str = Field(description="Existing branch to replay onto")


class GitConfig(BaseConfig):
    """git command templates and ephemeral remote naming.

    Placeholders in braces are filled in, shell-quoted, at call time.
    """

    remote_prefix: str = Field(
        default="porter-sync-",
        description=(
            "Prefix of ephemeral remote names; anything carrying it "
            "is removed by an orphan sweep"
        ),
    )
    fetch_timeout: int = Field(
        default=600, description="Seconds allowed for fetching a remote"
    )
    editor: str = Field(
        default="true",
        description="GIT_EDITOR for cherry-picks, so no editor ever opens",
    )

    toplevel: str = "git rev-parse --show-toplevel"
    is_work_tree: str = "git rev-parse --is-inside-work-tree"
    rev_parse: str = "git rev-parse --verify --quiet {ref}"
    show_ref: str = "git show-ref --verify --quiet refs/heads/{branch}"
    log_range: str = "git log --format=%H%x09%s {range}"
    log_commits: str = "git log --no-walk --format=%H%x09%s {commits}"
    checkout: str = "git checkout {branch}"
    cherry_pick: str = "git cherry-pick --no-edit {commit}"
    cherry_pick_abort: str = "git cherry-pick --abort"
    add_all: str = "git add -A"
    status: str = "git status --porcelain -z"
    remote_list: str = "git remote"
    remote_add: str = "git remote add {name} {url}"
    remote_remove: str = "git remote remove {name}"
    fetch: str = "git fetch --no-tags {name}"


class PolicyConfig(BaseConfig):
    """Checks applied to branches and targets before syncing."""

    forbidden_branch_keywords: list[str] = Field(
        default_factory=lambda: ["master", "test"],
        description=(
            "Case-insensitive substrings no source or target branch "
            "name may contain"
        ),
    )
    require_clean_targets: bool = Field(
        default=True,
        description="Refuse to start when a target has unstaged changes",
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI.

    source and targets may be absent so that commands which do not
    sync (init) still load; sync reports their absence as a preflight
    error.
    """

    logger: Logger = Field(
        default=None, description="Logger configuration"
    )
    source: SourceConfig | None = Field(
        default=None, description="Source repository"
    )
    targets: list[TargetConfig] = Field(
        default_factory=list,
        description="Target repositories, processed in this order",
    )
    git: GitConfig = Field(
        default_factory=GitConfig, description="git command settings"
    )
    policy: PolicyConfig = Field(
        default_factory=PolicyConfig, description="Preflight policy"
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir("porter", appauthor=False))
        ),
        description="Root directory for log files",
    )
    sweep_on_start: bool = Field(
        default=True,
        description=(
            "Remove ephemeral remotes left behind by a crashed run "
            "before syncing"
        ),
    )

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Install the global logger from the loaded settings."""
        from porter.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger()

        setup_logger(
            log_root=self.log_root,
            run_name=datetime.now().strftime('sync-%Y%m%d-%H%M%S'),
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
        )
        return self

    def close(self):
        from porter.core.log import logger
        logger.close()
        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable during command execution)
# ============================================================

class SyncState(BaseState):
    """Sync workflow runtime state."""

    console: Any = Field(
        default=None, description="Console used for prompts"
    )
    assume_yes: bool = Field(
        default=False, description="Skip the confirmation prompt"
    )
    sweep: bool = Field(
        default=True,
        description="Sweep orphaned remotes from targets before syncing",
    )
    plan: Any = Field(
        default=None, description="SyncPlan produced by preflight"
    )
    commits: list = Field(
        default_factory=list,
        description="Selected commits, newest first",
    )
    targets: list = Field(
        default_factory=list, description="Validated target repositories"
    )
    outcomes: list = Field(
        default_factory=list, description="TargetOutcome per target"
    )
    exited: bool = Field(
        default=False, description="Operator chose exit"
    )
    status: str = Field(
        default="pending",
        description="pending, running, cancelled, complete",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class SweepState(BaseState):
    """Sweep command runtime state."""

    removed: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Removed remote names per target name",
    )


class Runtime(BaseModel):
    """Runtime state grouped by command."""

    sync: SyncState = Field(default_factory=SyncState)
    sweep: SweepState = Field(default_factory=SweepState)


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Configuration plus runtime state; passed to every command.

    Configuration sources, highest priority first:
    1. keyword arguments
    2. YAML files (defaults < user < ./porter.yaml < --include)
    3. .env file
    4. environment variables (PORTER_CONFIG__SOURCE__BRANCH=...)
    5. file secrets
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state",
    )
    include: list[str] | None = Field(
        default=None,
        description="Additional YAML files to load, in order",
    )

    model_config = SettingsConfigDict(
        yaml_file="porter.yaml",
        env_file=".env",
        env_prefix="PORTER_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Expand {config.*} and {platformdirs.*} style references.

        Placeholders that do not name anything, such as the {branch}
        in git command templates, are left for call time.
        """
        self._substitute(self)
        return self

    def _substitute(self, obj: Any) -> Any:
        if isinstance(obj, str):
            return re.sub(r'\{([a-z_][a-z._]*)\}', self._resolve, obj)
        if isinstance(obj, Path):
            return Path(self._substitute(str(obj)))
        if isinstance(obj, BaseModel):
            for name in obj.__class__.model_fields:
                value = getattr(obj, name)
                new_value = self._substitute(value)
                if new_value is not value and new_value != value:
                    setattr(obj, name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute(obj[key])
        elif isinstance(obj, list):
            for i, item in enumerate(obj):
                obj[i] = self._substitute(item)
        return obj

    def _resolve(self, match: re.Match) -> str:
        parts = match.group(1).split(".")
        if parts[0] in TEMPLATE_NAMESPACE:
            obj = TEMPLATE_NAMESPACE[parts.pop(0)]
        else:
            obj = self
        try:
            for part in parts:
                obj = getattr(obj, part)
            if callable(obj):
                try:
                    obj = obj('porter', appauthor=False)
                except TypeError:
                    obj = obj()
        except (AttributeError, TypeError):
            return match.group(0)
        return str(obj)


__all__ = [
    "State",
    "Config",
    "SourceConfig",
    "TargetConfig",
    "GitConfig",
    "PolicyConfig",
]
