"""Configuration management for lockrun."""

import os
import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    DEFAULT_CONFLICT_EXIT_CODE,
    DEFAULT_SHELL,
    SHELL_ENV_VAR,
)
from .errors import UsageError


class LockBackend(str, Enum):
    """Lock primitive implementations."""

    AUTO = "auto"  # flock where available, lockf otherwise
    FLOCK = "flock"  # native whole-file lock
    LOCKF = "lockf"  # record lock over the whole file


class LockConfig(BaseModel):
    """Lock acquisition defaults."""

    model_config = ConfigDict(extra="forbid")

    backend: LockBackend = LockBackend.AUTO
    conflict_exit_code: int = Field(
        default=DEFAULT_CONFLICT_EXIT_CODE,
        ge=0,
        le=255,
        description="Exit code when the lock is held elsewhere or the wait timed out",
    )


class CommandConfig(BaseModel):
    """Command execution defaults."""

    model_config = ConfigDict(extra="forbid")

    shell: str = Field(default="", description="Shell for -c; empty means $SHELL")

    def resolve_shell(self, environ: dict[str, str] | None = None) -> str:
        """Return the shell used for command strings.

        Order: configured shell, then $SHELL, then /bin/sh. Empty values
        count as unset.
        """
        if self.shell:
            return self.shell
        env = os.environ if environ is None else environ
        return env.get(SHELL_ENV_VAR) or DEFAULT_SHELL


class LockrunConfig(BaseModel):
    """Root configuration for lockrun."""

    model_config = ConfigDict(extra="forbid")

    lock: LockConfig = Field(default_factory=LockConfig)
    command: CommandConfig = Field(default_factory=CommandConfig)


def config_path(explicit: Path | None = None, environ: dict[str, str] | None = None) -> Path:
    """Return the config file location.

    Args:
        explicit: Path given with --config
        environ: Environment to consult (defaults to os.environ)

    Returns:
        --config if given, else $LOCKRUN_CONFIG, else the per-user default
    """
    if explicit is not None:
        return explicit
    env = os.environ if environ is None else environ
    from_env = env.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    return Path(DEFAULT_CONFIG_PATH).expanduser()


def load_config(path: Path | None = None, required: bool = False) -> LockrunConfig:
    """Load config from a TOML file.

    Args:
        path: Config file path (see config_path)
        required: Raise if the file does not exist (set for --config)

    Returns:
        Loaded configuration, or defaults if the file doesn't exist

    Raises:
        UsageError: If the file is required but missing, or invalid
    """
    if path is None:
        path = config_path()
    if not path.exists():
        if required:
            raise UsageError(f"config file not found: {path}")
        return LockrunConfig()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise UsageError(f"invalid config file {path}: {e}") from e
    except OSError as e:
        raise UsageError(f"cannot read config file {path}", cause=e) from e
    try:
        return LockrunConfig.model_validate(data)
    except ValidationError as e:
        raise UsageError(f"invalid config file {path}: {e}") from e
