"""Configuration for Bifrost with validation."""

import os
import shlex
from pathlib import Path
from typing import Optional

import structlog
import toml
from pydantic import BaseModel, ConfigDict, Field, field_validator

log = structlog.get_logger()

WORKSPACE_ROOT_ENV = "LPC_WORKSPACE_ROOT"
ENGINE_COMMAND_ENV = "BIFROST_ENGINE_COMMAND"
LOG_LEVEL_ENV = "BIFROST_LOG_LEVEL"


class BifrostConfig(BaseModel):
    """Main configuration for Bifrost with validation."""

    model_config = ConfigDict(validate_assignment=True)

    # Workspace declared to the engine (None = no root)
    workspace_root: Optional[Path] = None

    # Engine
    engine_command: Optional[list[str]] = None  # Used verbatim when set
    node_executable: str = "node"
    extensions_dir: Path = Field(
        default_factory=lambda: Path.home() / ".vscode" / "extensions"
    )
    extension_prefix: str = "jlchmura.lpc-"
    engine_entry: str = "out/server/src/server.js"
    language_id: str = "lpc"

    # Timing
    init_timeout: float = Field(gt=0, default=5.0)
    diagnostics_grace_period: float = Field(ge=0, default=0.5)
    request_timeout: Optional[float] = Field(gt=0, default=None)

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")
    log_file: Optional[Path] = None
    json_logs: bool = False

    @field_validator("extensions_dir", "log_file")
    @classmethod
    def expand_path(cls, v):
        if v is None:
            return v
        return Path(v).expanduser()

    @field_validator("workspace_root")
    @classmethod
    def absolute_workspace_root(cls, v):
        # The root goes out as a file:// URI, which needs an absolute path
        if v is None:
            return v
        return Path(os.path.abspath(Path(v).expanduser()))

    @field_validator("engine_command", mode="before")
    @classmethod
    def split_command(cls, v):
        if isinstance(v, str):
            v = shlex.split(v)
        if v is not None and not v:
            raise ValueError("engine_command cannot be empty")
        return v

    @field_validator("language_id")
    @classmethod
    def language_id_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("language_id cannot be empty")
        return v.strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        environ: Optional[dict[str, str]] = None,
    ) -> "BifrostConfig":
        """Load configuration from a TOML file and the environment.

        Search order if path not provided:
        1. ./bifrost.toml (project-specific)
        2. ~/.bifrost/config.toml (user default)

        Environment variables override the file: LPC_WORKSPACE_ROOT,
        BIFROST_ENGINE_COMMAND and BIFROST_LOG_LEVEL.

        Args:
            path: Optional explicit config file path
            environ: Environment to read (defaults to os.environ)

        Returns:
            BifrostConfig instance
        """
        environ = os.environ if environ is None else environ
        data: dict = {}

        if path is None:
            candidates = [
                Path("bifrost.toml"),
                Path("~/.bifrost/config.toml").expanduser(),
            ]
            for candidate in candidates:
                if candidate.exists():
                    path = str(candidate)
                    log.info("config_found", path=path)
                    break

        if path:
            if not Path(path).exists():
                raise FileNotFoundError(f"Config file not found: {path}")
            data = toml.load(path)
            log.info("config_loaded", path=path)
        else:
            log.info("config_using_defaults")

        if environ.get(WORKSPACE_ROOT_ENV):
            data["workspace_root"] = environ[WORKSPACE_ROOT_ENV]
        if environ.get(ENGINE_COMMAND_ENV):
            data["engine_command"] = environ[ENGINE_COMMAND_ENV]
        if environ.get(LOG_LEVEL_ENV):
            data["log_level"] = environ[LOG_LEVEL_ENV]

        return cls(**data)

    def save(self, path: str):
        """Save configuration to TOML file.

        Args:
            path: File path to save to
        """
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            data = self.model_dump(mode="json", exclude_none=True)
            toml.dump(data, f)
        log.info("config_saved", path=path)


def validate_config(config: BifrostConfig) -> list[str]:
    """Validate configuration and return warnings.

    Args:
        config: Configuration to validate

    Returns:
        List of warning messages (empty if all good)
    """
    warnings = []

    if config.workspace_root is not None and not config.workspace_root.is_dir():
        warnings.append(f"Workspace root does not exist: {config.workspace_root}")

    if config.engine_command is None and not config.extensions_dir.is_dir():
        warnings.append(
            f"Extensions directory not found: {config.extensions_dir} "
            "(set engine_command to point at the language server)"
        )

    if config.diagnostics_grace_period == 0:
        warnings.append(
            "diagnostics_grace_period is 0; diagnostics will rarely be ready in time"
        )

    if config.request_timeout is not None and config.request_timeout < 1:
        warnings.append(
            f"request_timeout of {config.request_timeout}s may cut off slow engine answers"
        )

    return warnings
