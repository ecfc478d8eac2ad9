"""Health check functions for the Bifrost doctor command."""

import shutil
import sys
from typing import Dict, Optional

import structlog

from bifrost.config import BifrostConfig, validate_config
from bifrost.core.errors import EngineNotFoundError
from bifrost.lsp.discovery import engine_command

log = structlog.get_logger()


class HealthCheck:
    """Result of a health check."""

    def __init__(self, name: str, passed: bool, message: str, details: Optional[str] = None):
        self.name = name
        self.passed = passed
        self.message = message
        self.details = details


def check_python_version() -> HealthCheck:
    """Check the interpreter is recent enough."""
    version = ".".join(str(part) for part in sys.version_info[:3])
    if sys.version_info >= (3, 10):
        return HealthCheck(name="Python", passed=True, message=version)
    return HealthCheck(
        name="Python",
        passed=False,
        message=f"{version} (3.10+ required)",
    )


def check_engine(config: BifrostConfig) -> HealthCheck:
    """Check a language server command can be resolved."""
    try:
        command = engine_command(config)
    except EngineNotFoundError as e:
        return HealthCheck(
            name="Language server",
            passed=False,
            message="Not found",
            details=f"{e}\nInstall the extension or set engine_command in bifrost.toml",
        )

    executable = shutil.which(command[0])
    if executable is None:
        return HealthCheck(
            name="Language server",
            passed=False,
            message=f"Executable '{command[0]}' not on PATH",
            details=" ".join(command),
        )

    return HealthCheck(
        name="Language server",
        passed=True,
        message="OK",
        details=" ".join(command),
    )


def check_workspace(config: BifrostConfig) -> HealthCheck:
    """Check the configured workspace root."""
    if config.workspace_root is None:
        return HealthCheck(
            name="Workspace root",
            passed=True,
            message="Not set",
            details="Set LPC_WORKSPACE_ROOT to declare a workspace to the engine",
        )
    if not config.workspace_root.is_dir():
        return HealthCheck(
            name="Workspace root",
            passed=False,
            message="Directory does not exist",
            details=str(config.workspace_root),
        )
    return HealthCheck(
        name="Workspace root",
        passed=True,
        message="OK",
        details=str(config.workspace_root),
    )


def check_config(config: BifrostConfig) -> HealthCheck:
    """Report configuration warnings."""
    warnings = validate_config(config)
    if warnings:
        return HealthCheck(
            name="Configuration",
            passed=True,
            message="Loaded with warnings",
            details="\n".join(warnings),
        )
    return HealthCheck(name="Configuration", passed=True, message="OK")


def get_all_checks(config: BifrostConfig) -> Dict:
    """Run all health checks and return results.

    Returns:
        Dictionary with check results and overall status
    """
    checks = {
        "python": check_python_version(),
        "config": check_config(config),
        "engine": check_engine(config),
        "workspace": check_workspace(config),
    }
    all_passed = all(check.passed for check in checks.values())
    log.debug("doctor_checks", all_passed=all_passed)
    return {"checks": checks, "all_passed": all_passed}
