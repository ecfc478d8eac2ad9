"""Tests for doctor health check functions."""

from bifrost.config import BifrostConfig
from bifrost.core.doctor import (
    check_config,
    check_engine,
    check_python_version,
    check_workspace,
    get_all_checks,
)


def test_check_python_version():
    """Test Python version check."""
    result = check_python_version()

    assert result.name == "Python"
    assert result.passed is True
    assert "." in result.message


def test_check_engine_configured(config):
    """A configured command whose executable exists passes."""
    result = check_engine(config)

    assert result.passed is True
    assert result.message == "OK"
    assert "fake_engine.py" in result.details


def test_check_engine_not_installed(temp_dir):
    config = BifrostConfig(extensions_dir=temp_dir)

    result = check_engine(config)

    assert result.passed is False
    assert result.message == "Not found"
    assert "engine_command" in result.details


def test_check_engine_executable_missing(temp_dir):
    config = BifrostConfig(engine_command=[str(temp_dir / "lpc-ls"), "--stdio"])

    result = check_engine(config)

    assert result.passed is False
    assert "not on PATH" in result.message


def test_check_workspace_unset():
    result = check_workspace(BifrostConfig())

    assert result.passed is True
    assert result.message == "Not set"
    assert "LPC_WORKSPACE_ROOT" in result.details


def test_check_workspace_missing(temp_dir):
    result = check_workspace(BifrostConfig(workspace_root=temp_dir / "gone"))

    assert result.passed is False


def test_check_workspace_ok(config):
    assert check_workspace(config).passed is True


def test_check_config_warnings(temp_dir):
    config = BifrostConfig(extensions_dir=temp_dir / "none")

    result = check_config(config)

    assert result.passed is True
    assert result.message == "Loaded with warnings"
    assert "Extensions directory not found" in result.details


def test_get_all_checks(config):
    results = get_all_checks(config)

    assert set(results["checks"]) == {"python", "config", "engine", "workspace"}
    assert results["all_passed"] is True


def test_get_all_checks_failing(temp_dir):
    results = get_all_checks(BifrostConfig(extensions_dir=temp_dir))

    assert results["all_passed"] is False
    assert results["checks"]["engine"].passed is False
