"""Locate the language server to spawn.

The LPC language server ships inside a VS Code extension installed as
``~/.vscode/extensions/<publisher>.<name>-<version>``. The newest installed
version wins. A command configured explicitly is used verbatim.
"""

import re
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import structlog

from bifrost.core.errors import EngineNotFoundError

if TYPE_CHECKING:
    from bifrost.config import BifrostConfig

log = structlog.get_logger()

_VERSION_RE = re.compile(r"^(\d+(?:\.\d+)*)")


def parse_version(text: str) -> Optional[tuple[int, ...]]:
    """Parse the numeric part of a version suffix like ``1.1.42``."""
    match = _VERSION_RE.match(text)
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def find_extension(extensions_dir: Path, prefix: str) -> Path:
    """Return the newest extension directory named ``<prefix><version>``.

    Raises:
        EngineNotFoundError: No matching directory exists
    """
    extensions_dir = Path(extensions_dir).expanduser()
    if not extensions_dir.is_dir():
        raise EngineNotFoundError(f"Extensions directory not found: {extensions_dir}")

    candidates: list[tuple[tuple[int, ...], Path]] = []
    for entry in extensions_dir.iterdir():
        if not entry.is_dir() or not entry.name.startswith(prefix):
            continue
        version = parse_version(entry.name[len(prefix):])
        if version is None:
            log.debug("extension_version_unparsed", path=str(entry))
            continue
        candidates.append((version, entry))

    if not candidates:
        raise EngineNotFoundError(
            f"No extension matching '{prefix}*' found in {extensions_dir}"
        )

    version, path = max(candidates, key=lambda c: c[0])
    log.info("extension_found", path=str(path), version=".".join(map(str, version)))
    return path


def engine_command(config: "BifrostConfig") -> list[str]:
    """Command line that starts the language server in stdio mode.

    Raises:
        EngineNotFoundError: No command configured and no extension found
    """
    if config.engine_command:
        return list(config.engine_command)

    extension = find_extension(config.extensions_dir, config.extension_prefix)
    entry = extension / config.engine_entry
    if not entry.is_file():
        raise EngineNotFoundError(f"Language server entry point not found: {entry}")
    return [config.node_executable, str(entry), "--stdio"]
