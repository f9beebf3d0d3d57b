"""Optional formatting of generated files with prettier or biome."""

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path
from typing import Final, Sequence

from ..shared.log import get_logger

logger = get_logger(__name__)

FORMATTERS: Final[tuple[str, ...]] = ("prettier", "biome")

_COMMANDS: Final[dict[str, list[str]]] = {
    "prettier": ["npx", "prettier", "--write"],
    "biome": ["npx", "biome", "format", "--write"],
}


def detect_formatter(root: Path) -> str | None:
    """Find the formatter a frontend project is set up with."""
    package_json = root / "package.json"
    if package_json.exists():
        try:
            if "prettier" in package_json.read_text(encoding="utf-8"):
                return "prettier"
        except OSError:
            logger.debug("Could not read %s", package_json)
    if any(root.glob(".prettierrc*")):
        return "prettier"
    if (root / "biome.json").exists() or (root / "biome.jsonc").exists():
        return "biome"
    return None


def run_command(command: list[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run a command, resolving .cmd/.bat shims on Windows."""
    resolved_cmd = list(command)
    if sys.platform == "win32" and command:
        resolved = shutil.which(command[0])
        if resolved:
            resolved_cmd[0] = resolved
    return subprocess.run(resolved_cmd, cwd=cwd, check=False, capture_output=True, text=True)


def format_files(paths: Sequence[Path], formatter: str, *, cwd: Path | None = None) -> bool:
    """Format files in place.

    Failures are logged and never raised; generated code is valid unformatted.

    Returns:
        True if the formatter ran successfully.
    """
    if not paths:
        return True
    if formatter not in _COMMANDS:
        logger.warning("Unknown formatter '%s', skipping formatting", formatter)
        return False

    command = _COMMANDS[formatter] + [str(p) for p in paths]
    try:
        result = run_command(command, cwd or Path.cwd())
    except OSError as e:
        logger.warning("Could not run %s: %s", formatter, e)
        return False
    if result.returncode != 0:
        logger.warning("%s exited with code %d: %s", formatter, result.returncode, result.stderr.strip())
        return False
    logger.info("Formatted %d file(s) with %s", len(paths), formatter)
    return True
