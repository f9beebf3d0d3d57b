"""Safe writes for generated files.

A manifest next to the output records the hash of what tsgen last wrote to
each file. A file whose current content no longer matches that hash was
edited by hand and is not overwritten unless forced.
"""

from __future__ import annotations

import json
import shutil
from enum import Enum
from pathlib import Path
from typing import Final

from ..shared.log import get_logger
from ..shared.spec_loader import content_hash

logger = get_logger(__name__)

MANIFEST_NAME: Final[str] = ".tsgen-manifest.json"
BACKUP_SUFFIX: Final[str] = ".bak"


class WriteStatus(str, Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


class ArtifactWriter:
    """Writes files under ``root`` and keeps the generation manifest."""

    def __init__(
        self,
        root: Path,
        *,
        force: bool = False,
        backup: bool = False,
        dry_run: bool = False,
    ) -> None:
        self.root = root
        self.force = force
        self.backup = backup
        self.dry_run = dry_run
        self.manifest_path = root / MANIFEST_NAME
        self._manifest = self._load_manifest()
        self._dirty = False

    def _load_manifest(self) -> dict[str, str]:
        if not self.manifest_path.exists():
            return {}
        try:
            data = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable manifest %s: %s", self.manifest_path, e)
            return {}
        files = data.get("files") if isinstance(data, dict) else None
        if not isinstance(files, dict):
            return {}
        return {str(k): str(v) for k, v in files.items()}

    def _key(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return path.resolve().as_posix()

    def write(self, path: Path | str, content: str) -> WriteStatus:
        """Write one generated file.

        Args:
            path: Target path; relative paths are taken from ``root``.
            content: Full file content.

        Returns:
            WRITTEN, UNCHANGED when the file already holds this content, or
            CONFLICT when the file was modified since it was generated.
        """
        target = Path(path)
        if not target.is_absolute():
            target = self.root / target
        key = self._key(target)
        new_hash = content_hash(content.encode("utf-8"))

        if target.exists():
            existing = target.read_text(encoding="utf-8")
            if existing == content:
                if self._manifest.get(key) != new_hash:
                    self._manifest[key] = new_hash
                    self._dirty = True
                return WriteStatus.UNCHANGED
            recorded = self._manifest.get(key)
            edited = recorded is None or recorded != content_hash(existing.encode("utf-8"))
            if edited and not self.force:
                logger.warning("Skipping %s: it was modified since it was generated (use --force)", key)
                return WriteStatus.CONFLICT

        if self.dry_run:
            logger.info("Would write %s", key)
            return WriteStatus.WRITTEN

        if self.backup and target.exists():
            shutil.copy2(target, target.with_name(target.name + BACKUP_SUFFIX))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self._manifest[key] = new_hash
        self._dirty = True
        logger.debug("Wrote %s", key)
        return WriteStatus.WRITTEN

    def save_manifest(self) -> None:
        if self.dry_run or not self._dirty:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        payload = {"version": 1, "files": dict(sorted(self._manifest.items()))}
        self.manifest_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        self._dirty = False
