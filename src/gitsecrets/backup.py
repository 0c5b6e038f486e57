"""Local secrets backup and restore.

Before a pull overwrites the local secrets directory, a full copy of it
is taken next to it:

    secrets/
    secrets_backup_20260224_101500/
    secrets_backup_20260223_093012/

Timestamps are UTC with second resolution, so names sort in creation
order. Only the newest ``backup_count`` copies are kept; a count of zero
(or less) disables backups entirely.
"""

from __future__ import annotations

import glob
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from . import DEFAULT_BACKUP_COUNT
from .errors import FileSystemError

logger = logging.getLogger("gitsecrets.backup")

BACKUP_MARKER = "_backup_"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_TIMESTAMP_RE = re.compile(r"_backup_(\d{8}_\d{6})(?:_(\d+))?$")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backup_timestamp(backup_path: Union[str, Path]) -> Optional[datetime]:
    """Parse the creation time out of a backup directory name.

    Args:
        backup_path: Path or name of a backup directory.

    Returns:
        datetime: UTC creation time, or None if the name has no timestamp.
    """
    match = _TIMESTAMP_RE.search(Path(backup_path).name)
    if not match:
        return None
    return datetime.strptime(match.group(1), TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _backup_sort_key(backup_path: Path) -> tuple[datetime, int]:
    match = _TIMESTAMP_RE.search(backup_path.name)
    suffix = int(match.group(2)) if match and match.group(2) else 0
    return backup_timestamp(backup_path) or _EPOCH, suffix


class BackupStore:
    """Snapshots, rotates and restores copies of a directory tree.

    Args:
        backup_count: How many backups to retain. Values <= 0 disable
            backups.
        clock: Returns the current UTC time. Defaults to the system clock.
    """

    def __init__(
        self,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.backup_count = max(int(backup_count), 0)
        self._clock = clock or _utcnow

    @property
    def enabled(self) -> bool:
        return self.backup_count > 0

    def snapshot(self, directory: Union[str, Path]) -> Optional[Path]:
        """Copy ``directory`` to a timestamped sibling and rotate old copies.

        Args:
            directory: Directory to back up.

        Returns:
            Path to the new backup, or None when the directory does not
            exist or backups are disabled.

        Raises:
            FileSystemError: If the copy fails.
        """
        source = Path(directory).resolve()
        if not source.is_dir() or not self.enabled:
            return None

        backup_path = self._next_backup_path(source)
        logger.info("Creating backup: %s", backup_path)

        try:
            shutil.copytree(source, backup_path, symlinks=True)
        except (OSError, shutil.Error) as exc:
            logger.error("Backup of %s failed: %s", source, exc)
            shutil.rmtree(backup_path, ignore_errors=True)
            raise FileSystemError(f"failed to back up {source}: {exc}") from exc

        self._evict_old_backups(source)
        logger.debug("Backup created: %s", backup_path)
        return backup_path

    def _next_backup_path(self, source: Path) -> Path:
        stamp = self._clock().astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
        base = source.parent / f"{source.name}{BACKUP_MARKER}{stamp}"
        # Within one second, suffixes only increase, even across rotation.
        same_second = [
            _backup_sort_key(p)[1] for p in self.list(source)
            if p.name == base.name or p.name.startswith(f"{base.name}_")
        ]
        counter = max(same_second) + 1 if same_second else 0
        candidate = base.with_name(f"{base.name}_{counter}") if counter else base
        while candidate.exists():
            counter += 1
            candidate = base.with_name(f"{base.name}_{counter}")
        return candidate

    def _evict_old_backups(self, source: Path) -> None:
        for old_backup in self.list(source)[self.backup_count:]:
            logger.debug("Removing old backup: %s", old_backup)
            try:
                shutil.rmtree(old_backup)
            except OSError as exc:
                logger.warning("Could not remove old backup %s: %s", old_backup, exc)

    def list(self, directory: Union[str, Path]) -> list[Path]:
        """List backups of ``directory``, newest first.

        Args:
            directory: The directory whose backups to list.

        Returns:
            list[Path]: Backup directories matching ``<name>_backup_*``.
        """
        source = Path(directory).resolve()
        if not source.parent.is_dir():
            return []
        pattern = f"{glob.escape(source.name)}{BACKUP_MARKER}*"
        backups = [p for p in source.parent.glob(pattern) if p.is_dir()]
        return sorted(backups, key=_backup_sort_key, reverse=True)

    def restore(self, backup_path: Union[str, Path], target_dir: Union[str, Path]) -> None:
        """Replace ``target_dir`` with the contents of a backup.

        The target is removed completely before the copy; nothing is
        merged.

        Raises:
            FileSystemError: If the backup is missing, not a directory,
                or the copy fails.
        """
        backup = Path(backup_path).resolve()
        target = Path(target_dir).absolute()

        if not backup.exists():
            raise FileSystemError(f"backup does not exist: {backup}")
        if not backup.is_dir():
            raise FileSystemError(f"backup is not a directory: {backup}")

        logger.info("Restoring %s from backup %s", target, backup)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            shutil.copytree(backup, target, symlinks=True)
        except (OSError, shutil.Error) as exc:
            logger.error("Restore from %s failed: %s", backup, exc)
            raise FileSystemError(f"failed to restore from backup: {exc}") from exc

        logger.info("Restore from backup complete")
