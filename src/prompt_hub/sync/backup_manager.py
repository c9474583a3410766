"""Local backup snapshots with a retention limit."""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..errors import BackupError, DatasetValidationError
from ..storage.models import Dataset, validate_dataset
from ..utils.file_utils import FileHelper
from ..utils.time_utils import filename_timestamp, timestamp_from_filename, to_iso, utc_now

# Module logger
logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup-"
DEFAULT_MAX_BACKUPS = 10


@dataclass
class BackupInfo:
    """A snapshot file found in the backup directory."""
    path: Path
    timestamp: str  # ISO format timestamp
    size: int


class BackupManager:
    """Write, list, prune and read dataset snapshots."""

    def __init__(self, backup_dir: Union[str, Path], max_backups: int = DEFAULT_MAX_BACKUPS):
        """Initialize backup manager.

        Args:
            backup_dir: Directory holding the snapshot files (created on demand)
            max_backups: Retention limit used when a dataset carries none
        """
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups
        self._last_stamp: Optional[datetime] = None
        self._stamp_lock = threading.Lock()

        self._timer_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._timer_generation = 0
        self._interval_seconds = 0.0
        self._snapshot: Optional[Callable[[], Dataset]] = None

    def _next_stamp(self) -> datetime:
        # File names must sort in creation order even within one clock tick
        with self._stamp_lock:
            now = utc_now()
            if self._last_stamp is not None and now <= self._last_stamp:
                now = self._last_stamp + timedelta(microseconds=1)
            self._last_stamp = now
            return now

    def create_backup(self, dataset: Dataset) -> Path:
        """Write a timestamped snapshot, then enforce the retention limit.

        Args:
            dataset: Dataset to snapshot

        Returns:
            Path of the new snapshot file
        """
        stamp = self._next_stamp()
        backup_path = self.backup_dir / f"{BACKUP_PREFIX}{filename_timestamp(stamp)}.json"

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            FileHelper.write_json(backup_path, dataset.to_dict())
        except OSError as e:
            raise BackupError(f"Could not write backup {backup_path}: {e}") from e

        logger.info(f"💾 Backup created: {backup_path.name}")

        limit = dataset.settings.max_backups if dataset.settings else self.max_backups
        self.cleanup_old_backups(limit)
        return backup_path

    def _snapshot_files(self) -> List[Path]:
        """Snapshot files, newest first by modification time then name."""
        if not self.backup_dir.is_dir():
            return []

        entries = []
        try:
            candidates = list(self.backup_dir.glob('*.json'))
        except OSError as e:
            logger.warning(f"Cannot read backup directory {self.backup_dir}: {e}")
            return []

        for path in candidates:
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            if path.is_file():
                entries.append((stat.st_mtime_ns, path.name, path))

        entries.sort(reverse=True)
        return [path for _, _, path in entries]

    def cleanup_old_backups(self, max_backups: Optional[int] = None) -> List[Path]:
        """Delete every snapshot beyond the newest ``max_backups``.

        Args:
            max_backups: Retention limit (defaults to the manager's limit)

        Returns:
            Paths that were deleted
        """
        limit = max_backups or self.max_backups
        deleted = []

        for path in self._snapshot_files()[limit:]:
            try:
                path.unlink()
                deleted.append(path)
                logger.debug(f"Deleted old backup: {path.name}")
            except OSError as e:
                logger.warning(f"Failed to delete old backup {path}: {e}")

        if deleted:
            logger.info(f"🧹 Pruned {len(deleted)} old backup(s), keeping {limit}")
        return deleted

    def list_backups(self) -> List[BackupInfo]:
        """List snapshots newest first, re-reading the directory every call.

        A missing or unreadable directory means zero backups.
        """
        backups = []
        for path in self._snapshot_files():
            try:
                stat = path.stat()
            except OSError:
                continue

            stem = path.stem[len(BACKUP_PREFIX):] if path.stem.startswith(BACKUP_PREFIX) else path.stem
            embedded = timestamp_from_filename(stem)
            if embedded is None:
                embedded = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

            backups.append(BackupInfo(path=path, timestamp=to_iso(embedded), size=stat.st_size))

        return backups

    def _read_dataset_file(self, file_path: Union[str, Path]) -> Dataset:
        file_path = Path(file_path)
        if not file_path.is_file():
            raise BackupError(f"Backup file not found: {file_path}")

        try:
            raw = FileHelper.read_json(file_path)
        except json.JSONDecodeError as e:
            raise DatasetValidationError(f"{file_path.name} is not valid JSON: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise BackupError(f"Cannot read {file_path}: {e}") from e

        return validate_dataset(_unwrap_envelope(raw))

    def restore_from_backup(self, backup_path: Union[str, Path]) -> Dataset:
        """Read and validate a snapshot.

        The caller persists the result; nothing is written here.

        Raises:
            BackupError: If the file is missing or unreadable
            DatasetValidationError: If the content is malformed
        """
        dataset = self._read_dataset_file(backup_path)
        logger.info(f"Backup {Path(backup_path).name} validated ({len(dataset.prompts)} prompts)")
        return dataset

    def export_data(self, dataset: Dataset, export_path: Union[str, Path]) -> Path:
        """Write the dataset to a user chosen path."""
        export_path = Path(export_path)
        try:
            FileHelper.write_json(export_path, dataset.to_dict())
        except OSError as e:
            raise BackupError(f"Could not export to {export_path}: {e}") from e

        logger.info(f"📤 Data exported to {export_path}")
        return export_path

    def import_data(self, import_path: Union[str, Path]) -> Dataset:
        """Read and validate a dataset file chosen by the user."""
        return self._read_dataset_file(import_path)

    def get_backup_summary(self) -> Dict[str, Any]:
        """Summarize the backup directory.

        Returns:
            Summary dictionary
        """
        backups = self.list_backups()
        return {
            'backup_count': len(backups),
            'total_size': sum(b.size for b in backups),
            'latest_backup': backups[0].timestamp if backups else None,
            'backup_dir': str(self.backup_dir),
        }

    # Periodic backups

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def arm(self, interval_minutes: float, snapshot: Callable[[], Dataset]) -> None:
        """(Re)start periodic backups of whatever ``snapshot`` returns.

        Any timer armed earlier is cancelled first.
        """
        with self._timer_lock:
            self._disarm_locked()
            self._interval_seconds = interval_minutes * 60
            self._snapshot = snapshot
            self._schedule_locked(self._timer_generation)
        logger.info(f"⏰ Automatic backup every {interval_minutes:g} minute(s)")

    def disarm(self) -> None:
        with self._timer_lock:
            was_armed = self._timer is not None
            self._disarm_locked()
        if was_armed:
            logger.info("Automatic backup stopped")

    def _disarm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_generation += 1

    def _schedule_locked(self, generation: int) -> None:
        timer = threading.Timer(self._interval_seconds, self._backup_tick, args=(generation,))
        timer.daemon = True
        timer.name = "prompt-hub-auto-backup"
        self._timer = timer
        timer.start()

    def _backup_tick(self, generation: int) -> None:
        try:
            self.create_backup(self._snapshot())
        except (BackupError, DatasetValidationError) as e:
            logger.error(f"Automatic backup failed: {e}")

        with self._timer_lock:
            if generation == self._timer_generation:
                self._schedule_locked(generation)


def _unwrap_envelope(raw: Any) -> Any:
    """Accept export files that wrap the dataset as ``{"data": {...}}``."""
    if isinstance(raw, dict) and 'prompts' not in raw and isinstance(raw.get('data'), dict):
        return raw['data']
    return raw
