"""Cloud sync protocol, sync configuration and the auto-sync timer."""

import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from ..collaborators import ChoicePrompt, InputCollector, Notifier, Severity
from ..config.settings import DEFAULT_REMOTE_FILE, AppSettings, Provider, SyncConfig
from ..errors import (
    BackupError,
    ConfigurationError,
    ConflictAbort,
    DatasetValidationError,
    NotFoundError,
    TransportError,
)
from ..storage.local_store import LocalStore
from ..storage.models import Dataset, parse_dataset_json
from ..utils.file_utils import FileHelper
from ..utils.logging import TimedOperation
from ..utils.time_utils import now_iso, parse_timestamp
from .conflict_resolver import ConflictResolver
from .remote_client import RemoteClient
from .results import SyncAction, SyncResult

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Cloud sync is not configured"

CHOICE_DOWNLOAD = "Download remote"
CHOICE_KEEP = "Keep local"
CHOICE_MERGE = "Merge"
REMOTE_NEWER_MESSAGE = "The cloud has newer data. What should happen to the local data?"

AUTH_STATUSES = (401, 403)


class SyncState(str, Enum):
    """Phase of the current sync attempt."""
    IDLE = "idle"
    FETCHING = "fetching"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"
    MERGING = "merging"
    CURRENT = "current"


class SyncOrchestrator:
    """Drive one dataset's sync with the remote repository.

    Sync attempts, manual pushes and pulls and auto-sync ticks share one
    re-entrant lock, so at most one of them touches the local store or
    the remote file at a time. At most one auto-sync timer exists.
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteClient,
        config_file: Union[str, Path],
        last_sync_file: Union[str, Path],
        resolver: Optional[ConflictResolver] = None,
        chooser: Optional[ChoicePrompt] = None,
        notifier: Optional[Notifier] = None,
        token_override: Optional[str] = None
    ):
        """Initialize the orchestrator.

        Args:
            store: Local dataset store
            remote: Content API client
            config_file: JSON document holding the sync configuration
            last_sync_file: File holding the last successful sync time
            resolver: Merge strategy (defaults to ConflictResolver)
            chooser: Asked what to do when the remote data is newer
            notifier: Receives user facing messages while configuring
            token_override: Token used instead of the stored one
        """
        self.store = store
        self.remote = remote
        self.config_file = Path(config_file)
        self.last_sync_file = Path(last_sync_file)
        self.resolver = resolver or ConflictResolver()
        self.chooser = chooser
        self.notifier = notifier
        self.token_override = token_override

        self._lock = threading.RLock()
        self._state = SyncState.IDLE

        self._timer_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._timer_generation = 0
        self._interval_seconds = 0.0

    @classmethod
    def from_settings(cls, settings: AppSettings, store: LocalStore,
                      remote: Optional[RemoteClient] = None, **kwargs) -> "SyncOrchestrator":
        """Build an orchestrator over the files and HTTP options in ``settings``."""
        remote = remote or RemoteClient(timeout=settings.http_timeout, user_agent=settings.user_agent)
        return cls(
            store=store,
            remote=remote,
            config_file=settings.sync_config_file,
            last_sync_file=settings.last_sync_file,
            token_override=settings.sync_token,
            **kwargs
        )

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def lock(self) -> threading.RLock:
        """Lock held by every sync attempt; hold it to keep ticks out."""
        return self._lock

    def _set_state(self, state: SyncState) -> None:
        if state != self._state:
            logger.debug(f"Sync state {self._state.value} -> {state.value}")
        self._state = state

    # Configuration

    def get_cloud_config(self) -> Optional[SyncConfig]:
        """Load the stored sync configuration, or None when absent."""
        if not self.config_file.is_file():
            return None

        try:
            config = SyncConfig.model_validate(FileHelper.read_json(self.config_file))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Ignoring unreadable sync configuration {self.config_file}: {e}")
            return None

        if self.token_override:
            config = config.model_copy(update={'token': self.token_override})
        return config

    def require_cloud_config(self) -> SyncConfig:
        """Like get_cloud_config, but raises ConfigurationError when absent."""
        config = self.get_cloud_config()
        if config is None:
            raise ConfigurationError(NOT_CONFIGURED)
        return config

    def save_cloud_config(self, config: SyncConfig) -> None:
        """Persist the configuration and re-arm or disarm auto-sync."""
        FileHelper.write_json(self.config_file, config.to_dict(), mode=0o600)
        logger.info(f"Sync configuration saved ({config.provider.value}: {config.repository})")

        if config.auto_sync:
            self.arm(config.sync_interval)
        else:
            self.disarm()

    def remove_cloud_config(self) -> None:
        """Disarm auto-sync and forget the configuration and last sync time."""
        self.disarm()
        self.config_file.unlink(missing_ok=True)
        self.last_sync_file.unlink(missing_ok=True)
        logger.info("Sync configuration removed")

    def configure_provider_sync(self, provider: Union[Provider, str], collector: InputCollector) -> bool:
        """Collect credentials interactively, test them and save the config.

        Returns:
            True when a working configuration was saved
        """
        provider = Provider(provider)
        label = provider.value.capitalize()

        token = collector.ask(f"{label} access token", secret=True)
        if not token:
            return False
        repository = collector.ask("Repository (owner/repo)")
        if not repository:
            return False
        file_path = collector.ask("File path in the repository", default=DEFAULT_REMOTE_FILE)
        if not file_path:
            return False

        current = self.get_cloud_config()
        stored_interval = current.sync_interval if current else SyncConfig.model_fields['sync_interval'].default
        default_interval = 0 if current and not current.auto_sync else stored_interval
        answer = collector.ask("Auto sync interval in minutes (0 turns it off)", default=str(default_interval))
        if answer is None:
            return False
        try:
            minutes = int(answer)
        except ValueError:
            self._notify(f"Invalid {label} sync settings: interval must be a whole number", Severity.ERROR)
            return False

        try:
            config = SyncConfig(
                provider=provider,
                token=token,
                repository=repository,
                file_path=file_path,
                auto_sync=minutes > 0,
                sync_interval=minutes if minutes > 0 else stored_interval,
            )
        except ValidationError as e:
            self._notify(f"Invalid {label} sync settings: {e.errors()[0]['msg']}", Severity.ERROR)
            return False

        result = self.remote.test_connection(config)
        if not result.success:
            self._notify(f"{label} connection test failed: {result.message}", Severity.ERROR)
            return False

        self.save_cloud_config(config)
        self._notify(f"{label} sync configured", Severity.INFO)
        return True

    def _notify(self, message: str, severity: Severity) -> None:
        if self.notifier is not None:
            self.notifier.notify(message, severity)

    def test_connection(self, config: Optional[SyncConfig] = None) -> SyncResult:
        if config is None:
            try:
                config = self.require_cloud_config()
            except ConfigurationError as e:
                return SyncResult.fail(str(e))
        return self.remote.test_connection(config)

    def get_last_sync_time(self) -> Optional[str]:
        try:
            value = self.last_sync_file.read_text(encoding='utf-8').strip()
        except FileNotFoundError:
            return None
        return value or None

    def _update_last_sync_time(self) -> None:
        self.last_sync_file.parent.mkdir(parents=True, exist_ok=True)
        self.last_sync_file.write_text(now_iso(), encoding='utf-8')

    def get_sync_status(self) -> Dict[str, Any]:
        config = self.get_cloud_config()
        return {
            'is_configured': config is not None,
            'provider': config.provider.value if config else None,
            'last_sync_time': self.get_last_sync_time(),
            'auto_sync_enabled': bool(config and config.auto_sync),
            'auto_sync_armed': self.is_armed,
            'state': self._state.value,
        }

    # Remote I/O

    def _fetch_remote(self, config: SyncConfig) -> Tuple[Dataset, Optional[str]]:
        """Download and validate the remote dataset.

        Raises:
            NotFoundError: If the remote file does not exist
            TransportError: If the download failed
            DatasetValidationError: If the remote content is malformed
        """
        result = self.remote.download_file(config)
        if result.not_found:
            raise NotFoundError(result.message)
        if not result.success:
            raise TransportError(result.message, result.status_code)
        return parse_dataset_json(result.content or ''), result.sha

    def download_from_cloud(self) -> SyncResult:
        """Fetch and validate the remote dataset without persisting it."""
        try:
            config = self.require_cloud_config()
        except ConfigurationError as e:
            return SyncResult.fail(str(e))

        with self._lock:
            self._set_state(SyncState.FETCHING)
            try:
                remote_data, _ = self._fetch_remote(config)
            except NotFoundError:
                return SyncResult.fail("Download failed", "no data in the cloud yet")
            except TransportError as e:
                return _transport_failure(None, e)
            except DatasetValidationError as e:
                return SyncResult.fail("Cloud data is invalid", e)
            except Exception as e:
                logger.exception("Unexpected error while downloading from the cloud")
                return SyncResult.fail("Download failed", e)
            finally:
                self._set_state(SyncState.IDLE)

        return SyncResult.ok("Data downloaded from the cloud", data=remote_data, action=SyncAction.DOWNLOADED)

    def accept_remote_data(self, dataset: Dataset) -> SyncResult:
        """Replace the local dataset with downloaded data and record the sync."""
        with self._lock:
            self._set_state(SyncState.DOWNLOADING)
            try:
                self.store.save(dataset)
                self._update_last_sync_time()
            except Exception as e:
                logger.exception("Could not persist downloaded data")
                return SyncResult.fail("Download failed", e)
            finally:
                self._set_state(SyncState.IDLE)

        return SyncResult.ok("Cloud data downloaded and saved", action=SyncAction.DOWNLOADED)

    def upload_to_cloud(self) -> SyncResult:
        """Push local data, merging with any remote data first."""
        try:
            config = self.require_cloud_config()
        except ConfigurationError as e:
            return SyncResult.fail(str(e))

        with self._lock:
            try:
                return self._push(config)
            except Exception as e:
                logger.exception("Unexpected error while uploading to the cloud")
                return SyncResult.fail("Upload failed", e)
            finally:
                self._set_state(SyncState.IDLE)

    def _push(self, config: SyncConfig) -> SyncResult:
        # Re-read the remote right before writing so a concurrent write from
        # another device is merged instead of overwritten
        self._set_state(SyncState.FETCHING)
        local = self.store.get()
        try:
            remote_data, sha = self._fetch_remote(config)
        except NotFoundError:
            remote_data, sha = None, None
        except TransportError as e:
            return _transport_failure("Upload aborted", e)
        except DatasetValidationError as e:
            return SyncResult.fail("Upload aborted, cloud data is invalid", e)

        outgoing = local
        if remote_data is not None:
            self._set_state(SyncState.MERGING)
            try:
                outgoing = self.resolver.merge(local, remote_data)
            except ConflictAbort as e:
                return SyncResult.fail("Upload aborted", e)

            if outgoing.same_content(local):
                # Nothing new came from the remote; keep the local lineage stamp
                outgoing.last_backup_time = local.last_backup_time

            if outgoing.same_content(remote_data):
                if not outgoing.same_content(local):
                    self.store.save(outgoing)
                self._update_last_sync_time()
                logger.info("Cloud data already matches local data, nothing uploaded")
                return SyncResult.ok("Cloud data is already up to date", action=SyncAction.IN_SYNC)

        self._set_state(SyncState.UPLOADING)
        result = self.remote.upload_file(config, outgoing.to_json(), sha=sha)
        if not result.success:
            return result

        # The remote now holds outgoing, whatever happens to the local copy
        self._update_last_sync_time()

        merged = remote_data is not None and not outgoing.same_content(local)
        if merged:
            try:
                self.store.save(outgoing)
            except (BackupError, OSError) as e:
                logger.error(f"Merged data was uploaded but could not be saved locally: {e}")
                result = SyncResult.fail("Uploaded, but saving merged data locally failed", e)
                result.action = SyncAction.UPLOADED
                return result

        return SyncResult.ok(
            "Data uploaded to the cloud",
            action=SyncAction.UPLOADED,
            conflict_resolved=merged,
            data=outgoing,
        )

    def sync_with_cloud(self) -> SyncResult:
        """Two-way sync: pick the direction from the lastBackupTime stamps."""
        try:
            config = self.require_cloud_config()
        except ConfigurationError as e:
            return SyncResult.fail(str(e))

        with self._lock:
            try:
                with TimedOperation(logger, "cloud sync", log_level="DEBUG"):
                    return self._sync(config)
            except Exception as e:
                logger.exception("Unexpected error during cloud sync")
                return SyncResult.fail("Sync failed", e)
            finally:
                self._set_state(SyncState.IDLE)

    def _sync(self, config: SyncConfig) -> SyncResult:
        self._set_state(SyncState.FETCHING)
        try:
            remote_data, _ = self._fetch_remote(config)
        except NotFoundError:
            logger.info("📦 No data in the cloud yet, uploading local data")
            return self._push(config)
        except TransportError as e:
            return _transport_failure("Sync failed", e)
        except DatasetValidationError as e:
            return SyncResult.fail("Sync failed, cloud data is invalid", e)

        local = self.store.get()
        local_time = parse_timestamp(local.last_backup_time)
        remote_time = parse_timestamp(remote_data.last_backup_time)

        if local_time > remote_time:
            logger.info("🔄 Local data is newer, uploading")
            return self._push(config)

        if remote_time > local_time:
            logger.info("🔄 Cloud data is newer, asking how to proceed")
            return self._resolve_remote_newer(local, remote_data)

        self._set_state(SyncState.CURRENT)
        return SyncResult.ok("Data is already up to date", action=SyncAction.IN_SYNC)

    def _resolve_remote_newer(self, local: Dataset, remote_data: Dataset) -> SyncResult:
        choice = None
        if self.chooser is not None:
            choice = self.chooser.choose(REMOTE_NEWER_MESSAGE, [CHOICE_DOWNLOAD, CHOICE_KEEP, CHOICE_MERGE])

        if choice == CHOICE_DOWNLOAD:
            self._set_state(SyncState.DOWNLOADING)
            self.store.save(remote_data)
            self._update_last_sync_time()
            return SyncResult.ok("Latest data downloaded from the cloud", action=SyncAction.DOWNLOADED)

        if choice == CHOICE_MERGE:
            self._set_state(SyncState.MERGING)
            result = self.resolver.resolve(local, remote_data)
            if not result.success:
                return result
            self.store.save(result.data)
            self._update_last_sync_time()
            return SyncResult.ok("Local and cloud data merged", data=result.data,
                                 conflict_resolved=True, action=SyncAction.MERGED)

        if choice == CHOICE_KEEP:
            return SyncResult.ok("Kept local data", action=SyncAction.KEPT_LOCAL)

        return SyncResult.fail("Sync cancelled", "cloud data is newer and no choice was made")

    # Auto-sync timer

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Arm auto-sync if the stored configuration asks for it."""
        config = self.get_cloud_config()
        if config is not None and config.auto_sync:
            self.arm(config.sync_interval)

    def arm(self, interval_minutes: float) -> None:
        """(Re)start the recurring auto-sync timer; any prior timer is cancelled."""
        with self._timer_lock:
            self._disarm_locked()
            self._interval_seconds = interval_minutes * 60
            self._schedule_locked(self._timer_generation)
        logger.info(f"⏰ Auto sync every {interval_minutes:g} minute(s)")

    def disarm(self) -> None:
        with self._timer_lock:
            was_armed = self._timer is not None
            self._disarm_locked()
        if was_armed:
            logger.info("Auto sync stopped")

    def _disarm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # Ticks already running from an older generation will not reschedule
        self._timer_generation += 1

    def _schedule_locked(self, generation: int) -> None:
        timer = threading.Timer(self._interval_seconds, self._auto_sync_tick, args=(generation,))
        timer.daemon = True
        timer.name = "prompt-hub-auto-sync"
        self._timer = timer
        timer.start()

    def _auto_sync_tick(self, generation: int) -> None:
        if self._lock.acquire(blocking=False):
            try:
                result = self.sync_with_cloud()
                if result.success:
                    logger.info(f"Auto sync finished: {result.message}")
                else:
                    logger.error(f"Auto sync failed: {result.message}")
            finally:
                self._lock.release()
        else:
            logger.info("Sync already in progress, skipping this auto sync tick")

        with self._timer_lock:
            if generation == self._timer_generation:
                self._schedule_locked(generation)

    def shutdown(self) -> None:
        self.disarm()
        self.remote.close()


def _transport_failure(prefix: Optional[str], error: TransportError) -> SyncResult:
    """Failure result for a download error, with a hint on rejected tokens."""
    cause = str(error)
    if error.status_code in AUTH_STATUSES:
        cause = f"{cause}, check the access token and its repository permissions"
    if prefix is None:
        return SyncResult(success=False, message=cause)
    return SyncResult.fail(prefix, cause)
