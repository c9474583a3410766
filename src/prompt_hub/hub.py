"""Facade wiring storage, backups and sync to the UI collaborators."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .collaborators import Severity, UnattendedCollaborators
from .config.settings import AppSettings, Provider
from .errors import BackupError, DatasetValidationError
from .storage.local_store import LocalStore
from .storage.models import Dataset, Prompt, RecordId, Settings, User, validate_dataset
from .sync.backup_manager import BackupInfo, BackupManager
from .sync.orchestrator import SyncOrchestrator
from .sync.remote_client import RemoteClient
from .sync.results import SyncResult
from .utils.time_utils import utc_now

logger = logging.getLogger(__name__)

RESTORE = "Restore"
DELETE_ALL = "Delete all"
REPLACE_LOCAL = "Replace local data"


class PromptHub:
    """Single entry point used by the CLI (or any other front end).

    Backup, restore, import, export and sync operations return a
    SyncResult and report it through the notifier; the dataset accessors
    return plain values and let errors propagate.
    """

    def __init__(self, settings: AppSettings, ui=None, remote: Optional[RemoteClient] = None):
        """Initialize the hub.

        Args:
            settings: Application settings (paths, timeouts)
            ui: Object implementing the collaborator protocols
            remote: Optional pre-built remote client
        """
        self.settings = settings
        self.ui = ui or UnattendedCollaborators()

        self.backups = BackupManager(settings.backups_dir)
        self.store = LocalStore(settings.data_file, self.backups)

        self.sync = SyncOrchestrator.from_settings(
            settings, self.store, remote=remote, chooser=self.ui, notifier=self.ui
        )

    def _report(self, result: SyncResult) -> SyncResult:
        self.ui.notify(result.message, Severity.INFO if result.success else Severity.ERROR)
        return result

    def _confirm(self, message: str, action: str) -> bool:
        return self.ui.choose(message, [action]) == action

    # Data

    def get_data(self) -> Dataset:
        return self.store.get()

    def save_data(self, data: Union[Dataset, Dict[str, Any]]) -> SyncResult:
        try:
            dataset = validate_dataset(data)
        except DatasetValidationError as e:
            return self._report(SyncResult.fail("Save failed", e))
        self.store.save(dataset)
        return SyncResult.ok("Data saved", data=dataset)

    def get_prompts(self) -> List[Prompt]:
        return self.store.get_prompts()

    def save_prompt(self, prompt: Union[Prompt, Dict[str, Any]]) -> Prompt:
        return self.store.save_prompt(prompt)

    def delete_prompt(self, prompt_id: RecordId) -> bool:
        return self.store.delete_prompt(prompt_id)

    def get_categories(self) -> List[str]:
        return self.store.get_categories()

    def save_categories(self, categories: List[str]) -> List[str]:
        return self.store.save_categories(categories)

    def get_settings(self) -> Settings:
        return self.store.get_settings()

    def save_settings(self, settings: Union[Settings, Dict[str, Any]]) -> Settings:
        saved = self.store.save_settings(settings)
        if self.backups.is_armed:
            self.start_auto_backup()
        return saved

    def get_current_user(self) -> Optional[User]:
        return self.store.get_current_user()

    def set_current_user(self, user_id: Optional[RecordId]) -> None:
        self.store.set_current_user(user_id)

    def get_data_stats(self) -> Dict[str, Any]:
        return self.store.get_data_stats()

    # Backups

    def create_backup(self) -> SyncResult:
        try:
            path = self.backups.create_backup(self.store.get())
        except (BackupError, DatasetValidationError) as e:
            return self._report(SyncResult.fail("Backup failed", e))
        return self._report(SyncResult.ok(f"Backup created: {path.name}"))

    def get_available_backups(self) -> List[BackupInfo]:
        return self.backups.list_backups()

    def restore_from_backup(self, path: Optional[Union[str, Path]] = None, confirm: bool = True) -> SyncResult:
        """Replace the dataset with a backup after validating it.

        The current data is snapshotted first so a restore can be undone.
        """
        if path is None:
            path = self.ui.open_file("Select a backup file to restore")
            if path is None:
                return self._report(SyncResult.fail("Restore cancelled"))

        try:
            dataset = self.backups.restore_from_backup(path)
        except (BackupError, DatasetValidationError) as e:
            return self._report(SyncResult.fail("Restore failed", e))

        if confirm and not self._confirm(
            f"Restore {Path(path).name}? All current data will be replaced.", RESTORE
        ):
            return self._report(SyncResult.fail("Restore cancelled"))

        try:
            self._safety_backup()
            self.store.save(dataset)
        except (BackupError, OSError) as e:
            return self._report(SyncResult.fail("Restore failed", e))

        logger.info(f"♻️ Restored data from {path}")
        return self._report(SyncResult.ok(f"Data restored from {Path(path).name}", data=dataset))

    def export_data(self, path: Optional[Union[str, Path]] = None) -> SyncResult:
        if path is None:
            default_name = f"prompt-hub-export-{utc_now().strftime('%Y-%m-%d')}.json"
            path = self.ui.save_file("Export data to", default_name)
            if path is None:
                return self._report(SyncResult.fail("Export cancelled"))

        try:
            exported = self.backups.export_data(self.store.get(), path)
        except BackupError as e:
            return self._report(SyncResult.fail("Export failed", e))
        return self._report(SyncResult.ok(f"Data exported to {exported}"))

    def import_data(self, path: Optional[Union[str, Path]] = None) -> SyncResult:
        if path is None:
            path = self.ui.open_file("Select a file to import")
            if path is None:
                return self._report(SyncResult.fail("Import cancelled"))

        try:
            dataset = self.backups.import_data(path)
            self._safety_backup()
            self.store.save(dataset)
        except (BackupError, DatasetValidationError, OSError) as e:
            return self._report(SyncResult.fail("Import failed", e))
        return self._report(SyncResult.ok(f"Imported {len(dataset.prompts)} prompt(s)", data=dataset))

    def clear_all_data(self, confirm: bool = True) -> SyncResult:
        if confirm and not self._confirm("Delete all prompts and reset every setting?", DELETE_ALL):
            return self._report(SyncResult.fail("Clear cancelled"))

        try:
            self._safety_backup()
            dataset = self.store.reset()
        except (BackupError, OSError) as e:
            return self._report(SyncResult.fail("Clear failed", e))
        return self._report(SyncResult.ok("All data cleared", data=dataset))

    def _safety_backup(self) -> None:
        if not self.store.exists():
            return
        try:
            current = self.store.get()
        except DatasetValidationError as e:
            logger.warning(f"Current data is unreadable, no safety backup taken: {e}")
            return
        self.backups.create_backup(current)

    # Cloud sync

    def configure_provider_sync(self, provider: Union[Provider, str]) -> SyncResult:
        # The orchestrator notifies the outcome itself
        if self.sync.configure_provider_sync(provider, self.ui):
            return SyncResult.ok("Cloud sync configured")
        return SyncResult.fail("Cloud sync not configured")

    def test_connection(self) -> SyncResult:
        return self._report(self.sync.test_connection())

    def upload_to_cloud(self) -> SyncResult:
        return self._report(self.sync.upload_to_cloud())

    def download_from_cloud(self, confirm: bool = True) -> SyncResult:
        """Download the cloud data and, once confirmed, replace local data with it."""
        # Auto-sync ticks stay out until the downloaded copy is accepted or dropped
        with self.sync.lock:
            result = self.sync.download_from_cloud()
            if not result.success:
                return self._report(result)

            if confirm and not self._confirm(
                f"Replace local data with the cloud copy ({len(result.data.prompts)} prompts)?", REPLACE_LOCAL
            ):
                return self._report(SyncResult.fail("Download cancelled"))

            return self._report(self.sync.accept_remote_data(result.data))

    def sync_with_cloud(self) -> SyncResult:
        return self._report(self.sync.sync_with_cloud())

    def get_sync_status(self) -> Dict[str, Any]:
        return self.sync.get_sync_status()

    def remove_cloud_config(self) -> SyncResult:
        self.sync.remove_cloud_config()
        return self._report(SyncResult.ok("Cloud sync configuration removed"))

    def start_auto_sync(self) -> None:
        self.sync.start()

    def start_auto_backup(self) -> None:
        """Arm periodic backups from the dataset settings, or stop them."""
        settings = self.store.get_settings()
        if settings.auto_backup:
            self.backups.arm(settings.backup_interval, self.store.get)
        else:
            self.backups.disarm()

    def shutdown(self) -> None:
        self.backups.disarm()
        self.sync.shutdown()
