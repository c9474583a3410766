"""Backups, remote transport, merging and the sync protocol."""

from .backup_manager import BackupInfo, BackupManager
from .conflict_resolver import ConflictResolver
from .orchestrator import SyncOrchestrator, SyncState
from .remote_client import RemoteClient
from .results import DownloadResult, SyncAction, SyncResult

__all__ = [
    "BackupInfo",
    "BackupManager",
    "ConflictResolver",
    "DownloadResult",
    "RemoteClient",
    "SyncAction",
    "SyncOrchestrator",
    "SyncResult",
    "SyncState",
]
