"""Result types returned across the remote and sync boundaries."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..storage.models import Dataset
from ..utils.time_utils import now_iso


class SyncAction(str, Enum):
    """What a sync attempt ended up doing."""
    NONE = "none"
    UPLOADED = "uploaded"
    DOWNLOADED = "downloaded"
    MERGED = "merged"
    IN_SYNC = "in_sync"
    KEPT_LOCAL = "kept_local"


@dataclass
class SyncResult:
    """Tagged success/failure result with an optional dataset payload."""
    success: bool
    message: str
    timestamp: str = field(default_factory=now_iso)
    data: Optional[Dataset] = None
    conflict_resolved: bool = False
    action: SyncAction = SyncAction.NONE

    @classmethod
    def ok(cls, message: str, **kwargs) -> "SyncResult":
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def fail(cls, prefix: str, cause: Any = None) -> "SyncResult":
        """Failure whose message is a fixed prefix plus the cause."""
        message = f"{prefix}: {cause}" if cause not in (None, '') else prefix
        return cls(success=False, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'timestamp': self.timestamp,
            'action': self.action.value,
            'conflict_resolved': self.conflict_resolved,
            'has_data': self.data is not None,
        }


@dataclass
class DownloadResult:
    """Outcome of reading the remote file."""
    success: bool
    message: str
    content: Optional[str] = None
    sha: Optional[str] = None  # revision token
    not_found: bool = False
    status_code: Optional[int] = None
    timestamp: str = field(default_factory=now_iso)
