"""Entity level last-writer-wins merge of two datasets."""

import logging
from typing import Any, Dict, List, Union

from ..errors import ConflictAbort, DatasetValidationError
from ..storage.models import Dataset, Prompt, User, validate_dataset
from ..utils.time_utils import now_iso, parse_timestamp
from .results import SyncAction, SyncResult

logger = logging.getLogger(__name__)

DatasetInput = Union[Dataset, Dict[str, Any]]


class ConflictResolver:
    """Reconcile a local and a remote dataset into one.

    Rules per field:

    - users: union by id, the remote record wins on collision
    - prompts: union by id, the later ``updatedAt`` wins; equal
      timestamps keep the local record, which can drop a remote edit
      made in the same instant
    - categories: union, local order first
    - version, settings, currentUser: local
    - lastBackupTime: the merge's own completion time

    A prompt edited on both sides resolves to one whole record; the
    other side's edit to that record is discarded.
    """

    def merge(self, local: DatasetInput, remote: DatasetInput) -> Dataset:
        """Merge two datasets.

        Raises:
            ConflictAbort: If either input fails the validity check
        """
        local_data = _validated(local, "local")
        remote_data = _validated(remote, "remote")

        merged = local_data.model_copy(deep=True)
        merged.users = merge_users(local_data.users, remote_data.users)
        merged.prompts = merge_prompts(local_data.prompts, remote_data.prompts)
        merged.categories = merge_categories(local_data.categories, remote_data.categories)
        merged.ensure_sentinel()
        merged.last_backup_time = now_iso()

        logger.info(
            f"🔀 Merged datasets: {len(local_data.prompts)} local + {len(remote_data.prompts)} remote "
            f"-> {len(merged.prompts)} prompts"
        )
        return merged

    def resolve(self, local: DatasetInput, remote: DatasetInput) -> SyncResult:
        """Merge and wrap the outcome in a result; no payload on failure."""
        try:
            merged = self.merge(local, remote)
        except ConflictAbort as e:
            logger.error(f"Merge aborted: {e}")
            return SyncResult.fail("Merge failed", e)

        return SyncResult.ok("Data conflict merged automatically", data=merged,
                             conflict_resolved=True, action=SyncAction.MERGED)


def _validated(data: DatasetInput, side: str) -> Dataset:
    try:
        return validate_dataset(data)
    except DatasetValidationError as e:
        raise ConflictAbort(f"{side} dataset is invalid: {e}") from e


def merge_users(local_users: List[User], remote_users: List[User]) -> List[User]:
    merged = [u.model_copy(deep=True) for u in local_users]
    index = {str(u.id): i for i, u in enumerate(merged)}

    for remote_user in remote_users:
        key = str(remote_user.id)
        if key in index:
            merged[index[key]] = remote_user.model_copy(deep=True)
        else:
            index[key] = len(merged)
            merged.append(remote_user.model_copy(deep=True))
    return merged


def merge_prompts(local_prompts: List[Prompt], remote_prompts: List[Prompt]) -> List[Prompt]:
    merged = [p.model_copy(deep=True) for p in local_prompts]
    index = {str(p.id): i for i, p in enumerate(merged)}

    for remote_prompt in remote_prompts:
        key = str(remote_prompt.id)
        if key not in index:
            index[key] = len(merged)
            merged.append(remote_prompt.model_copy(deep=True))
            continue

        local_prompt = merged[index[key]]
        if parse_timestamp(remote_prompt.updated_at) > parse_timestamp(local_prompt.updated_at):
            merged[index[key]] = remote_prompt.model_copy(deep=True)
    return merged


def merge_categories(local_categories: List[str], remote_categories: List[str]) -> List[str]:
    merged = list(dict.fromkeys(local_categories))
    for category in remote_categories:
        if category not in merged:
            merged.append(category)
    return merged
