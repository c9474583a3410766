"""Local persistence of the prompt dataset."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import DatasetValidationError
from ..utils.file_utils import FileHelper
from ..utils.time_utils import EPOCH, now_iso, parse_timestamp, to_iso, utc_now
from .models import SENTINEL_CATEGORY, Dataset, Prompt, RecordId, Settings, User, validate_dataset

logger = logging.getLogger(__name__)


class LocalStore:
    """Owns the canonical on-device dataset stored as one JSON document.

    Every ``save`` stamps ``lastBackupTime`` and, when the dataset's
    ``autoBackup`` setting is on, snapshots it through the backup manager
    before returning. The entity helpers are read-modify-write wrappers
    around ``get``/``save`` with id based upserts.
    """

    def __init__(self, data_file: Union[str, Path], backup_manager=None):
        """Initialize the store.

        Args:
            data_file: Path of the dataset JSON document
            backup_manager: Optional BackupManager notified on every save
        """
        self.data_file = Path(data_file)
        self.backup_manager = backup_manager
        self._last_stamp = EPOCH

    # Core data handling

    def exists(self) -> bool:
        return self.data_file.is_file()

    def get(self) -> Dataset:
        """Load the persisted dataset, or the default seed if none exists.

        Raises:
            DatasetValidationError: If the persisted document is malformed
        """
        if not self.exists():
            return Dataset.default()

        try:
            raw = FileHelper.read_json(self.data_file)
        except json.JSONDecodeError as e:
            raise DatasetValidationError(f"{self.data_file} is not valid JSON: {e}") from e

        return validate_dataset(raw).ensure_sentinel()

    def save(self, dataset: Dataset) -> None:
        """Stamp, persist and (optionally) back up the dataset.

        Errors writing the document or the backup propagate to the caller.
        """
        # lastBackupTime never moves backwards within a lineage
        stamp = max(utc_now(), parse_timestamp(dataset.last_backup_time), self._last_stamp)
        self._last_stamp = stamp

        dataset.ensure_sentinel()
        dataset.last_backup_time = to_iso(stamp)
        FileHelper.write_json(self.data_file, dataset.to_dict())
        logger.debug(f"Dataset saved ({len(dataset.prompts)} prompts) at {dataset.last_backup_time}")

        if dataset.settings.auto_backup and self.backup_manager is not None:
            self.backup_manager.create_backup(dataset)

    def reset(self) -> Dataset:
        """Re-seed the dataset to defaults."""
        dataset = Dataset.default()
        self.save(dataset)
        logger.info("Dataset reset to defaults")
        return dataset

    # Users

    def get_users(self) -> List[User]:
        return self.get().users

    def save_user(self, user: Union[User, Dict[str, Any]]) -> User:
        if isinstance(user, dict):
            user = User.model_validate(user)

        dataset = self.get()
        dataset.users = _upsert(dataset.users, user)
        self.save(dataset)
        return user

    def get_current_user(self) -> Optional[User]:
        dataset = self.get()
        current = dataset.current_user
        if isinstance(current, dict):
            current = current.get('id')
        if current is None:
            return None
        for user in dataset.users:
            if str(user.id) == str(current):
                return user
        return None

    def set_current_user(self, user_id: Optional[RecordId]) -> None:
        dataset = self.get()
        if user_id is not None and not any(str(u.id) == str(user_id) for u in dataset.users):
            raise KeyError(f"User not found: {user_id}")
        dataset.current_user = user_id
        self.save(dataset)

    # Prompts

    def get_prompts(self) -> List[Prompt]:
        return self.get().prompts

    def get_prompt(self, prompt_id: RecordId) -> Optional[Prompt]:
        return self.get().find_prompt(prompt_id)

    def save_prompt(self, prompt: Union[Prompt, Dict[str, Any]]) -> Prompt:
        """Insert or replace a prompt by id.

        A category that does not exist falls back to the sentinel.
        """
        if isinstance(prompt, dict):
            prompt = Prompt.model_validate(prompt)

        dataset = self.get()
        if prompt.category not in dataset.categories:
            if prompt.category and prompt.category != SENTINEL_CATEGORY:
                logger.warning(f"Unknown category '{prompt.category}', using '{SENTINEL_CATEGORY}'")
            prompt.category = SENTINEL_CATEGORY

        existing = dataset.find_prompt(prompt.id)
        if existing is not None:
            prompt.created_at = existing.created_at
            prompt.updated_at = now_iso()

        dataset.prompts = _upsert(dataset.prompts, prompt)
        self.save(dataset)
        return prompt

    def delete_prompt(self, prompt_id: RecordId) -> bool:
        dataset = self.get()
        remaining = [p for p in dataset.prompts if str(p.id) != str(prompt_id)]
        if len(remaining) == len(dataset.prompts):
            return False

        dataset.prompts = remaining
        self.save(dataset)
        return True

    def set_prompt_enabled(self, prompt_id: RecordId, enabled: bool) -> Prompt:
        dataset = self.get()
        prompt = dataset.find_prompt(prompt_id)
        if prompt is None:
            raise KeyError(f"Prompt not found: {prompt_id}")

        prompt.enabled = enabled
        prompt.updated_at = now_iso()
        self.save(dataset)
        return prompt

    # Categories

    def get_categories(self) -> List[str]:
        return self.get().categories

    def save_categories(self, categories: List[str]) -> List[str]:
        """Replace the category list.

        Duplicates are dropped, the sentinel is kept, and prompts whose
        category disappeared are moved to the sentinel.
        """
        dataset = self.get()
        dataset.categories = [c.strip() for c in categories if c and c.strip()]
        dataset.ensure_sentinel()
        _reassign_orphans(dataset)
        self.save(dataset)
        return dataset.categories

    def add_category(self, name: str) -> List[str]:
        name = (name or '').strip()
        if not name:
            raise ValueError("Category name must not be empty")

        dataset = self.get()
        if name in dataset.categories:
            raise ValueError(f"Category '{name}' already exists")

        # Keep the sentinel last
        dataset.categories.insert(dataset.categories.index(SENTINEL_CATEGORY), name)
        self.save(dataset)
        return dataset.categories

    def rename_category(self, old_name: str, new_name: str) -> List[str]:
        new_name = (new_name or '').strip()
        if not new_name:
            raise ValueError("Category name must not be empty")
        if old_name == SENTINEL_CATEGORY:
            raise ValueError(f"The '{SENTINEL_CATEGORY}' category cannot be renamed")

        dataset = self.get()
        if old_name == new_name:
            return dataset.categories
        if old_name not in dataset.categories:
            raise KeyError(f"Category not found: {old_name}")
        if new_name in dataset.categories:
            raise ValueError(f"Category '{new_name}' already exists")

        dataset.categories[dataset.categories.index(old_name)] = new_name
        for prompt in dataset.prompts:
            if prompt.category == old_name:
                prompt.category = new_name
        self.save(dataset)
        return dataset.categories

    def delete_category(self, name: str) -> int:
        """Delete a category, moving its prompts to the sentinel.

        Returns:
            Number of prompts that were reassigned
        """
        if name == SENTINEL_CATEGORY:
            raise ValueError(f"The '{SENTINEL_CATEGORY}' category cannot be deleted")

        dataset = self.get()
        if name not in dataset.categories:
            raise KeyError(f"Category not found: {name}")

        dataset.categories = [c for c in dataset.categories if c != name]
        moved = _reassign_orphans(dataset)
        self.save(dataset)
        logger.info(f"Deleted category '{name}', {moved} prompt(s) moved to '{SENTINEL_CATEGORY}'")
        return moved

    # Tags

    def get_all_tags(self) -> List[str]:
        tags: List[str] = []
        for prompt in self.get().prompts:
            for tag in prompt.tags:
                if tag not in tags:
                    tags.append(tag)
        return tags

    def delete_tag(self, tag: str) -> int:
        dataset = self.get()
        touched = 0
        for prompt in dataset.prompts:
            if tag in prompt.tags:
                prompt.tags = [t for t in prompt.tags if t != tag]
                prompt.updated_at = now_iso()
                touched += 1
        if touched:
            self.save(dataset)
        return touched

    # Settings

    def get_settings(self) -> Settings:
        return self.get().settings

    def save_settings(self, settings: Union[Settings, Dict[str, Any]]) -> Settings:
        """Replace settings; keys missing from a dict fall back to defaults."""
        if isinstance(settings, dict):
            settings = Settings.model_validate(settings)

        dataset = self.get()
        dataset.settings = settings
        self.save(dataset)
        return settings

    def get_data_stats(self) -> Dict[str, Any]:
        dataset = self.get()
        data_size = len(dataset.to_json().encode('utf-8'))
        return {
            'user_count': len(dataset.users),
            'prompt_count': len(dataset.prompts),
            'category_count': len(dataset.categories),
            'tag_count': len(self.get_all_tags()),
            'last_backup_time': dataset.last_backup_time if self.exists() else None,
            'data_size': data_size,
        }


def _upsert(records: list, record) -> list:
    """Replace the record with a matching id, else append it."""
    for index, existing in enumerate(records):
        if str(existing.id) == str(record.id):
            records[index] = record
            return records
    records.append(record)
    return records


def _reassign_orphans(dataset: Dataset) -> int:
    moved = 0
    for prompt in dataset.prompts:
        if prompt.category not in dataset.categories:
            prompt.category = SENTINEL_CATEGORY
            prompt.updated_at = now_iso()
            moved += 1
    return moved
