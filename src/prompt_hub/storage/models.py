"""Dataset models and the structural validity check."""

import json
import uuid
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..errors import DatasetValidationError
from ..utils.time_utils import EPOCH, now_iso, to_iso

SCHEMA_VERSION = "1.0.0"
SENTINEL_CATEGORY = "uncategorized"
DEFAULT_CATEGORIES = ["work", "study", "creative", "code"]

RecordId = Union[str, int]


def new_prompt_id() -> str:
    """Generate an opaque, globally unique prompt id."""
    return uuid.uuid4().hex


def _unique(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class _Record(BaseModel):
    """Base for persisted records: camelCase on disk, unknown keys kept."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
    )


class User(_Record):
    """A user known to the dataset."""
    id: RecordId
    name: str = ""
    email: Optional[str] = None
    created_at: Optional[str] = None


class Prompt(_Record):
    """A reusable text prompt."""
    id: RecordId = Field(default_factory=new_prompt_id)
    title: str = "Untitled"
    content: str = ""
    category: str = SENTINEL_CATEGORY
    tags: List[str] = Field(default_factory=list)
    enabled: bool = Field(default=True, alias='isActive')
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)

    @field_validator('tags')
    @classmethod
    def dedupe_tags(cls, v):
        return _unique([tag.strip() for tag in v if tag and tag.strip()])


class Settings(_Record):
    """User facing settings stored inside the dataset."""
    theme: str = "auto"
    auto_backup: bool = True
    cloud_sync: bool = False
    backup_interval: int = Field(default=30, ge=1)  # minutes
    max_backups: int = Field(default=10, ge=1)


class Dataset(_Record):
    """The full persisted collection; the unit of backup and sync."""
    users: List[User] = Field(default_factory=list)
    prompts: List[Prompt] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    current_user: Optional[Union[RecordId, Dict[str, Any]]] = None
    settings: Settings = Field(default_factory=Settings)
    last_backup_time: str = Field(default_factory=now_iso)
    version: str = SCHEMA_VERSION

    @classmethod
    def default(cls) -> "Dataset":
        """Seed dataset used on first run and after a reset."""
        return cls(categories=DEFAULT_CATEGORIES + [SENTINEL_CATEGORY])

    def ensure_sentinel(self) -> "Dataset":
        """Dedupe categories and make sure the sentinel is present."""
        categories = _unique([c for c in self.categories if c])
        if SENTINEL_CATEGORY not in categories:
            categories.append(SENTINEL_CATEGORY)
        self.categories = categories
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def content_fingerprint(self) -> str:
        """Canonical JSON of everything except the persistence timestamp."""
        data = self.to_dict()
        data.pop('lastBackupTime', None)
        return json.dumps(data, sort_keys=True, ensure_ascii=False)

    def same_content(self, other: "Dataset") -> bool:
        return self.content_fingerprint() == other.content_fingerprint()

    def find_prompt(self, prompt_id: RecordId) -> Optional[Prompt]:
        for prompt in self.prompts:
            if str(prompt.id) == str(prompt_id):
                return prompt
        return None


def _fill_missing_stamps(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Give parsed records without timestamps the epoch instead of "now".

    The model defaults stamp the current time, which is right for records
    built in code but would make undated input look like the newest data.
    """
    epoch = to_iso(EPOCH)
    filled = dict(raw)
    if not filled.get('lastBackupTime'):
        filled['lastBackupTime'] = epoch

    prompts = []
    for prompt in filled['prompts']:
        if isinstance(prompt, dict):
            prompt = dict(prompt)
            for key in ('createdAt', 'updatedAt'):
                if not prompt.get(key):
                    prompt[key] = epoch
        prompts.append(prompt)
    filled['prompts'] = prompts
    return filled


def validate_dataset(raw: Any) -> Dataset:
    """Check the structural shape of a dataset and parse it.

    A dataset is valid only when ``users``, ``prompts`` and ``categories``
    are lists (possibly empty) and ``version`` is a non-empty string. The
    records must also satisfy the model schema and prompt ids must be unique.

    Args:
        raw: Parsed JSON value or an existing Dataset

    Returns:
        Parsed Dataset

    Raises:
        DatasetValidationError: If any check fails
    """
    if isinstance(raw, Dataset):
        raw = raw.to_dict()

    if not isinstance(raw, dict):
        raise DatasetValidationError("dataset must be a JSON object")

    missing = [key for key in ('users', 'prompts', 'categories') if not isinstance(raw.get(key), list)]
    if missing:
        raise DatasetValidationError(f"missing or invalid fields: {', '.join(missing)}")

    version = raw.get('version')
    if not isinstance(version, str) or not version.strip():
        raise DatasetValidationError("version must be a non-empty string")

    if raw.get('settings') is not None and not isinstance(raw['settings'], dict):
        raise DatasetValidationError("settings must be an object")

    raw = _fill_missing_stamps(raw)

    try:
        dataset = Dataset.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = '.'.join(str(part) for part in first['loc'])
        raise DatasetValidationError(
            f"{e.error_count()} schema error(s), first at {location}: {first['msg']}"
        ) from e

    seen = set()
    for prompt in dataset.prompts:
        key = str(prompt.id)
        if key in seen:
            raise DatasetValidationError(f"duplicate prompt id: {prompt.id}")
        seen.add(key)

    return dataset


def parse_dataset_json(text: str) -> Dataset:
    """Parse and validate a dataset from JSON text."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise DatasetValidationError(f"not valid JSON: {e}") from e
    return validate_dataset(raw)
