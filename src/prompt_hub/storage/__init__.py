"""Dataset models and local persistence."""

from .local_store import LocalStore
from .models import SENTINEL_CATEGORY, Dataset, Prompt, Settings, User, validate_dataset

__all__ = [
    "LocalStore",
    "Dataset",
    "Prompt",
    "Settings",
    "User",
    "SENTINEL_CATEGORY",
    "validate_dataset",
]
