"""Configuration settings and models for the prompt hub."""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_DATA_DIR = Path.home() / ".prompt_hub"
DEFAULT_REMOTE_FILE = "prompt-hub-data.json"


class Provider(str, Enum):
    """Supported remote content API providers."""
    GITHUB = "github"
    GITEE = "gitee"


# Base URL template and Authorization scheme per provider
PROVIDER_API_TEMPLATES = {
    Provider.GITHUB: "https://api.github.com/repos/{repository}",
    Provider.GITEE: "https://gitee.com/api/v5/repos/{repository}",
}

PROVIDER_AUTH_SCHEMES = {
    Provider.GITHUB: "Bearer",
    Provider.GITEE: "token",
}


class SyncConfig(BaseModel):
    """Cloud sync configuration (stored separately from the dataset)."""
    provider: Provider
    token: str
    repository: str  # owner/repo
    file_path: str = DEFAULT_REMOTE_FILE
    branch: Optional[str] = None
    auto_sync: bool = True
    sync_interval: int = Field(default=60, ge=1)  # minutes

    @field_validator('repository')
    @classmethod
    def validate_repository(cls, v):
        v = v.strip().strip('/')
        parts = v.split('/')
        if len(parts) != 2 or not all(parts):
            raise ValueError('repository must have the form owner/repo')
        return v

    @field_validator('file_path')
    @classmethod
    def validate_file_path(cls, v):
        v = v.strip().lstrip('/')
        if not v:
            raise ValueError('file_path must not be empty')
        return v

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        if not v or not v.strip():
            raise ValueError('token must not be empty')
        return v.strip()

    @property
    def api_base_url(self) -> str:
        """Repository API root for the configured provider."""
        return PROVIDER_API_TEMPLATES[self.provider].format(repository=self.repository)

    @property
    def contents_url(self) -> str:
        """Content endpoint of the synced file."""
        return f"{self.api_base_url}/contents/{self.file_path}"

    @property
    def auth_header(self) -> str:
        """Authorization header value for the configured provider."""
        return f"{PROVIDER_AUTH_SCHEMES[self.provider]} {self.token}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the JSON config document."""
        return self.model_dump(mode='json')


class AppSettings(BaseModel):
    """Application level settings (paths, logging, transport)."""
    data_dir: Path = DEFAULT_DATA_DIR
    backup_dir: Optional[Path] = None  # defaults to <data_dir>/backups
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    http_timeout: float = Field(default=30.0, gt=0)  # seconds
    user_agent: str = "PromptHub-Sync-Client"
    sync_token: Optional[str] = None  # overrides the stored token when set

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        if v.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'invalid log level: {v}')
        return v.upper()

    @field_validator('data_dir', 'backup_dir', 'log_file')
    @classmethod
    def expand_user(cls, v):
        return v.expanduser() if v is not None else v

    @property
    def data_file(self) -> Path:
        return self.data_dir / "data.json"

    @property
    def sync_config_file(self) -> Path:
        return self.data_dir / "sync_config.json"

    @property
    def last_sync_file(self) -> Path:
        return self.data_dir / "last_sync"

    @property
    def backups_dir(self) -> Path:
        return self.backup_dir or self.data_dir / "backups"

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "AppSettings":
        """Load settings from a YAML file, applying environment overrides.

        A missing file yields the defaults plus environment overrides.
        """
        config_path = Path(config_path).expanduser()
        if not config_path.exists():
            return cls.from_env()

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data: Dict[str, Any] = yaml.safe_load(f) or {}

        config_data.update(cls._env_overrides())
        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "AppSettings":
        """Build settings from defaults and environment variables only."""
        return cls(**cls._env_overrides())

    @staticmethod
    def _env_overrides() -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        env_map = {
            'PROMPT_HUB_DATA_DIR': 'data_dir',
            'PROMPT_HUB_BACKUP_DIR': 'backup_dir',
            'PROMPT_HUB_LOG_LEVEL': 'log_level',
            'PROMPT_HUB_LOG_FILE': 'log_file',
            'PROMPT_HUB_HTTP_TIMEOUT': 'http_timeout',
            'PROMPT_HUB_SYNC_TOKEN': 'sync_token',
        }
        for env_name, field_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                overrides[field_name] = value
        return overrides

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save settings to a YAML file (the token is never written)."""
        config_path = Path(config_path).expanduser()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode='json', exclude_none=True, exclude={'sync_token'})
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, indent=2)
