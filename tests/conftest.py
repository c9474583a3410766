"""Shared fixtures: temporary settings, a fake content API and fake UI collaborators."""

import pytest

from prompt_hub.config.settings import AppSettings, SyncConfig
from prompt_hub.storage.local_store import LocalStore
from prompt_hub.sync.backup_manager import BackupManager
from prompt_hub.sync.orchestrator import SyncOrchestrator
from prompt_hub.sync.remote_client import RemoteClient

from fakes import FakeContentAPI, FakeUI


@pytest.fixture
def settings(tmp_path):
    return AppSettings(data_dir=tmp_path / "data")


@pytest.fixture
def api():
    return FakeContentAPI()


@pytest.fixture
def ui():
    return FakeUI()


@pytest.fixture
def remote(api):
    return RemoteClient(timeout=5, session=api)


@pytest.fixture
def backups(settings):
    return BackupManager(settings.backups_dir)


@pytest.fixture
def store(settings, backups):
    return LocalStore(settings.data_file, backups)


@pytest.fixture
def sync_config():
    return SyncConfig(provider="github", token="secret-token", repository="octo/prompts", auto_sync=False)


@pytest.fixture
def orchestrator(settings, store, remote, ui):
    orchestrator = SyncOrchestrator(
        store=store,
        remote=remote,
        config_file=settings.sync_config_file,
        last_sync_file=settings.last_sync_file,
        chooser=ui,
        notifier=ui,
    )
    yield orchestrator
    orchestrator.disarm()


@pytest.fixture
def configured(orchestrator, sync_config):
    orchestrator.save_cloud_config(sync_config)
    return orchestrator
