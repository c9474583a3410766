"""Tests for the hub facade: backups, import/export and cloud operations."""

import json
import threading

import pytest

from prompt_hub.collaborators import Severity
from prompt_hub.hub import DELETE_ALL, REPLACE_LOCAL, RESTORE, PromptHub
from prompt_hub.sync.remote_client import RemoteClient

from factories import make_dataset, make_prompt


@pytest.fixture
def hub(settings, ui, api):
    hub = PromptHub(settings, ui=ui, remote=RemoteClient(session=api))
    yield hub
    hub.shutdown()


@pytest.fixture
def configured_hub(hub, sync_config):
    hub.sync.save_cloud_config(sync_config)
    return hub


def _prompt_ids(hub):
    return sorted(str(p.id) for p in hub.get_prompts())


class TestData:
    def test_save_data_validates(self, hub, ui):
        result = hub.save_data({"prompts": []})
        assert not result.success
        assert ui.messages(Severity.ERROR)
        assert not hub.store.exists()

    def test_save_data(self, hub):
        assert hub.save_data(make_dataset([make_prompt("p1")]).to_dict()).success
        assert _prompt_ids(hub) == ["p1"]

    def test_entity_helpers(self, hub):
        hub.save_prompt(make_prompt("p1"))
        hub.save_categories(["work", "ideas"])
        hub.save_settings({"theme": "dark"})

        assert _prompt_ids(hub) == ["p1"]
        assert "ideas" in hub.get_categories()
        assert hub.get_settings().theme == "dark"
        assert hub.delete_prompt("p1")
        assert hub.get_current_user() is None


class TestBackups:
    def test_create_backup_notifies(self, hub, ui):
        result = hub.create_backup()
        assert result.success
        assert len(hub.get_available_backups()) == 1
        assert ui.messages(Severity.INFO)

    def test_restore_with_confirmation(self, hub, ui):
        hub.save_prompt(make_prompt("old"))
        backup = hub.get_available_backups()[0].path
        hub.save_prompt(make_prompt("new"))
        ui.choices = [RESTORE]

        result = hub.restore_from_backup(backup)

        assert result.success
        assert _prompt_ids(hub) == ["old"]
        assert ui.questions[-1][1] == [RESTORE]

    def test_restore_takes_safety_backup(self, hub, ui):
        hub.save_prompt(make_prompt("old"))
        backup = hub.get_available_backups()[0].path
        hub.save_prompt(make_prompt("new"))
        count = len(hub.get_available_backups())
        ui.choices = [RESTORE]

        hub.restore_from_backup(backup)

        # One safety snapshot plus the auto backup of the restored data
        assert len(hub.get_available_backups()) == count + 2

    def test_restore_declined(self, hub, ui):
        hub.save_prompt(make_prompt("old"))
        backup = hub.get_available_backups()[0].path
        hub.save_prompt(make_prompt("new"))
        result = hub.restore_from_backup(backup)

        assert not result.success
        assert _prompt_ids(hub) == ["new", "old"]

    def test_restore_uses_file_dialog(self, hub, ui):
        hub.save_prompt(make_prompt("old"))
        ui.files = [hub.get_available_backups()[0].path]
        hub.delete_prompt("old")

        assert hub.restore_from_backup(confirm=False).success
        assert _prompt_ids(hub) == ["old"]

    def test_restore_dialog_cancelled(self, hub):
        result = hub.restore_from_backup()
        assert not result.success
        assert result.message == "Restore cancelled"

    def test_restore_malformed_leaves_data(self, hub, ui, tmp_path):
        hub.save_prompt(make_prompt("keep"))
        before = hub.store.data_file.read_text(encoding="utf-8")
        bad = tmp_path / "bad.json"
        bad.write_text("{broken", encoding="utf-8")

        result = hub.restore_from_backup(bad, confirm=False)

        assert not result.success
        assert result.message.startswith("Restore failed")
        assert hub.store.data_file.read_text(encoding="utf-8") == before


class TestImportExport:
    def test_export_to_path(self, hub, tmp_path):
        hub.save_prompt(make_prompt("p1"))
        target = tmp_path / "export.json"

        assert hub.export_data(target).success
        assert json.loads(target.read_text(encoding="utf-8"))["prompts"][0]["id"] == "p1"

    def test_export_suggests_dated_name(self, hub, ui):
        result = hub.export_data()
        assert not result.success
        default_name = ui.questions[-1][1][0]
        assert default_name.startswith("prompt-hub-export-")
        assert default_name.endswith(".json")

    def test_import(self, hub, tmp_path):
        source = tmp_path / "in.json"
        source.write_text(make_dataset([make_prompt("imported")]).to_json(), encoding="utf-8")

        result = hub.import_data(source)

        assert result.success
        assert _prompt_ids(hub) == ["imported"]

    def test_import_invalid_file(self, hub, tmp_path):
        hub.save_prompt(make_prompt("keep"))
        source = tmp_path / "in.json"
        source.write_text(json.dumps({"prompts": [{"id": 1}]}), encoding="utf-8")

        result = hub.import_data(source)

        assert not result.success
        assert _prompt_ids(hub) == ["keep"]

    def test_clear_all_data(self, hub, ui):
        hub.save_prompt(make_prompt("p1"))
        ui.choices = [DELETE_ALL]

        assert hub.clear_all_data().success
        assert hub.get_prompts() == []

    def test_clear_all_data_declined(self, hub):
        hub.save_prompt(make_prompt("p1"))
        assert not hub.clear_all_data().success
        assert _prompt_ids(hub) == ["p1"]


class TestCloud:
    def test_sync_notifies_result(self, configured_hub, ui):
        result = configured_hub.sync_with_cloud()
        assert result.success
        assert ui.messages(Severity.INFO)[-1] == result.message

    def test_not_configured_notifies_error(self, hub, ui):
        assert not hub.upload_to_cloud().success
        assert ui.messages(Severity.ERROR)

    def test_download_replaces_after_confirmation(self, configured_hub, api, ui):
        configured_hub.save_prompt(make_prompt("local"))
        api.set_remote(make_dataset([make_prompt("remote")]))
        ui.choices = [REPLACE_LOCAL]

        result = configured_hub.download_from_cloud()

        assert result.success
        assert _prompt_ids(configured_hub) == ["remote"]
        assert configured_hub.get_sync_status()["last_sync_time"] is not None

    def test_download_declined(self, configured_hub, api):
        configured_hub.save_prompt(make_prompt("local"))
        api.set_remote(make_dataset([make_prompt("remote")]))

        result = configured_hub.download_from_cloud()

        assert not result.success
        assert _prompt_ids(configured_hub) == ["local"]

    def test_download_keeps_ticks_out_while_confirming(self, configured_hub, api, ui):
        api.set_remote(make_dataset([make_prompt("remote")]))
        acquired = []

        def choose(message, options):
            lock = configured_hub.sync.lock
            contender = threading.Thread(target=lambda: acquired.append(lock.acquire(blocking=False)))
            contender.start()
            contender.join()
            return REPLACE_LOCAL

        ui.choose = choose

        assert configured_hub.download_from_cloud().success
        assert acquired == [False]

    def test_configure_provider_sync(self, hub, ui):
        ui.answers = ["token", "octo/prompts", "hub.json"]
        assert hub.configure_provider_sync("gitee").success
        assert hub.get_sync_status()["provider"] == "gitee"

    def test_remove_cloud_config(self, configured_hub):
        assert configured_hub.remove_cloud_config().success
        assert configured_hub.get_sync_status()["is_configured"] is False


class TestCorruptLocalData:
    def test_restore_replaces_unreadable_data(self, hub, settings, tmp_path):
        source = tmp_path / "good.json"
        source.write_text(make_dataset([make_prompt("good")]).to_json(), encoding="utf-8")
        settings.data_file.parent.mkdir(parents=True)
        settings.data_file.write_text("{corrupt", encoding="utf-8")

        assert hub.restore_from_backup(source, confirm=False).success
        assert _prompt_ids(hub) == ["good"]


class TestAutoBackup:
    def test_start_arms_from_dataset_settings(self, hub):
        hub.save_settings({"backupInterval": 5})
        assert not hub.backups.is_armed

        hub.start_auto_backup()
        assert hub.backups.is_armed
        assert hub.backups._interval_seconds == 300

    def test_save_settings_rearms_or_stops(self, hub):
        hub.start_auto_backup()
        first = hub.backups._timer

        hub.save_settings({"backupInterval": 10})
        assert hub.backups.is_armed
        assert hub.backups._timer is not first

        hub.save_settings({"autoBackup": False})
        assert not hub.backups.is_armed

    def test_tick_snapshots_current_data(self, hub):
        hub.save_settings({"autoBackup": False})
        hub.save_prompt(make_prompt("p1"))
        hub.start_auto_backup()
        assert not hub.backups.is_armed

        hub.save_settings({"autoBackup": True})
        hub.start_auto_backup()
        before = len(hub.get_available_backups())
        hub.backups._backup_tick(hub.backups._timer_generation)

        backups = hub.get_available_backups()
        assert len(backups) == before + 1
        assert json.loads(backups[0].path.read_text(encoding="utf-8"))["prompts"][0]["id"] == "p1"

    def test_shutdown_stops_backups(self, hub):
        hub.start_auto_backup()
        hub.shutdown()
        assert not hub.backups.is_armed
