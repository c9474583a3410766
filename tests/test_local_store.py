"""Tests for local dataset persistence."""

import json

import pytest

from prompt_hub.errors import DatasetValidationError
from prompt_hub.storage.local_store import LocalStore
from prompt_hub.storage.models import SENTINEL_CATEGORY, Prompt
from prompt_hub.utils.time_utils import parse_timestamp

from factories import FUTURE, OLD, make_dataset, make_prompt, make_user


class TestGetAndSave:
    def test_get_without_file_returns_seed(self, store):
        dataset = store.get()
        assert SENTINEL_CATEGORY in dataset.categories
        assert dataset.prompts == []
        assert not store.exists()

    def test_save_then_get(self, store):
        store.save(make_dataset([make_prompt("p1")]))
        assert store.exists()
        assert [p.id for p in store.get().prompts] == ["p1"]

    def test_written_document_uses_camel_case(self, store):
        store.save(make_dataset([make_prompt("p1")]))
        raw = json.loads(store.data_file.read_text(encoding="utf-8"))
        assert "lastBackupTime" in raw
        assert raw["prompts"][0]["isActive"] is True

    def test_sentinel_restored_on_save(self, store):
        store.save(make_dataset(categories=["work"]))
        raw = json.loads(store.data_file.read_text(encoding="utf-8"))
        assert SENTINEL_CATEGORY in raw["categories"]

    def test_sentinel_restored_on_get(self, store):
        store.data_file.parent.mkdir(parents=True)
        store.data_file.write_text(json.dumps(make_dataset(categories=["work"]).to_dict()), encoding="utf-8")
        assert store.get().categories == ["work", SENTINEL_CATEGORY]

    def test_malformed_file_raises(self, store):
        store.data_file.parent.mkdir(parents=True)
        store.data_file.write_text("{broken", encoding="utf-8")
        with pytest.raises(DatasetValidationError):
            store.get()

    def test_invalid_file_raises(self, store):
        store.data_file.parent.mkdir(parents=True)
        store.data_file.write_text(json.dumps({"prompts": []}), encoding="utf-8")
        with pytest.raises(DatasetValidationError):
            store.get()

    def test_save_stamps_last_backup_time(self, store):
        dataset = make_dataset(last_backup_time=OLD)
        store.save(dataset)
        assert parse_timestamp(store.get().last_backup_time) > parse_timestamp(OLD)

    def test_stamp_never_moves_backwards(self, store):
        store.save(make_dataset(last_backup_time=FUTURE))
        first = parse_timestamp(store.get().last_backup_time)

        store.save(store.get())
        assert parse_timestamp(store.get().last_backup_time) >= first

    def test_consecutive_saves_are_non_decreasing(self, store):
        stamps = []
        for _ in range(5):
            store.save(store.get())
            stamps.append(parse_timestamp(store.get().last_backup_time))
        assert stamps == sorted(stamps)

    def test_reset_reseeds(self, store):
        store.save(make_dataset([make_prompt("p1")], categories=["mine"]))
        store.reset()
        dataset = store.get()
        assert dataset.prompts == []
        assert "work" in dataset.categories


class TestAutoBackup:
    def test_save_creates_backup(self, store, backups):
        store.save(make_dataset([make_prompt("p1")]))
        assert len(backups.list_backups()) == 1

    def test_disabled_auto_backup(self, store, backups):
        dataset = make_dataset()
        dataset.settings.auto_backup = False
        store.save(dataset)
        assert backups.list_backups() == []

    def test_store_without_backup_manager(self, tmp_path):
        store = LocalStore(tmp_path / "data.json")
        store.save(make_dataset())
        assert store.exists()


class TestPrompts:
    def test_save_prompt_inserts(self, store):
        store.save_prompt(Prompt(title="hello", content="world", category="work"))
        assert [p.title for p in store.get_prompts()] == ["hello"]

    def test_save_prompt_accepts_dict(self, store):
        prompt = store.save_prompt({"id": "p1", "title": "t", "content": "c", "category": "code"})
        assert store.get_prompt("p1").category == "code"
        assert prompt.id == "p1"

    def test_unknown_category_falls_back_to_sentinel(self, store):
        store.save_prompt(make_prompt("p1", category="does-not-exist"))
        assert store.get_prompt("p1").category == SENTINEL_CATEGORY

    def test_update_keeps_created_at(self, store):
        store.save_prompt(make_prompt("p1", created_at="2020-02-02T00:00:00.000Z"))
        store.save_prompt(make_prompt("p1", title="renamed", created_at="2023-03-03T00:00:00.000Z"))

        prompts = store.get_prompts()
        assert len(prompts) == 1
        assert prompts[0].title == "renamed"
        assert prompts[0].created_at == "2020-02-02T00:00:00.000Z"
        assert parse_timestamp(prompts[0].updated_at) > parse_timestamp(OLD)

    def test_delete_prompt(self, store):
        store.save_prompt(make_prompt("p1"))
        assert store.delete_prompt("p1") is True
        assert store.delete_prompt("p1") is False
        assert store.get_prompts() == []

    def test_integer_ids_match_strings(self, store):
        store.save_prompt(make_prompt(7))
        assert store.get_prompt("7") is not None

    def test_set_prompt_enabled(self, store):
        store.save_prompt(make_prompt("p1"))
        store.set_prompt_enabled("p1", False)
        assert store.get_prompt("p1").enabled is False

    def test_set_prompt_enabled_unknown(self, store):
        with pytest.raises(KeyError):
            store.set_prompt_enabled("missing", True)


class TestCategories:
    def test_add_category_keeps_sentinel_last(self, store):
        categories = store.add_category("ideas")
        assert categories[-1] == SENTINEL_CATEGORY
        assert "ideas" in categories

    @pytest.mark.parametrize("name", ["", "   ", "work"])
    def test_add_category_rejects_empty_and_duplicates(self, store, name):
        with pytest.raises(ValueError):
            store.add_category(name)

    def test_rename_category_moves_prompts(self, store):
        store.save_prompt(make_prompt("p1", category="work"))
        store.rename_category("work", "job")
        assert "work" not in store.get_categories()
        assert store.get_prompt("p1").category == "job"

    def test_sentinel_cannot_be_renamed(self, store):
        with pytest.raises(ValueError):
            store.rename_category(SENTINEL_CATEGORY, "other")

    def test_delete_category_reassigns_prompts(self, store):
        store.save_prompt(make_prompt("p1", category="study"))
        store.save_prompt(make_prompt("p2", category="code"))

        assert store.delete_category("study") == 1
        assert store.get_prompt("p1").category == SENTINEL_CATEGORY
        assert store.get_prompt("p2").category == "code"

    def test_sentinel_cannot_be_deleted(self, store):
        with pytest.raises(ValueError):
            store.delete_category(SENTINEL_CATEGORY)
        assert SENTINEL_CATEGORY in store.get_categories()

    def test_delete_unknown_category(self, store):
        with pytest.raises(KeyError):
            store.delete_category("nope")

    def test_save_categories_dedupes_and_reassigns(self, store):
        store.save_prompt(make_prompt("p1", category="creative"))
        categories = store.save_categories(["work", "work", "code"])
        assert categories == ["work", "code", SENTINEL_CATEGORY]
        assert store.get_prompt("p1").category == SENTINEL_CATEGORY


class TestTagsUsersSettings:
    def test_tags(self, store):
        store.save_prompt(make_prompt("p1", tags=["a", "b"]))
        store.save_prompt(make_prompt("p2", tags=["b", "c"]))
        assert store.get_all_tags() == ["a", "b", "c"]

        assert store.delete_tag("b") == 2
        assert store.get_all_tags() == ["a", "c"]

    def test_users_and_current_user(self, store):
        store.save_user(make_user("u1"))
        store.save_user({"id": "u2", "name": "second"})
        store.set_current_user("u2")
        assert store.get_current_user().name == "second"
        assert len(store.get_users()) == 2

    def test_unknown_current_user(self, store):
        with pytest.raises(KeyError):
            store.set_current_user("ghost")

    def test_save_settings_dict_uses_defaults(self, store):
        settings = store.save_settings({"theme": "dark"})
        assert settings.theme == "dark"
        assert store.get_settings().max_backups == 10

    def test_data_stats(self, store):
        assert store.get_data_stats()["last_backup_time"] is None

        store.save_prompt(make_prompt("p1", tags=["x"]))
        stats = store.get_data_stats()
        assert stats["prompt_count"] == 1
        assert stats["tag_count"] == 1
        assert stats["data_size"] > 0
        assert stats["last_backup_time"] is not None
