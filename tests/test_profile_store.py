"""Tests for the file-backed profile store."""

import json

import pytest

from factories import make_profile
from therapy_profiles.schemas.profile import ProfileReference
from therapy_profiles.schemas.schedule import BasalRateSchedule
from therapy_profiles.services.profile_store import (
    CorruptProfileError,
    ProfileNotFoundError,
    ProfileStore,
    StorageUnavailableError,
    make_storage_key,
)


class TestEnsureStorageReady:
    def test_creates_directory(self, store):
        assert not store.directory.exists()
        store.ensure_storage_ready()
        assert store.directory.is_dir()

    def test_idempotent(self, store):
        store.ensure_storage_ready()
        store.ensure_storage_ready()
        assert store.directory.is_dir()

    def test_file_in_the_way(self, tmp_path, clock):
        blocker = tmp_path / "LoopProfile"
        blocker.write_text("not a directory")
        store = ProfileStore(blocker, clock=clock)
        with pytest.raises(StorageUnavailableError):
            store.ensure_storage_ready()

    def test_save_fails_when_storage_unavailable(self, tmp_path, clock):
        blocker = tmp_path / "LoopProfile"
        blocker.write_text("not a directory")
        store = ProfileStore(blocker, clock=clock)
        with pytest.raises(StorageUnavailableError):
            store.save(make_profile())


class TestStorageKey:
    def test_format(self, clock):
        assert make_storage_key(clock()) == "2025-06-15-12-00-00.json"


class TestListProfiles:
    def test_missing_directory_is_empty(self, store):
        assert store.list_profiles() == []

    def test_empty_directory(self, store):
        store.ensure_storage_ready()
        assert store.list_profiles() == []

    def test_lists_in_creation_order(self, store, clock):
        for name in ("p1", "p2", "p3"):
            store.save(make_profile(name=name))
            clock.advance(60)

        refs = store.list_profiles()
        assert [ref.name for ref in refs] == ["p1", "p2", "p3"]
        assert [ref.storage_key for ref in refs] == [
            "2025-06-15-12-00-00.json",
            "2025-06-15-12-01-00.json",
            "2025-06-15-12-02-00.json",
        ]

    def test_skips_corrupt_file(self, store, clock):
        store.save(make_profile(name="good"))
        (store.directory / "2025-06-15-11-00-00.json").write_text("{not json")
        (store.directory / "2025-06-15-11-30-00.json").write_text(
            json.dumps({"name": "missing schedules"})
        )

        refs = store.list_profiles()
        assert [ref.name for ref in refs] == ["good"]

    def test_ignores_other_files(self, store):
        store.save(make_profile(name="good"))
        (store.directory / "notes.txt").write_text("hello")
        (store.directory / ".2025-06-15-13-00-00.json.tmp").write_text("{}")
        (store.directory / "subdir.json").mkdir()

        assert [ref.name for ref in store.list_profiles()] == ["good"]

    def test_recomputed_on_every_call(self, store):
        store.save(make_profile(name="p1"))
        assert len(store.list_profiles()) == 1
        (store.directory / "2025-06-15-12-00-00.json").unlink()
        assert store.list_profiles() == []


class TestSave:
    def test_round_trip(self, store):
        profile = make_profile()
        ref = store.save(profile)
        assert ref == ProfileReference(
            name="Weekday", storage_key="2025-06-15-12-00-00.json"
        )
        assert store.load(ref) == profile

    def test_writes_json_file(self, store):
        ref = store.save(make_profile())
        data = json.loads((store.directory / ref.storage_key).read_text())
        assert data["name"] == "Weekday"
        assert "basalRateSchedule" in data

    def test_no_temporary_files_left(self, store):
        store.save(make_profile())
        assert [p.name for p in store.directory.iterdir()] == ["2025-06-15-12-00-00.json"]

    def test_replace_by_name(self, store, clock):
        store.save(make_profile(name="Weekday"))
        clock.advance(60)
        store.save(make_profile(name="Other"))
        clock.advance(60)
        newer = make_profile(
            name="Weekday",
            basal_rate_schedule=BasalRateSchedule.from_pairs([(0, 0.2)]),
        )
        ref = store.save(newer)

        refs = store.list_profiles()
        assert [r.name for r in refs] == ["Other", "Weekday"]
        assert [r for r in refs if r.name == "Weekday"] == [ref]
        assert store.load(ref) == newer

    def test_replace_within_same_second(self, store):
        store.save(make_profile(name="Weekday"))
        newer = make_profile(
            name="Weekday",
            basal_rate_schedule=BasalRateSchedule.from_pairs([(0, 0.2)]),
        )
        ref = store.save(newer)

        refs = store.list_profiles()
        assert refs == [ref]
        assert store.load(ref) == newer

    def test_same_second_different_name_gets_next_key(self, store):
        first = store.save(make_profile(name="first"))
        second = store.save(make_profile(name="second"))

        assert first.storage_key == "2025-06-15-12-00-00.json"
        assert second.storage_key == "2025-06-15-12-00-01.json"
        assert [r.name for r in store.list_profiles()] == ["first", "second"]

    def test_save_and_list_matches_fresh_listing(self, store, clock):
        store.save(make_profile(name="Weekday"))
        clock.advance(60)
        store.save(make_profile(name="Weekend"))
        clock.advance(60)

        refs = store.save_and_list(make_profile(name="Weekday"))

        assert refs == store.list_profiles()
        assert [r.name for r in refs] == ["Weekend", "Weekday"]
        assert refs[-1].storage_key == "2025-06-15-12-02-00.json"

    def test_find_and_exists(self, store):
        ref = store.save(make_profile(name="Weekday"))
        assert store.find("Weekday") == ref
        assert store.exists("Weekday") is True
        assert store.find("Weekend") is None
        assert store.exists("Weekend") is False


class TestLoad:
    def test_missing_record(self, store):
        store.ensure_storage_ready()
        ref = ProfileReference(name="gone", storage_key="2025-01-01-00-00-00.json")
        with pytest.raises(ProfileNotFoundError):
            store.load(ref)

    def test_corrupt_record(self, store):
        store.ensure_storage_ready()
        (store.directory / "2025-01-01-00-00-00.json").write_text("[1, 2")
        ref = ProfileReference(name="bad", storage_key="2025-01-01-00-00-00.json")
        with pytest.raises(CorruptProfileError):
            store.load(ref)

    def test_invalid_schedule_is_corrupt(self, store):
        profile = json.loads(make_profile().to_json())
        profile["basalRateSchedule"]["items"][0]["startTime"] = 600
        store.ensure_storage_ready()
        (store.directory / "2025-01-01-00-00-00.json").write_text(json.dumps(profile))
        ref = ProfileReference(name="Weekday", storage_key="2025-01-01-00-00-00.json")
        with pytest.raises(CorruptProfileError):
            store.load(ref)

    @pytest.mark.parametrize(
        "storage_key", ["../escape.json", "sub/2025.json", ".hidden.json", "profile.txt"]
    )
    def test_keys_outside_directory_not_found(self, store, storage_key):
        store.ensure_storage_ready()
        ref = ProfileReference(name="x", storage_key=storage_key)
        with pytest.raises(ProfileNotFoundError):
            store.load(ref)


class TestDelete:
    def test_removes_exactly_one(self, store, clock):
        keep = store.save(make_profile(name="keep"))
        clock.advance(60)
        remove = store.save(make_profile(name="remove"))

        store.delete(remove)

        assert store.list_profiles() == [keep]
        with pytest.raises(ProfileNotFoundError):
            store.load(remove)

    def test_stale_reference(self, store):
        ref = store.save(make_profile())
        store.delete(ref)
        with pytest.raises(ProfileNotFoundError):
            store.delete(ref)


class TestFromSettings:
    def test_uses_configured_directory(self, tmp_path, monkeypatch):
        from therapy_profiles.config import settings

        monkeypatch.setattr(settings, "profiles_directory", tmp_path / "profiles")
        store = ProfileStore.from_settings()
        assert store.directory == tmp_path / "profiles"
