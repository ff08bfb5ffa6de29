"""Tests for salon settings, colour themes and cross-process storage sync."""

import json

import pytest

from app.core import storage_keys
from app.repositories.settings import SalonSettingsRepository
from app.repositories.themes import DEFAULT_THEME_ID, ThemeRepository, validate_palette
from app.services.storage_sync import StorageSync
from shared.kvstore import StorageEvent


@pytest.fixture
def settings(store, scope, clock):
    return SalonSettingsRepository(store, scope, clock=clock)


@pytest.fixture
def themes(store, scope, clock):
    return ThemeRepository(store, scope, clock=clock)


class TestSalonSettings:
    def test_defaults_follow_the_tenant(self, store, tenant):
        from app.core.scope import TenantScope

        repo = SalonSettingsRepository(store, TenantScope("fresh"), tenant=tenant)

        assert repo.get().salon_name == "Bella Vita Spa"

    def test_save_sanitizes_and_publishes(self, settings, clock):
        published = []
        settings.changes.subscribe(published.append)

        result = settings.save({"salon_name": "  <b>Bella</b> Vita ", "phone": "664 123 4567"}, "admin-1")

        assert result.success
        assert result.data.salon_name == "bBella/b Vita"
        assert result.data.updated_by == "admin-1"
        assert result.data.updated_at == clock.now
        assert published == [result.data]
        assert settings.get() == result.data

    def test_camel_case_keys_are_accepted(self, settings):
        assert settings.save({"salonMotto": "Belleza natural"}).data.salon_motto == "Belleza natural"

    def test_read_only_and_unknown_fields_are_ignored(self, settings):
        result = settings.save({"id": "99", "updatedBy": "intruder", "favouriteColour": "red"})

        assert result.success
        assert result.data.id == "1"
        assert result.data.updated_by == "system"

    @pytest.mark.parametrize(
        "changes",
        [
            {"salonName": ""},
            {"salonName": "x" * 51},
            {"salonMotto": ""},
            {"email": "not-an-email"},
            {"phone": "12345"},
        ],
    )
    def test_invalid_changes_are_rejected(self, settings, changes):
        published = []
        settings.changes.subscribe(published.append)

        result = settings.save(changes)

        assert not result.success
        assert published == []

    def test_history_records_the_diff(self, settings):
        settings.save({"salonName": "Bella Vita"}, "admin-1")
        settings.save({"address": "Av. Revolución 123"}, "admin-2")

        history = settings.get_history()

        assert [entry.updated_by for entry in history] == ["admin-2", "admin-1"]
        assert history[1].changes["salonName"]["to"] == "Bella Vita"
        assert set(history[0].changes) == {"address"}


class TestThemes:
    def test_default_theme_always_exists(self, themes):
        [default] = themes.get_themes()

        assert default.id == DEFAULT_THEME_ID
        assert default.is_default
        assert themes.get_active().id == DEFAULT_THEME_ID

    def test_default_theme_cannot_be_deleted(self, themes):
        assert themes.delete(DEFAULT_THEME_ID) is False

    def test_activate_preset_publishes(self, themes):
        published = []
        themes.changes.subscribe(published.append)
        theme = themes.create_from_preset("neutral-professional")

        assert themes.set_active(theme.id) is True

        assert themes.get_active().id == theme.id
        assert published[-1].id == theme.id
        assert [t.id for t in themes.get_themes() if t.is_active] == [theme.id]

    def test_deleting_the_active_theme_falls_back_to_default(self, themes):
        theme = themes.create_from_preset("neutral-professional")
        themes.set_active(theme.id)

        assert themes.delete(theme.id) is True

        assert themes.get_active().id == DEFAULT_THEME_ID

    def test_unknown_preset_or_theme(self, themes):
        assert themes.create_from_preset("missing") is None
        assert themes.set_active("missing") is False
        assert themes.export_theme("missing") is None

    def test_export_then_import_creates_a_copy(self, themes):
        theme = themes.create_from_preset("neutral-professional", name="Mi tema")

        exported = themes.export_theme(theme.id)
        imported = themes.import_theme(exported)

        assert json.loads(exported)["version"] == "1.0"
        assert imported.success
        assert imported.data.id != theme.id
        assert imported.data.name == "Mi tema"
        assert imported.data.colors == theme.colors

    def test_import_rejects_bad_data(self, themes):
        assert not themes.import_theme("not json").success
        assert not themes.import_theme(json.dumps({"name": "x"})).success
        bad_colors = {"name": "x", "colors": {"primary": "red"}}
        result = themes.import_theme(json.dumps(bad_colors))
        assert not result.success
        assert "primary" in result.error

    def test_validate_palette(self):
        check = validate_palette({"primary": "#ABCDEF", "secondary": "#12345"})

        assert not check.is_valid
        assert "Color secondary must be a valid hex code" in check.errors
        assert "Color accent is required" in check.errors


class TestStorageSync:
    def test_remote_settings_write_is_republished(self, store, scope, settings, themes):
        sync = StorageSync(store, settings, themes)
        sync.start()
        received = []
        settings.changes.subscribe(received.append)
        key = scope.scoped_key(storage_keys.SETTINGS)
        remote = {**settings.get().to_storage(), "salonName": "Desde otra pestaña"}
        store.set(key, json.dumps(remote))

        store.changes.publish(StorageEvent(key=key, new_value=json.dumps(remote)))

        assert [s.salon_name for s in received] == ["Desde otra pestaña"]

    def test_remote_theme_write_is_republished(self, store, scope, settings, themes):
        theme = themes.create_from_preset("neutral-professional")
        sync = StorageSync(store, settings, themes)
        sync.start()
        received = []
        themes.changes.subscribe(received.append)
        store.set(scope.scoped_key(storage_keys.ACTIVE_THEME), theme.id)

        store.changes.publish(StorageEvent(key=scope.scoped_key(storage_keys.ACTIVE_THEME), new_value=theme.id))

        assert [t.id for t in received] == [theme.id]

    def test_other_keys_and_tenants_are_ignored(self, store, scope, settings, themes):
        sync = StorageSync(store, settings, themes)
        sync.start()
        received = []
        settings.changes.subscribe(received.append)

        store.changes.publish(StorageEvent(key="tenant-other-" + storage_keys.SETTINGS, new_value="{}"))
        store.changes.publish(StorageEvent(key=scope.scoped_key(storage_keys.CLIENTS), new_value="[]"))

        assert received == []

    def test_stop_detaches(self, store, scope, settings, themes):
        sync = StorageSync(store, settings, themes)
        sync.start()
        sync.start()
        sync.stop()
        received = []
        settings.changes.subscribe(received.append)

        store.changes.publish(StorageEvent(key=scope.scoped_key(storage_keys.SETTINGS), new_value="{}"))

        assert received == []
        assert sync.running is False
        assert len(store.changes) == 0
