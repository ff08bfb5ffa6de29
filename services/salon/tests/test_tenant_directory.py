"""Tests for the tenant directory."""

import json

from app.core import storage_keys
from app.core.scope import TenantScope
from app.repositories.catalog import ServiceRepository
from app.repositories.clients import ClientRepository
from app.repositories.credentials import CredentialRepository
from app.repositories.rewards import RewardStore
from app.repositories.settings import SalonSettingsRepository
from app.services.tenant_directory import (
    OwnerCredentials,
    check_slug_format,
    generate_slug,
)
from shared.results import CONFLICT, NOT_FOUND

OWNER_PASSWORD = "Secreta123!"


class TestSlugs:
    def test_generate_slug_strips_accents_and_symbols(self):
        assert generate_slug("Salón  Bella Vista!") == "salon-bella-vista"
        assert generate_slug("--Uñas & Más--") == "unas-mas"

    def test_check_slug_format(self):
        assert check_slug_format("bella-vita") is None
        assert check_slug_format("ab") is not None
        assert check_slug_format("register") is not None
        assert check_slug_format("Bella_Vita") is not None
        assert check_slug_format("bella--vita") is not None

    def test_suggest_slug_skips_taken_ones(self, directory, tenant):
        assert directory.suggest_slug("Bella Vita") == "bella-vita-2"
        assert directory.suggest_slug("Otro Lugar") == "otro-lugar"


class TestCreateTenant:
    def test_creates_and_seeds_business_type_defaults(self, directory, store, tenant):
        scope = TenantScope(tenant.id)
        services = ServiceRepository(store, scope).get_all()

        assert [s.name for s in services] == [
            "Masaje Relajante",
            "Facial Anti-edad",
            "Exfoliación Corporal",
            "Tratamiento Reafirmante",
        ]
        assert all(s.is_active for s in services)
        for base_key in (storage_keys.CLIENTS, storage_keys.APPOINTMENTS, storage_keys.STAFF):
            assert json.loads(store.get(scope.scoped_key(base_key))) == []
        assert SalonSettingsRepository(store, scope).get().salon_name == "Bella Vita Spa"
        assert RewardStore(store, scope).get_settings().spending_threshold > 0

    def test_links_owner_and_provisions_owner_login(self, directory, store, owner, tenant):
        assert directory.get_owner_by_id(owner.id).tenants == [tenant.id]

        credentials = CredentialRepository(store, TenantScope(tenant.id))
        user = credentials.authenticate(owner.email, OWNER_PASSWORD)
        assert user is not None
        assert user.role == "owner"

    def test_taken_slug_is_a_conflict(self, directory, owner, tenant):
        result = directory.create_tenant({"name": "Copia", "slug": "bella-vita"}, owner.id)

        assert not result.success
        assert result.code == CONFLICT
        assert len(directory.get_tenants()) == 1

    def test_invalid_slug_is_rejected(self, directory, owner):
        result = directory.create_tenant({"name": "Admin", "slug": "admin"}, owner.id)

        assert not result.success
        assert result.code != CONFLICT

    def test_name_is_required(self, directory, owner):
        result = directory.create_tenant({"name": "  ", "slug": "sin-nombre"}, owner.id)

        assert not result.success
        assert directory.get_tenants() == []

    def test_lookup_by_slug_and_path(self, directory, tenant):
        assert directory.get_tenant_by_slug("bella-vita").id == tenant.id
        assert directory.get_tenant_by_slug("Bella-Vita") is None
        assert directory.resolve_tenant_from_path("/bella-vita/services").id == tenant.id
        assert directory.resolve_tenant_from_path("/register") is None
        assert directory.resolve_tenant_from_path("/") is None


class TestUpdateAndDelete:
    def test_update_tenant(self, directory, tenant):
        result = directory.update_tenant(tenant.id, {"name": "Bella Vita Day Spa", "ownerId": "intruder"})

        assert result.success
        assert result.data.name == "Bella Vita Day Spa"
        assert result.data.owner_id == tenant.owner_id

    def test_update_unknown_tenant(self, directory):
        assert directory.update_tenant("missing", {"name": "x"}).code == NOT_FOUND

    def test_update_to_taken_slug(self, directory, owner, tenant):
        other = directory.create_tenant({"name": "Otro", "slug": "otro-lugar"}, owner.id).data

        result = directory.update_tenant(other.id, {"slug": "bella-vita"})

        assert result.code == CONFLICT

    def test_delete_purges_only_that_tenant(self, directory, store, owner, tenant):
        other = directory.create_tenant({"name": "Otro", "slug": "otro-lugar"}, owner.id).data
        directory.set_active_tenant(tenant)

        assert directory.delete_tenant(tenant.id) is True

        assert store.keys(f"tenant-{tenant.id}-") == []
        assert store.keys(f"tenant-{other.id}-") != []
        assert directory.get_tenant_by_slug("bella-vita") is None
        assert directory.get_tenant_by_id(tenant.id).is_active is False
        assert directory.get_active_tenant() is None
        assert directory.is_slug_available("bella-vita")

    def test_delete_unknown_tenant(self, directory):
        assert directory.delete_tenant("missing") is False


class TestActiveTenant:
    def test_pointer_round_trip(self, directory, tenant):
        assert directory.get_active_tenant() is None
        assert directory.active_scope().is_legacy

        directory.set_active_tenant(tenant)

        assert directory.get_active_tenant().id == tenant.id
        assert directory.active_scope() == TenantScope(tenant.id)

        directory.set_active_tenant(None)
        assert directory.get_active_tenant() is None


class TestOwners:
    def test_duplicate_email_is_a_conflict(self, directory, owner):
        result = directory.register_owner("ANA@bellavita.mx", OWNER_PASSWORD, "Ana", "López")

        assert result.code == CONFLICT

    def test_weak_password_is_rejected(self, directory):
        result = directory.register_owner("luis@correo.mx", "corta", "Luis", "Pérez")

        assert not result.success
        assert "8 characters" in result.error

    def test_authenticate_owner(self, directory, owner, clock):
        assert directory.authenticate_owner("ana@bellavita.mx", "wrong") is None

        logged_in = directory.authenticate_owner("ana@bellavita.mx", OWNER_PASSWORD)

        assert logged_in.id == owner.id
        assert directory.get_owner_by_id(owner.id).last_login == clock.now


class TestLegacyMigration:
    def test_copies_legacy_keys_without_overwriting(self, directory, store, owner):
        store.set(storage_keys.CLIENTS, '[{"id": "c1", "fullName": "Ana", "phone": "6641234567"}]')
        store.set(storage_keys.SERVICES, '["legacy"]')
        tenant = directory.create_tenant(
            {"name": "Migrado", "slug": "migrado", "business_type": "salon"},
            owner.id,
            OwnerCredentials("Ana", "López", owner.email, OWNER_PASSWORD),
        ).data
        scope = TenantScope(tenant.id)
        seeded_services = store.get(scope.scoped_key(storage_keys.SERVICES))
        store.remove(scope.scoped_key(storage_keys.CLIENTS))

        copied = directory.migrate_legacy_data(tenant.id)

        assert copied >= 1
        assert store.get(scope.scoped_key(storage_keys.CLIENTS)) == store.get(storage_keys.CLIENTS)
        assert store.get(scope.scoped_key(storage_keys.SERVICES)) == seeded_services
        assert store.get(storage_keys.CLIENTS) is not None


class TestNamespaceIsolation:
    def test_data_written_under_one_tenant_is_invisible_to_another(self, directory, store, owner, tenant):
        other = directory.create_tenant({"name": "Otro", "slug": "otro-lugar"}, owner.id).data
        directory.set_active_tenant(tenant)
        ClientRepository(store, directory.active_scope()).create({"full_name": "Ana", "phone": "6641234567"})

        directory.set_active_tenant(other)

        assert ClientRepository(store, directory.active_scope()).get_all() == []
        assert len(ClientRepository(store, TenantScope(tenant.id)).get_all()) == 1
