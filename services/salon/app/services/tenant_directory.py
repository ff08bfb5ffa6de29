"""Directory of tenants and tenant owners.

Tenants, owners and the active-tenant pointer live under global keys; every
other record is namespaced by the tenant scope handed out by
:meth:`TenantDirectory.scope_for`.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.core import storage_keys
from app.core.scope import TenantScope, tenant_key_prefix
from app.core.security import get_password_hash, verify_password
from app.models.common import new_id, utcnow
from app.models.rewards import RewardSettings
from app.models.tenant import Tenant, TenantOwner
from app.repositories.base import STORAGE_FAILURE_MESSAGE, ScopedStorage, describe_validation_error
from app.repositories.catalog import ServiceRepository
from app.repositories.credentials import CredentialRepository, validate_password
from app.repositories.rewards import RewardStore
from app.repositories.settings import EMAIL_PATTERN, SalonSettingsRepository
from app.services.business_types import get_business_type
from app.services.remote_sync import RemoteSyncClient
from shared.kvstore import KeyValueStore, StorageError
from shared.results import CONFLICT, NOT_FOUND, STORAGE, OperationResult

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 50
RESERVED_SLUGS = frozenset(
    {"register", "health", "ready", "docs", "redoc", "openapi.json", "login", "admin", "api"}
)

_EMPTY_COLLECTIONS = (storage_keys.CLIENTS, storage_keys.APPOINTMENTS, storage_keys.STAFF)


@dataclass(frozen=True)
class OwnerCredentials:
    first_name: str
    last_name: str
    email: str
    password: str


def generate_slug(name: str) -> str:
    """URL slug for a business name: lower-case, no accents, dash separated."""
    decomposed = unicodedata.normalize("NFD", name.lower())
    without_accents = "".join(char for char in decomposed if not unicodedata.combining(char))
    slug = re.sub(r"[^a-z0-9\s-]", "", without_accents)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def check_slug_format(slug: str) -> Optional[str]:
    if not SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH:
        return f"Slug must be between {SLUG_MIN_LENGTH} and {SLUG_MAX_LENGTH} characters"
    if slug in RESERVED_SLUGS:
        return f"'{slug}' is a reserved name"
    if not SLUG_PATTERN.match(slug):
        return "Slug may only contain lower-case letters, numbers and single dashes"
    return None


class TenantDirectory:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        remote_sync: Optional[RemoteSyncClient] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._store = store
        self._storage = ScopedStorage(store, TenantScope.legacy())
        self._remote_sync = remote_sync
        self._clock = clock

    # scopes

    def scope_for(self, tenant: Optional[Tenant]) -> TenantScope:
        return TenantScope.for_tenant(tenant)

    def active_scope(self) -> TenantScope:
        return self.scope_for(self.get_active_tenant())

    # tenants

    def _load_tenants(self) -> List[Tenant]:
        tenants = []
        for row in self._storage.read_list(storage_keys.TENANTS):
            try:
                tenants.append(Tenant.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping invalid tenant record: %s", exc)
        return tenants

    def _persist_tenants(self, tenants: List[Tenant]) -> None:
        self._storage.write_json(storage_keys.TENANTS, [tenant.to_storage() for tenant in tenants])

    def get_tenants(self, include_inactive: bool = False) -> List[Tenant]:
        try:
            tenants = self._load_tenants()
        except StorageError:
            logger.exception("Failed to read tenants")
            return []
        return tenants if include_inactive else [t for t in tenants if t.is_active]

    def get_tenant_by_id(self, tenant_id: str) -> Optional[Tenant]:
        return next((t for t in self.get_tenants(include_inactive=True) if t.id == tenant_id), None)

    def get_tenant_by_slug(self, slug: str) -> Optional[Tenant]:
        """Active tenant with exactly this slug (case-sensitive)."""
        return next((t for t in self.get_tenants() if t.slug == slug), None)

    def resolve_tenant_from_path(self, path: str) -> Optional[Tenant]:
        segments = [segment for segment in path.split("/") if segment]
        if not segments or segments[0] in RESERVED_SLUGS:
            return None
        return self.get_tenant_by_slug(segments[0])

    def is_slug_available(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        return not any(t.slug == slug and t.id != exclude_id for t in self.get_tenants())

    def suggest_slug(self, name: str) -> str:
        base = generate_slug(name) or "negocio"
        candidate, counter = base, 2
        while not self.is_slug_available(candidate) or check_slug_format(candidate):
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate

    def _validate_slug(self, slug: str, exclude_id: Optional[str] = None) -> Optional[OperationResult]:
        error = check_slug_format(slug)
        if error:
            return OperationResult.fail(error)
        if not self.is_slug_available(slug, exclude_id):
            return OperationResult.fail(f"The address '{slug}' is already in use by another business", CONFLICT)
        return None

    def save_tenant(self, tenant: Tenant) -> Tenant:
        """Upsert ``tenant``, refreshing ``updatedAt``.

        Raises:
            StorageError: the directory could not be written
        """
        tenants = self._load_tenants()
        tenant = tenant.model_copy(update={"updated_at": self._clock()})
        index = next((i for i, t in enumerate(tenants) if t.id == tenant.id), None)
        if index is None:
            tenants.append(tenant)
        else:
            tenants[index] = tenant
        self._persist_tenants(tenants)
        return tenant

    def create_tenant(
        self,
        data: Dict[str, Any],
        owner_id: str,
        owner_credentials: Optional[OwnerCredentials] = None,
    ) -> OperationResult:
        slug = (data.get("slug") or "").strip()
        rejected = self._validate_slug(slug)
        if rejected is not None:
            return rejected

        now = self._clock()
        payload = {k: v for k, v in data.items() if k not in ("id", "createdAt", "created_at", "updatedAt", "updated_at")}
        payload.update(id=new_id(), slug=slug, owner_id=owner_id, created_at=now, updated_at=now)
        try:
            tenant = Tenant.model_validate(payload)
        except ValidationError as exc:
            return OperationResult.fail(describe_validation_error(exc))
        if not tenant.name.strip():
            return OperationResult.fail("Business name is required")

        try:
            tenant = self.save_tenant(tenant)
            self._initialize_tenant_data(tenant)
            owner = self.get_owner_by_id(owner_id)
            if owner is not None and tenant.id not in owner.tenants:
                owner = owner.model_copy(update={"tenants": [*owner.tenants, tenant.id]})
                self.save_owner(owner)
            if owner_credentials is not None:
                credentials = CredentialRepository(self._store, self.scope_for(tenant), clock=self._clock)
                provisioned = credentials.provision_owner(
                    owner_credentials.email,
                    get_password_hash(owner_credentials.password),
                )
                if not provisioned.success:
                    logger.warning("Owner login for tenant %s not created: %s", tenant.id, provisioned.error)
        except StorageError:
            logger.exception("Failed to create tenant '%s'", slug)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)

        logger.info("Tenant %s created with slug '%s'", tenant.id, tenant.slug)
        if self._remote_sync is not None:
            self._remote_sync.sync_tenants([tenant], [owner] if owner else [])
        return OperationResult.ok("Business created", data=tenant)

    def _initialize_tenant_data(self, tenant: Tenant) -> None:
        scope = self.scope_for(tenant)
        storage = ScopedStorage(self._store, scope)
        config = get_business_type(tenant.business_type)
        services = ServiceRepository(self._store, scope, clock=self._clock)
        if config is not None and not services.get_all():
            for default in config.default_services:
                result = services.create(
                    {**default.model_dump(), "description": f"Servicio de {default.name.lower()}"},
                    "system",
                )
                if not result.success:
                    raise StorageError(result.error or "could not seed services")
        for base_key in _EMPTY_COLLECTIONS:
            if storage.read_text(base_key) is None:
                storage.write_json(base_key, [])
        SalonSettingsRepository(self._store, scope, tenant=tenant, clock=self._clock).initialize()
        rewards = RewardStore(self._store, scope)
        if storage.read_text(storage_keys.REWARD_SETTINGS) is None:
            rewards.save_settings(RewardSettings(updated_at=self._clock()))

    def update_tenant(self, tenant_id: str, changes: Dict[str, Any]) -> OperationResult:
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None:
            return OperationResult.fail("Business not found", NOT_FOUND)
        protected = {"id", "ownerId", "owner_id", "createdAt", "created_at"}
        payload = {**tenant.to_storage(), **{k: v for k, v in changes.items() if k not in protected}}
        try:
            updated = Tenant.model_validate(payload)
        except ValidationError as exc:
            return OperationResult.fail(describe_validation_error(exc))
        if updated.slug != tenant.slug:
            rejected = self._validate_slug(updated.slug, exclude_id=tenant.id)
            if rejected is not None:
                return rejected
        try:
            updated = self.save_tenant(updated)
        except StorageError:
            logger.exception("Failed to update tenant '%s'", tenant_id)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)
        if self._remote_sync is not None:
            self._remote_sync.update_tenant(updated)
        return OperationResult.ok("Business updated", data=updated)

    def delete_tenant(self, tenant_id: str) -> bool:
        """Deactivate the tenant and purge every key of its namespace."""
        try:
            tenant = self.get_tenant_by_id(tenant_id)
            if tenant is None:
                return False
            self.save_tenant(tenant.model_copy(update={"is_active": False}))
            prefix = tenant_key_prefix(tenant_id)
            purged = self._store.keys(prefix)
            for key in purged:
                self._store.remove(key)
            if self._storage.read_text(storage_keys.CURRENT_TENANT) == tenant_id:
                self._store.remove(storage_keys.CURRENT_TENANT)
        except StorageError:
            logger.exception("Failed to delete tenant '%s'", tenant_id)
            return False
        logger.info("Tenant %s deleted, %d keys purged", tenant_id, len(purged))
        if self._remote_sync is not None:
            self._remote_sync.delete_tenant(tenant_id)
        return True

    # active tenant pointer

    def get_active_tenant(self) -> Optional[Tenant]:
        try:
            tenant_id = self._storage.read_text(storage_keys.CURRENT_TENANT)
        except StorageError:
            logger.exception("Failed to read the active tenant")
            return None
        if not tenant_id:
            return None
        tenant = self.get_tenant_by_id(tenant_id)
        return tenant if tenant is not None and tenant.is_active else None

    def set_active_tenant(self, tenant: Optional[Tenant]) -> None:
        """Persist (or clear) the active-tenant pointer.

        Raises:
            StorageError: the pointer could not be written
        """
        if tenant is None:
            self._store.remove(storage_keys.CURRENT_TENANT)
        else:
            self._storage.write_text(storage_keys.CURRENT_TENANT, tenant.id)

    # owners

    def _load_owners(self) -> List[TenantOwner]:
        return [TenantOwner.model_validate(row) for row in self._storage.read_list(storage_keys.TENANT_OWNERS)]

    def get_owners(self) -> List[TenantOwner]:
        try:
            return self._load_owners()
        except StorageError:
            logger.exception("Failed to read tenant owners")
            return []

    def get_owner_by_id(self, owner_id: str) -> Optional[TenantOwner]:
        return next((o for o in self.get_owners() if o.id == owner_id), None)

    def get_owner_by_email(self, email: str) -> Optional[TenantOwner]:
        wanted = email.strip().lower()
        return next((o for o in self.get_owners() if o.email.lower() == wanted), None)

    def save_owner(self, owner: TenantOwner) -> TenantOwner:
        """Upsert ``owner``.

        Raises:
            StorageError: the directory could not be written
        """
        owners = self._load_owners()
        index = next((i for i, o in enumerate(owners) if o.id == owner.id), None)
        if index is None:
            owners.append(owner)
        else:
            owners[index] = owner
        self._storage.write_json(storage_keys.TENANT_OWNERS, [o.to_storage() for o in owners])
        return owner

    def register_owner(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str = "",
    ) -> OperationResult:
        email = email.strip()
        if not EMAIL_PATTERN.match(email):
            return OperationResult.fail("Email format is not valid")
        if not first_name.strip() or not last_name.strip():
            return OperationResult.fail("First and last name are required")
        errors = validate_password(password)
        if errors:
            return OperationResult.fail("; ".join(errors))
        if self.get_owner_by_email(email) is not None:
            return OperationResult.fail("An account with this email already exists", CONFLICT)

        owner = TenantOwner(
            id=new_id(),
            email=email,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            phone=phone,
            password_hash=get_password_hash(password),
            created_at=self._clock(),
        )
        try:
            self.save_owner(owner)
        except StorageError:
            logger.exception("Failed to register owner '%s'", email)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)
        return OperationResult.ok("Account created", data=owner)

    def authenticate_owner(self, email: str, password: str) -> Optional[TenantOwner]:
        owner = self.get_owner_by_email(email)
        if owner is None:
            return None
        try:
            valid = verify_password(password, owner.password_hash)
        except ValueError:
            logger.warning("Unrecognized password hash for owner %s", owner.id)
            valid = False
        if not valid:
            return None
        owner = owner.model_copy(update={"last_login": self._clock()})
        try:
            self.save_owner(owner)
        except StorageError:
            logger.exception("Failed to record login of owner %s", owner.id)
        return owner

    # migration

    def migrate_legacy_data(self, tenant_id: str) -> int:
        """Copy un-scoped ``beauty-salon-*`` keys into the tenant namespace.

        Legacy keys are kept and existing tenant keys are never overwritten.
        Returns the number of keys copied.
        """
        scope = TenantScope(tenant_id)
        copied = 0
        try:
            for key in self._store.keys(storage_keys.LEGACY_PREFIX):
                target = scope.scoped_key(key)
                if self._store.get(target) is not None:
                    continue
                value = self._store.get(key)
                if value is None:
                    continue
                self._store.set(target, value)
                copied += 1
        except StorageError:
            logger.exception("Legacy migration into tenant '%s' failed after %d keys", tenant_id, copied)
        logger.info("Migrated %d legacy keys into tenant %s", copied, tenant_id)
        return copied
