"""Per-tenant wiring of repositories and services.

Repositories are cheap and built per request. Their change buses come from a
shared :class:`ChangeBusRegistry`, so listeners installed once per tenant
(staff cache invalidation, reward accrual on completion, cross-process
storage sync) keep working for every later request.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from app.core.scope import TenantScope
from app.models.common import utcnow
from app.models.tenant import Tenant
from app.repositories.appointments import AppointmentRepository
from app.repositories.catalog import ProductRepository, ServiceRepository
from app.repositories.clients import ClientRepository
from app.repositories.credentials import CredentialRepository
from app.repositories.notifications import NotificationLedger
from app.repositories.rewards import RewardStore
from app.repositories.settings import SalonSettingsRepository
from app.repositories.staff import StaffRepository, install_cache_invalidation, staff_cache_key
from app.repositories.themes import ThemeRepository
from app.services.booking import BookingService
from app.services.notifications import Notifier
from app.services.rewards import RewardEngine
from app.services.staff_integrity import StaffIntegrityGuard
from app.services.storage_sync import StorageSync
from shared.cache import CollectionCache, get_cache_ttl
from shared.kvstore import KeyValueStore
from shared.messaging import ChangeBusRegistry, Unsubscribe

logger = logging.getLogger(__name__)

STAFF_TOPIC = "staff"
COMPLETIONS_TOPIC = "appointment-completions"
SETTINGS_TOPIC = "salon-settings"
THEMES_TOPIC = "themes"


@dataclass
class SalonContext:
    tenant: Optional[Tenant]
    scope: TenantScope
    clients: ClientRepository
    appointments: AppointmentRepository
    services: ServiceRepository
    products: ProductRepository
    staff: StaffRepository
    settings: SalonSettingsRepository
    themes: ThemeRepository
    credentials: CredentialRepository
    rewards: RewardEngine
    guard: StaffIntegrityGuard
    booking: BookingService
    ledger: NotificationLedger


class SalonContextFactory:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        registry: Optional[ChangeBusRegistry] = None,
        staff_cache: Optional[CollectionCache] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._store = store
        self._registry = registry if registry is not None else ChangeBusRegistry()
        self._staff_cache = staff_cache if staff_cache is not None else CollectionCache(ttl=get_cache_ttl("staff"))
        self._notifier = notifier
        self._clock = clock
        self._wired: Dict[Optional[str], List[Unsubscribe]] = {}
        self._lock = threading.Lock()

    @property
    def registry(self) -> ChangeBusRegistry:
        return self._registry

    def build(self, tenant: Optional[Tenant]) -> SalonContext:
        scope = TenantScope.for_tenant(tenant)
        namespace = scope.tenant_id
        clock = self._clock

        staff = StaffRepository(
            self._store,
            scope,
            cache=self._staff_cache,
            changes=self._registry.get(STAFF_TOPIC, namespace),
            clock=clock,
        )
        appointments = AppointmentRepository(
            self._store,
            scope,
            completions=self._registry.get(COMPLETIONS_TOPIC, namespace),
            clock=clock,
        )
        clients = ClientRepository(self._store, scope, clock=clock)
        services = ServiceRepository(self._store, scope, clock=clock)
        settings = SalonSettingsRepository(
            self._store,
            scope,
            tenant=tenant,
            changes=self._registry.get(SETTINGS_TOPIC, namespace),
            clock=clock,
        )
        themes = ThemeRepository(
            self._store,
            scope,
            tenant=tenant,
            changes=self._registry.get(THEMES_TOPIC, namespace),
            clock=clock,
        )
        rewards = RewardEngine(RewardStore(self._store, scope, clock=clock), clients, appointments, clock=clock)
        ledger = NotificationLedger(self._store, scope)

        self._wire(namespace, scope, staff, appointments, rewards, settings, themes)

        time_zone = tenant.settings.time_zone if tenant is not None else None
        return SalonContext(
            tenant=tenant,
            scope=scope,
            clients=clients,
            appointments=appointments,
            services=services,
            products=ProductRepository(self._store, scope, clock=clock),
            staff=staff,
            settings=settings,
            themes=themes,
            credentials=CredentialRepository(self._store, scope, clock=clock),
            rewards=rewards,
            guard=StaffIntegrityGuard(staff, appointments, time_zone=time_zone, clock=clock),
            booking=BookingService(
                tenant,
                clients=clients,
                appointments=appointments,
                services=services,
                staff=staff,
                rewards=rewards,
                ledger=ledger,
                settings=settings,
                notifier=self._notifier,
                clock=clock,
            ),
            ledger=ledger,
        )

    def _wire(self, namespace, scope, staff, appointments, rewards, settings, themes) -> None:
        with self._lock:
            if namespace in self._wired:
                return
            sync = StorageSync(self._store, settings, themes)
            sync.start()
            self._wired[namespace] = [
                install_cache_invalidation(staff.changes, self._staff_cache, staff_cache_key(scope)),
                rewards.attach(appointments),
                sync.stop,
            ]
        logger.info("Wired change listeners for tenant %s", namespace or "<legacy>")

    def release(self, tenant_id: Optional[str]) -> None:
        """Drop the listeners and buses of a tenant (after deletion)."""
        with self._lock:
            unsubscribers = self._wired.pop(tenant_id, [])
        for unsubscribe in unsubscribers:
            unsubscribe()
        if tenant_id is not None:
            self._registry.drop_namespace(tenant_id)
        self._staff_cache.invalidate(staff_cache_key(TenantScope(tenant_id)))
