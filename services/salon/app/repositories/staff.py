from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from app.core import storage_keys
from app.core.scope import TenantScope
from app.models.common import Lifecycle, utcnow
from app.models.salon import StaffMember
from app.repositories.base import LifecycleRepository
from shared.cache import STAFF_CACHE_PREFIX, CollectionCache, get_cache_ttl
from shared.kvstore import KeyValueStore
from shared.messaging import ChangeBus, Unsubscribe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaffEvent:
    kind: str  # updated | created | deleted | activated | deactivated | refreshed
    staff_id: Optional[str] = None


def staff_cache_key(scope: TenantScope) -> str:
    return STAFF_CACHE_PREFIX + scope.scoped_key(storage_keys.STAFF)


def install_cache_invalidation(bus: ChangeBus[StaffEvent], cache: CollectionCache, key: str) -> Unsubscribe:
    def _invalidate(event: StaffEvent) -> None:
        cache.invalidate(key)
        logger.debug("Staff cache '%s' invalidated (%s)", key, event.kind)

    return bus.subscribe(_invalidate)


class StaffRepository(LifecycleRepository[StaffMember]):
    """Staff roster with a short-lived read cache.

    Every mutation is published on :attr:`changes`; the subscriber installed
    with :func:`install_cache_invalidation` drops the cached roster before
    ``save`` returns, so readers never see a roster older than their own
    writes.
    """

    model = StaffMember
    label = "Staff member"
    storage_key = storage_keys.STAFF
    update_log_key = storage_keys.STAFF_UPDATES

    def __init__(
        self,
        store: KeyValueStore,
        scope: TenantScope,
        *,
        cache: Optional[CollectionCache] = None,
        changes: Optional[ChangeBus[StaffEvent]] = None,
        clock: Callable = utcnow,
    ) -> None:
        super().__init__(store, scope, clock=clock)
        self._cache_key = staff_cache_key(scope)
        if cache is None or changes is None:
            # standalone repository: private cache wired to a private bus
            cache = cache if cache is not None else CollectionCache(ttl=get_cache_ttl("staff"))
            changes = changes if changes is not None else ChangeBus("staff")
            install_cache_invalidation(changes, cache, self._cache_key)
        self._cache = cache
        self.changes: ChangeBus[StaffEvent] = changes

    def validate(self, entity: StaffMember) -> Optional[str]:
        if not entity.name.strip():
            return "Staff name is required"
        if len(entity.name) > 100:
            return "Staff name must be at most 100 characters"
        if not 0 <= entity.rating <= 5:
            return "Rating must be between 0 and 5"
        return None

    def get_all(self, force_refresh: bool = False) -> List[StaffMember]:
        if not force_refresh:
            cached = self._cache.get(self._cache_key)
            if cached is not None:
                return list(cached)
        staff = super().get_all()
        self._cache.set(self._cache_key, tuple(staff))
        return staff

    def get_active(self, force_refresh: bool = False) -> List[StaffMember]:
        return [s for s in self.get_all(force_refresh) if s.lifecycle is Lifecycle.ACTIVE]

    def get_for_categories(self, categories: Iterable[str], force_refresh: bool = False) -> List[StaffMember]:
        """Active staff sharing at least one specialty with ``categories``."""
        wanted = set(categories)
        return [s for s in self.get_active(force_refresh) if wanted.intersection(s.specialties)]

    def get_by_specialty(self, specialty: str, force_refresh: bool = False) -> List[StaffMember]:
        return [s for s in self.get_active(force_refresh) if specialty in s.specialties]

    def is_available_on_day(self, staff_id: str, weekday: str, force_refresh: bool = False) -> bool:
        staff = next((s for s in self.get_all(force_refresh) if s.id == staff_id), None)
        if staff is None:
            return False
        day = staff.schedule.get(weekday.lower())
        return bool(day and day.available)

    def refresh(self) -> List[StaffMember]:
        self.changes.publish(StaffEvent("refreshed"))
        return self.get_all(force_refresh=True)

    def _after_save(self, entity: StaffMember, previous: Optional[StaffMember]) -> None:
        self.changes.publish(StaffEvent(self._event_kind(entity, previous), entity.id))

    @staticmethod
    def _event_kind(entity: StaffMember, previous: Optional[StaffMember]) -> str:
        if previous is None:
            return "created"
        if entity.lifecycle is previous.lifecycle:
            return "updated"
        if entity.lifecycle is Lifecycle.DELETED:
            return "deleted"
        return "activated" if entity.lifecycle is Lifecycle.ACTIVE else "deactivated"
