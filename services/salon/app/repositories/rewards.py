from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from app.core import storage_keys
from app.core.scope import TenantScope
from app.models.common import utcnow
from app.models.rewards import RewardCoupon, RewardHistory, RewardSettings
from app.repositories.base import ScopedStorage
from shared.kvstore import KeyValueStore

logger = logging.getLogger(__name__)


class RewardStore:
    """Raw persistence of reward settings, coupons and history.

    Storage errors propagate; :class:`app.services.rewards.RewardEngine` owns
    the result handling.
    """

    def __init__(self, store: KeyValueStore, scope: TenantScope, *, clock: Callable = utcnow) -> None:
        self._storage = ScopedStorage(store, scope)
        self._clock = clock

    def get_settings(self) -> RewardSettings:
        data = self._storage.read_json(storage_keys.REWARD_SETTINGS)
        if not isinstance(data, dict):
            return RewardSettings()
        try:
            return RewardSettings.model_validate(data)
        except ValidationError as exc:
            logger.warning("Invalid reward settings, using defaults: %s", exc)
            return RewardSettings()

    def save_settings(self, settings: RewardSettings) -> None:
        self._storage.write_json(storage_keys.REWARD_SETTINGS, settings.to_storage())

    def get_coupons(self) -> List[RewardCoupon]:
        return [RewardCoupon.model_validate(row) for row in self._storage.read_list(storage_keys.REWARD_COUPONS)]

    def save_coupons(self, coupons: List[RewardCoupon]) -> None:
        self._storage.write_json(storage_keys.REWARD_COUPONS, [coupon.to_storage() for coupon in coupons])

    def find_coupon(self, code: str) -> Optional[RewardCoupon]:
        wanted = code.strip().upper()
        return next((c for c in self.get_coupons() if c.code.upper() == wanted), None)

    def replace_coupon(self, coupon: RewardCoupon) -> None:
        coupons = [coupon if c.id == coupon.id else c for c in self.get_coupons()]
        self.save_coupons(coupons)

    def get_history(self) -> List[RewardHistory]:
        return [RewardHistory.model_validate(row) for row in self._storage.read_list(storage_keys.REWARD_HISTORY)]

    def append_history(self, entry: RewardHistory) -> None:
        rows = self._storage.read_list(storage_keys.REWARD_HISTORY)
        rows.append(entry.to_storage())
        self._storage.write_json(storage_keys.REWARD_HISTORY, rows)
