from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from app.core import storage_keys
from app.models.common import FieldChange, Lifecycle, PriceChange, new_id
from app.models.salon import Product, Service
from app.repositories.base import STORAGE_FAILURE_MESSAGE, LifecycleRepository
from shared.kvstore import StorageError
from shared.results import STORAGE, OperationResult

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


def _round_price(value: float) -> float:
    return max(0.0, round(value, 2))


class PricedRepository(LifecycleRepository):
    price_field = "price"

    def validate(self, entity) -> Optional[str]:
        name = entity.name.strip()
        if not name:
            return f"{self.label} name is required"
        if len(name) > MAX_NAME_LENGTH:
            return f"{self.label} name must be at most {MAX_NAME_LENGTH} characters"
        if entity.price < 0:
            return "Price cannot be negative"
        return None

    def get_by_category(self, category: str) -> list:
        return [item for item in self.get_active() if item.category == category]

    def bulk_update_prices(
        self,
        entity_ids: Iterable[str],
        *,
        percentage: Optional[float] = None,
        amount: Optional[float] = None,
        actor: str = "system",
    ) -> OperationResult:
        """Adjust prices by a percentage or a fixed amount in one write.

        Unknown ids are skipped; ``data`` carries the number of updated
        entities.
        """
        if (percentage is None) == (amount is None):
            return OperationResult.fail("Provide either a percentage or an amount")

        def adjust(current: float) -> float:
            if percentage is not None:
                return _round_price(current * (1 + percentage / 100))
            return _round_price(current + amount)

        return self._apply_prices({entity_id: adjust for entity_id in entity_ids}, actor)

    def bulk_set_prices(self, updates: Iterable[Dict], actor: str = "system") -> OperationResult:
        """Set absolute prices from ``[{"serviceId": ..., "newPrice": ...}]``."""
        targets = {}
        for update in updates:
            entity_id = update.get("serviceId") or update.get("id")
            new_price = update.get("newPrice")
            if entity_id is None or new_price is None:
                continue
            if new_price < 0:
                return OperationResult.fail("Price cannot be negative")
            targets[entity_id] = lambda _current, price=new_price: _round_price(price)
        return self._apply_prices(targets, actor)

    def _apply_prices(self, adjusters: Dict, actor: str) -> OperationResult:
        try:
            items = self._load()
            now = self._clock()
            log_rows: List[dict] = []
            price_rows: List[dict] = []
            for index, item in enumerate(items):
                adjust = adjusters.get(item.id)
                if adjust is None or item.lifecycle is Lifecycle.DELETED:
                    continue
                new_price = adjust(item.price)
                if new_price == item.price:
                    continue
                price_rows.append(
                    PriceChange(
                        id=new_id(),
                        entity_id=item.id,
                        old_price=item.price,
                        new_price=new_price,
                        changed_by=actor,
                        changed_at=now,
                    ).to_storage()
                )
                log_rows.append(
                    FieldChange(
                        id=new_id(),
                        entity_id=item.id,
                        field="price",
                        old_value=item.price,
                        new_value=new_price,
                        updated_by=actor,
                        updated_at=now,
                    ).to_storage()
                )
                items[index] = item.model_copy(update={"price": new_price, "updated_at": now})
            if price_rows:
                self._persist(items)
                self._storage.append_capped(self.update_log_key, log_rows, self.update_log_limit)
                self._storage.append_capped(self.price_history_key, price_rows, self.price_history_limit)
        except StorageError:
            logger.exception("Bulk price update failed under '%s'", self.key)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)

        updated = len(price_rows)
        logger.info("Updated %d prices under '%s'", updated, self.key)
        return OperationResult.ok(f"{updated} prices updated", data=updated)

    def statistics(self) -> dict:
        visible = self.get_visible()
        active = [item for item in visible if item.lifecycle is Lifecycle.ACTIVE]
        prices = [item.price for item in active]
        categories: Dict[str, int] = {}
        for item in active:
            categories[item.category] = categories.get(item.category, 0) + 1
        return {
            "total": len(visible),
            "active": len(active),
            "inactive": len(visible) - len(active),
            "averagePrice": round(sum(prices) / len(prices), 2) if prices else 0,
            "minPrice": min(prices) if prices else 0,
            "maxPrice": max(prices) if prices else 0,
            "categories": categories,
            "recentUpdates": len(self.get_update_log()),
        }


class ServiceRepository(PricedRepository):
    model = Service
    label = "Service"
    storage_key = storage_keys.SERVICES
    update_log_key = storage_keys.SERVICE_UPDATES
    price_history_key = storage_keys.PRICE_HISTORY

    def validate(self, entity: Service) -> Optional[str]:
        error = super().validate(entity)
        if error:
            return error
        if entity.duration <= 0:
            return "Duration must be greater than zero"
        if not entity.category.strip():
            return "Category is required"
        return None

    def get_many(self, service_ids: Iterable[str]) -> List[Service]:
        wanted = set(service_ids)
        return [service for service in self.get_all() if service.id in wanted]


class ProductRepository(PricedRepository):
    model = Product
    label = "Product"
    storage_key = storage_keys.PRODUCTS
    update_log_key = storage_keys.PRODUCT_UPDATES
    price_history_key = storage_keys.PRODUCT_PRICE_HISTORY

    def validate(self, entity: Product) -> Optional[str]:
        error = super().validate(entity)
        if error:
            return error
        if entity.stock < 0:
            return "Stock cannot be negative"
        return None
