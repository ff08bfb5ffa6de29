from __future__ import annotations

import re
from typing import Optional

from app.core import storage_keys
from app.models.salon import Client
from app.repositories.base import CollectionRepository
from shared.results import OperationResult

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


class ClientRepository(CollectionRepository[Client]):
    """Clients are created on first booking and never hard-deleted."""

    model = Client
    label = "Client"
    storage_key = storage_keys.CLIENTS

    def validate(self, entity: Client) -> Optional[str]:
        if not entity.full_name.strip():
            return "Client name is required"
        if len(normalize_phone(entity.phone)) < 10:
            return "Phone number must have at least 10 digits"
        return None

    def find_by_phone(self, phone: str) -> Optional[Client]:
        wanted = normalize_phone(phone)
        if not wanted:
            return None
        return next((c for c in self.get_all() if normalize_phone(c.phone) == wanted), None)

    def get_or_create(self, full_name: str, phone: str, email: str = "", actor: str = "system") -> OperationResult:
        existing = self.find_by_phone(phone)
        if existing is not None:
            return OperationResult.ok("Client found", data=existing)
        return self.create({"full_name": full_name.strip(), "phone": phone, "email": email or ""}, actor)

    def increment_rewards(self, client_id: str, actor: str = "system") -> bool:
        client = self.get_by_id(client_id)
        if client is None:
            return False
        updated = client.model_copy(update={"rewards_earned": client.rewards_earned + 1})
        return self.save(updated, actor).success
