from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from app.core import storage_keys
from app.core.security import get_password_hash, verify_password
from app.models.common import Lifecycle, new_id
from app.models.salon import AdminUser, CredentialUpdate, LoginAttempt
from app.repositories.base import LifecycleRepository
from shared.kvstore import StorageError
from shared.results import CONFLICT, NOT_FOUND, OperationResult

logger = logging.getLogger(__name__)

SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
LOGIN_ATTEMPTS_LIMIT = 100
CREDENTIAL_UPDATES_LIMIT = 50


def validate_password(password: str) -> List[str]:
    errors = []
    if len(password) < 8:
        errors.append("Password must have at least 8 characters")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain an uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain a number")
    if not SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain a special character")
    return errors


def validate_username(username: str) -> List[str]:
    errors = []
    if len(username) < 3:
        errors.append("Username must have at least 3 characters")
    if len(username) > 20:
        errors.append("Username cannot have more than 20 characters")
    if not USERNAME_PATTERN.match(username):
        errors.append("Only letters, numbers and underscores are allowed")
    if username[:1].isdigit():
        errors.append("Username cannot start with a number")
    return errors


class CredentialRepository(LifecycleRepository[AdminUser]):
    """Admin users of one tenant; passwords are stored as passlib hashes."""

    model = AdminUser
    label = "Admin user"
    storage_key = storage_keys.ADMIN_USERS

    def validate_password(self, password: str) -> List[str]:
        return validate_password(password)

    def validate_username(self, username: str) -> List[str]:
        return validate_username(username)

    def find_by_username(self, username: str) -> Optional[AdminUser]:
        wanted = username.strip().lower()
        return next((u for u in self.get_all() if u.username.lower() == wanted), None)

    def create_admin(self, username: str, password: str, role: str = "admin", actor: str = "system") -> OperationResult:
        errors = validate_username(username) + validate_password(password)
        if errors:
            return OperationResult.fail("; ".join(errors))
        return self._create(username, get_password_hash(password), role, actor)

    def provision_owner(self, email: str, password_hash: str) -> OperationResult:
        """Owner login of a new tenant; the username is the owner's e-mail."""
        return self._create(email.strip().lower(), password_hash, "owner", "system")

    def _create(self, username: str, password_hash: str, role: str, actor: str) -> OperationResult:
        if self.find_by_username(username) is not None:
            return OperationResult.fail(f"Username '{username}' is already taken", CONFLICT)
        return self.create({"username": username, "password_hash": password_hash, "role": role}, actor)

    def authenticate(self, username: str, password: str) -> Optional[AdminUser]:
        user = self.find_by_username(username)
        valid = user is not None and user.lifecycle is Lifecycle.ACTIVE and self._verify(password, user.password_hash)
        self._record_attempt(username, valid)
        if not valid:
            return None
        updated = user.model_copy(update={"last_login": self._clock()})
        result = self.save(updated, updated.username)
        return result.data if result.success else user

    @staticmethod
    def _verify(password: str, password_hash: str) -> bool:
        try:
            return verify_password(password, password_hash)
        except ValueError:
            logger.warning("Unrecognized password hash format")
            return False

    def _record_attempt(self, username: str, success: bool) -> None:
        attempt = LoginAttempt(
            id=new_id(),
            username=username.strip().lower(),
            success=success,
            timestamp=self._clock(),
        )
        try:
            self._storage.append_capped(storage_keys.LOGIN_ATTEMPTS, [attempt.to_storage()], LOGIN_ATTEMPTS_LIMIT)
        except StorageError:
            logger.exception("Failed to record login attempt for '%s'", attempt.username)

    def get_login_attempts(self) -> List[LoginAttempt]:
        try:
            rows = self._storage.read_list(storage_keys.LOGIN_ATTEMPTS)
        except StorageError:
            logger.exception("Failed to read login attempts")
            return []
        return [LoginAttempt.model_validate(row) for row in reversed(rows)]

    # credential changes

    def _verified_user(self, user_id: str, current_password: str) -> OperationResult:
        user = self.get_by_id(user_id)
        if user is None or user.lifecycle is not Lifecycle.ACTIVE:
            return OperationResult.fail("Admin user not found", NOT_FOUND)
        if not self._verify(current_password, user.password_hash):
            return OperationResult.fail("Current password is incorrect")
        return OperationResult.ok("Verified", data=user)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> OperationResult:
        verified = self._verified_user(user_id, current_password)
        if not verified.success:
            return verified
        errors = validate_password(new_password)
        if errors:
            return OperationResult.fail("; ".join(errors))

        user = verified.data
        result = self.save(user.model_copy(update={"password_hash": get_password_hash(new_password)}), user.username)
        if not result.success:
            return result
        self.record_credential_update(user.id, "password")
        logger.info("Password changed for admin user %s", user.id)
        return OperationResult.ok("Password updated", data=result.data)

    def change_username(self, user_id: str, current_password: str, new_username: str) -> OperationResult:
        verified = self._verified_user(user_id, current_password)
        if not verified.success:
            return verified
        username = new_username.strip().lower()
        errors = validate_username(username)
        if errors:
            return OperationResult.fail("; ".join(errors))
        taken = self.find_by_username(username)
        if taken is not None and taken.id != user_id:
            return OperationResult.fail(f"Username '{username}' is already taken", CONFLICT)

        user = verified.data
        result = self.save(user.model_copy(update={"username": username}), user.username)
        if not result.success:
            return result
        self.record_credential_update(user.id, "username")
        logger.info("Admin user %s renamed to '%s'", user.id, username)
        return OperationResult.ok("Username updated", data=result.data)

    def record_credential_update(self, user_id: str, kind: str) -> None:
        update = CredentialUpdate(id=new_id(), user_id=user_id, type=kind, timestamp=self._clock())
        try:
            self._storage.append_capped(storage_keys.CREDENTIAL_UPDATES, [update.to_storage()], CREDENTIAL_UPDATES_LIMIT)
        except StorageError:
            logger.exception("Failed to record %s change for admin user %s", kind, user_id)

    def get_credential_updates(self, user_id: Optional[str] = None) -> List[CredentialUpdate]:
        """Audit rows, newest first."""
        try:
            rows = self._storage.read_list(storage_keys.CREDENTIAL_UPDATES)
        except StorageError:
            logger.exception("Failed to read credential updates")
            return []
        updates = [CredentialUpdate.model_validate(row) for row in reversed(rows)]
        if user_id is not None:
            updates = [u for u in updates if u.user_id == user_id]
        return updates

    def get_last_credential_update(self, user_id: str) -> Dict[str, Optional[datetime]]:
        last: Dict[str, Optional[datetime]] = {"username": None, "password": None}
        for update in self.get_credential_updates(user_id):
            if last[update.type] is None:
                last[update.type] = update.timestamp
        return last
