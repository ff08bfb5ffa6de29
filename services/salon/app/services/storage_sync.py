from __future__ import annotations

import logging
from typing import Optional

from app.core import storage_keys
from app.repositories.settings import SalonSettingsRepository
from app.repositories.themes import ThemeRepository
from shared.kvstore import KeyValueStore, StorageEvent
from shared.messaging import Unsubscribe

logger = logging.getLogger(__name__)


class StorageSync:
    """Re-publish settings and theme writes made by other processes.

    Listens on the store's ``changes`` bus; when the scoped settings key or
    the active theme changes elsewhere, the value is re-read and published on
    the local settings/theme bus. Convergence is eventual and last write wins.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: SalonSettingsRepository,
        themes: ThemeRepository,
    ) -> None:
        self._store = store
        self._settings = settings
        self._themes = themes
        scope = settings.scope
        self._settings_key = scope.scoped_key(storage_keys.SETTINGS)
        self._theme_keys = {
            scope.scoped_key(storage_keys.ACTIVE_THEME),
            scope.scoped_key(storage_keys.THEMES),
        }
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.changes.subscribe(self.handle)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, event: StorageEvent) -> None:
        if event.key == self._settings_key:
            logger.debug("Settings changed in another process (%s)", event.key)
            self._settings.changes.publish(self._settings.get())
        elif event.key in self._theme_keys:
            active = self._themes.get_active()
            if active is not None:
                logger.debug("Theme changed in another process (%s)", event.key)
                self._themes.changes.publish(active)
