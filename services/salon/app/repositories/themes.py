from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from app.core import storage_keys
from app.core.scope import TenantScope
from app.models.common import new_id, utcnow
from app.models.salon import ColorPalette, ThemeSettings
from app.models.tenant import Tenant
from app.repositories.base import STORAGE_FAILURE_MESSAGE, ScopedStorage, describe_validation_error
from shared.kvstore import KeyValueStore, StorageError
from shared.messaging import ChangeBus
from shared.results import STORAGE, OperationResult

logger = logging.getLogger(__name__)

DEFAULT_THEME_ID = "default"
EXPORT_VERSION = "1.0"

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
REQUIRED_COLORS = (
    "primary",
    "secondary",
    "accent",
    "success",
    "warning",
    "error",
    "background",
    "surface",
    "text",
    "textSecondary",
    "border",
)

FALLBACK_PALETTE = ColorPalette(
    primary="#0ea5e9",
    primary_light="#38bdf8",
    primary_dark="#0284c7",
    secondary="#06b6d4",
    secondary_light="#22d3ee",
    secondary_dark="#0891b2",
)

PRESETS: Dict[str, dict] = {
    "neutral-professional": {
        "name": "Profesional Neutro",
        "description": "Paleta neutra y versátil para cualquier tipo de negocio de belleza",
        "colors": ColorPalette(
            primary="#6b7280",
            primary_light="#9ca3af",
            primary_dark="#4b5563",
            secondary="#d6d3d1",
            secondary_light="#e7e5e4",
            secondary_dark="#a8a29e",
            accent="#78716c",
            accent_light="#a8a29e",
            accent_dark="#57534e",
            success="#059669",
            warning="#d97706",
            error="#dc2626",
            info="#0369a1",
            background="#fafaf9",
            shadow="rgba(107, 114, 128, 0.1)",
        ),
    },
    DEFAULT_THEME_ID: {
        "name": "Personalizado (Predeterminado)",
        "description": "Tema basado en los colores de tu marca",
        "colors": None,  # tenant palette
    },
}


@dataclass
class PaletteCheck:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def validate_palette(colors: Dict[str, str]) -> PaletteCheck:
    """Every required colour must be present and a ``#rrggbb`` hex code."""
    errors = []
    for name in REQUIRED_COLORS:
        value = colors.get(name)
        if not value:
            errors.append(f"Color {name} is required")
        elif not HEX_COLOR.match(value):
            errors.append(f"Color {name} must be a valid hex code")
    return PaletteCheck(is_valid=not errors, errors=errors)


def tenant_palette(tenant: Optional[Tenant]) -> ColorPalette:
    if tenant is None:
        return FALLBACK_PALETTE
    # light/dark variants are a presentation concern; keep the brand colours
    return FALLBACK_PALETTE.model_copy(
        update={
            "primary": tenant.primary_color,
            "primary_light": tenant.primary_color,
            "primary_dark": tenant.primary_color,
            "secondary": tenant.secondary_color,
            "secondary_light": tenant.secondary_color,
            "secondary_dark": tenant.secondary_color,
        }
    )


class ThemeRepository:
    """Colour themes of one tenant.

    A default theme built from the tenant's brand colours always exists and
    cannot be deleted. Changes to the active theme are published on
    :attr:`changes`.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scope: TenantScope,
        *,
        tenant: Optional[Tenant] = None,
        changes: Optional[ChangeBus[ThemeSettings]] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._storage = ScopedStorage(store, scope)
        self._tenant = tenant
        self._clock = clock
        self.changes: ChangeBus[ThemeSettings] = changes if changes is not None else ChangeBus("themes")

    def _default_theme(self) -> ThemeSettings:
        now = self._clock()
        name = f"{self._tenant.name} (Predeterminado)" if self._tenant else "Predeterminado"
        return ThemeSettings(
            id=DEFAULT_THEME_ID,
            name=name,
            description=PRESETS[DEFAULT_THEME_ID]["description"],
            colors=tenant_palette(self._tenant),
            is_default=True,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    def _load(self) -> List[ThemeSettings]:
        themes = []
        for row in self._storage.read_list(storage_keys.THEMES):
            try:
                themes.append(ThemeSettings.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping invalid theme: %s", exc)
        if not any(theme.id == DEFAULT_THEME_ID for theme in themes):
            themes.insert(0, self._default_theme())
            self._persist(themes)
        return themes

    def _persist(self, themes: List[ThemeSettings]) -> None:
        self._storage.write_json(storage_keys.THEMES, [theme.to_storage() for theme in themes])

    def get_themes(self) -> List[ThemeSettings]:
        try:
            return self._load()
        except StorageError:
            logger.exception("Failed to read themes")
            return [self._default_theme()]

    def get_theme(self, theme_id: str) -> Optional[ThemeSettings]:
        return next((theme for theme in self.get_themes() if theme.id == theme_id), None)

    def save(self, theme: ThemeSettings) -> OperationResult:
        check = validate_palette(theme.colors.to_storage())
        if not check.is_valid:
            return OperationResult.fail("; ".join(check.errors))
        try:
            themes = self._load()
            now = self._clock()
            index = next((i for i, t in enumerate(themes) if t.id == theme.id), None)
            if index is None:
                theme = theme.model_copy(update={"created_at": theme.created_at or now, "updated_at": now})
                themes.append(theme)
            else:
                theme = theme.model_copy(update={"updated_at": now})
                themes[index] = theme
            self._persist(themes)
        except StorageError:
            logger.exception("Failed to save theme '%s'", theme.id)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)

        if theme.is_active:
            self.changes.publish(theme)
        return OperationResult.ok("Theme saved", data=theme)

    def delete(self, theme_id: str) -> bool:
        try:
            themes = self._load()
            theme = next((t for t in themes if t.id == theme_id), None)
            if theme is None or theme.is_default:
                return False
            was_active = self._active_id() == theme_id or theme.is_active
            self._persist([t for t in themes if t.id != theme_id])
        except StorageError:
            logger.exception("Failed to delete theme '%s'", theme_id)
            return False
        if was_active:
            self.set_active(DEFAULT_THEME_ID)
        return True

    def _active_id(self) -> str:
        return self._storage.read_text(storage_keys.ACTIVE_THEME) or DEFAULT_THEME_ID

    def get_active(self) -> Optional[ThemeSettings]:
        try:
            active_id = self._active_id()
            themes = self._load()
        except StorageError:
            logger.exception("Failed to read the active theme")
            return self._default_theme()
        return next((t for t in themes if t.id == active_id), themes[0] if themes else None)

    def set_active(self, theme_id: str) -> bool:
        try:
            themes = self._load()
            if not any(t.id == theme_id for t in themes):
                return False
            themes = [t.model_copy(update={"is_active": t.id == theme_id}) for t in themes]
            self._persist(themes)
            self._storage.write_text(storage_keys.ACTIVE_THEME, theme_id)
        except StorageError:
            logger.exception("Failed to activate theme '%s'", theme_id)
            return False
        active = next(t for t in themes if t.id == theme_id)
        self.changes.publish(active)
        return True

    def reset_to_default(self) -> bool:
        return self.set_active(DEFAULT_THEME_ID)

    def create_from_preset(
        self,
        preset_id: str,
        name: Optional[str] = None,
        created_by: str = "user",
    ) -> Optional[ThemeSettings]:
        preset = PRESETS.get(preset_id)
        if preset is None:
            return None
        colors = preset["colors"] or tenant_palette(self._tenant)
        theme = ThemeSettings(
            id=new_id(),
            name=name or preset["name"],
            description=preset["description"],
            colors=colors.model_copy(),
            created_by=created_by,
        )
        result = self.save(theme)
        return result.data if result.success else None

    def export_theme(self, theme_id: str) -> Optional[str]:
        theme = self.get_theme(theme_id)
        if theme is None:
            return None
        return json.dumps(
            {
                "name": theme.name,
                "description": theme.description,
                "colors": theme.colors.to_storage(),
                "exportedAt": self._clock().isoformat(),
                "version": EXPORT_VERSION,
            },
            indent=2,
        )

    def import_theme(self, theme_data: str, created_by: str = "user") -> OperationResult:
        try:
            data = json.loads(theme_data)
        except ValueError:
            return OperationResult.fail("Theme data is not valid JSON")
        if not isinstance(data, dict) or not data.get("name") or not isinstance(data.get("colors"), dict):
            return OperationResult.fail("Invalid theme data")
        check = validate_palette(data["colors"])
        if not check.is_valid:
            return OperationResult.fail("; ".join(check.errors))
        try:
            theme = ThemeSettings(
                id=new_id(),
                name=data["name"],
                description=data.get("description") or "Tema importado",
                colors=ColorPalette.model_validate({**FALLBACK_PALETTE.to_storage(), **data["colors"]}),
                created_by=created_by,
            )
        except ValidationError as exc:
            return OperationResult.fail(describe_validation_error(exc))
        return self.save(theme)

    def validate_palette(self, colors: Dict[str, str]) -> PaletteCheck:
        return validate_palette(colors)
