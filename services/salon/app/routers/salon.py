import logging
from typing import List

from fastapi import APIRouter, Depends, Form, HTTPException, Response, status

from app.context import SalonContext
from app.core.auth_dependencies import TokenPayload, get_context, get_directory, get_tenant, require_admin
from app.core.security import create_access_token
from app.models.tenant import Tenant
from app.schemas.salon_schema import (
    AdminCreate,
    AdminOut,
    PasswordChange,
    SettingsUpdate,
    ThemeImportRequest,
    UsernameChange,
)
from app.schemas.tenant_schema import TenantSummary, TokenResponse
from app.services.tenant_directory import TenantDirectory
from . import crud
from .validators import ensure_found, ensure_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/{slug}", tags=["Salon"])


@router.get("")
def get_salon(ctx: SalonContext = Depends(get_context)):
    """Public profile of the business: brand, settings and active theme."""
    active_theme = ctx.themes.get_active()
    return {
        "tenant": TenantSummary.from_tenant(ctx.tenant).model_dump(),
        "settings": ctx.settings.get().to_storage(),
        "theme": active_theme.to_storage() if active_theme else None,
    }


@router.post("/login", response_model=TokenResponse)
def login(
    username: str = Form(...),
    password: str = Form(...),
    tenant: Tenant = Depends(get_tenant),
    ctx: SalonContext = Depends(get_context),
    directory: TenantDirectory = Depends(get_directory),
):
    user = ctx.credentials.authenticate(username, password)
    if user is not None:
        token = create_access_token(subject=user.id, tenant_id=tenant.id, role=user.role)
        return TokenResponse(access_token=token, role=user.role)

    # owners registered before their tenant login was provisioned
    owner = directory.authenticate_owner(username, password)
    if owner is not None and (owner.id == tenant.owner_id or tenant.id in owner.tenants):
        token = create_access_token(subject=owner.id, tenant_id=tenant.id, role="owner")
        return TokenResponse(access_token=token, role="owner")

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid username or password",
    )


# settings

@router.get("/settings")
def get_settings(ctx: SalonContext = Depends(get_context)):
    return ctx.settings.get().to_storage()


@router.put("/settings")
def update_settings(
    payload: SettingsUpdate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    result = ensure_success(ctx.settings.save(payload.model_dump(exclude_unset=True), token.sub))
    return result.data.to_storage()


@router.get("/settings/history")
def settings_history(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.settings.get_history())


# themes

@router.get("/theme")
def get_active_theme(ctx: SalonContext = Depends(get_context)):
    return ensure_found(ctx.themes.get_active(), "Theme not found").to_storage()


@router.get("/themes")
def list_themes(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.themes.get_themes())


@router.post("/themes/presets/{preset_id}", status_code=status.HTTP_201_CREATED)
def create_theme_from_preset(
    preset_id: str,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    theme = ensure_found(ctx.themes.create_from_preset(preset_id, created_by=token.sub), "Preset not found")
    return theme.to_storage()


@router.post("/themes/import", status_code=status.HTTP_201_CREATED)
def import_theme(
    payload: ThemeImportRequest,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    return ensure_success(ctx.themes.import_theme(payload.data, created_by=token.sub)).data.to_storage()


@router.get("/themes/{theme_id}/export")
def export_theme(
    theme_id: str,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    exported = ensure_found(ctx.themes.export_theme(theme_id), "Theme not found")
    return Response(content=exported, media_type="application/json")


@router.post("/themes/{theme_id}/activate")
def activate_theme(
    theme_id: str,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    if not ctx.themes.set_active(theme_id):
        raise HTTPException(status_code=404, detail="Theme not found")
    return ctx.themes.get_active().to_storage()


@router.delete("/themes/{theme_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_theme(
    theme_id: str,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    # the default theme cannot be removed
    if not ctx.themes.delete(theme_id):
        raise HTTPException(status_code=404, detail="Theme not found or not removable")
    return None


# admin accounts

def _admin_out(user) -> AdminOut:
    return AdminOut(
        id=user.id,
        username=user.username,
        role=user.role,
        is_active=user.is_active,
        last_login=user.last_login,
    )


@router.get("/users", response_model=List[AdminOut])
def list_admins(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return [_admin_out(user) for user in ctx.credentials.get_visible()]


@router.post("/users", response_model=AdminOut, status_code=status.HTTP_201_CREATED)
def create_admin(
    payload: AdminCreate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    if token.role != "owner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner can create admin accounts",
        )
    user = ensure_success(ctx.credentials.create_admin(payload.username, payload.password, "admin", token.sub)).data
    logger.info("Admin '%s' created by %s", user.username, token.sub)
    return _admin_out(user)


@router.get("/login-attempts")
def login_attempts(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.credentials.get_login_attempts())


@router.put("/users/me/password", response_model=AdminOut)
def change_password(
    payload: PasswordChange,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    result = ctx.credentials.change_password(token.sub, payload.current_password, payload.new_password)
    return _admin_out(ensure_success(result).data)


@router.put("/users/me/username", response_model=AdminOut)
def change_username(
    payload: UsernameChange,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    result = ctx.credentials.change_username(token.sub, payload.current_password, payload.new_username)
    return _admin_out(ensure_success(result).data)


@router.get("/users/credential-updates")
def credential_updates(
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    """Owners see every account's changes, admins only their own."""
    user_id = None if token.role == "owner" else token.sub
    return crud.dump(ctx.credentials.get_credential_updates(user_id))
