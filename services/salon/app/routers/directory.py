import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth_dependencies import get_directory
from app.core.security import create_access_token
from app.schemas.tenant_schema import RegistrationRequest, RegistrationResponse, SlugCheckResponse, TenantSummary
from app.services.business_types import get_business_type
from app.services.tenant_directory import OwnerCredentials, TenantDirectory, check_slug_format
from .validators import ensure_success

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Directory"])


@router.get("/", response_model=List[TenantSummary])
def list_businesses(directory: TenantDirectory = Depends(get_directory)):
    return [TenantSummary.from_tenant(tenant) for tenant in directory.get_tenants()]


@router.get("/register/check-slug", response_model=SlugCheckResponse)
def check_slug(
    slug: str = Query(..., min_length=1),
    directory: TenantDirectory = Depends(get_directory),
):
    error = check_slug_format(slug)
    if error is None and not directory.is_slug_available(slug):
        error = f"The address '{slug}' is already in use by another business"
    return SlugCheckResponse(
        slug=slug,
        available=error is None,
        error=error,
        suggestion=None if error is None else directory.suggest_slug(slug),
    )


@router.post("/register", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
def register_business(payload: RegistrationRequest, directory: TenantDirectory = Depends(get_directory)):
    # reject a taken address before any account is written
    if payload.slug:
        error = check_slug_format(payload.slug)
        if error:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
        if not directory.is_slug_available(payload.slug):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"The address '{payload.slug}' is already in use by another business",
            )

    owner = directory.get_owner_by_email(payload.owner_email)
    if owner is not None:
        # an existing owner adds another business with the same account
        owner = directory.authenticate_owner(payload.owner_email, payload.owner_password)
        if owner is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="An account with this email already exists and the password does not match",
            )
    else:
        owner = ensure_success(
            directory.register_owner(
                payload.owner_email,
                payload.owner_password,
                payload.owner_first_name,
                payload.owner_last_name,
                payload.owner_phone,
            )
        ).data

    config = get_business_type(payload.business_type)
    data = {
        "name": payload.business_name.strip(),
        "slug": payload.slug or directory.suggest_slug(payload.business_name),
        "business_type": payload.business_type,
        "address": payload.address,
        "phone": payload.phone,
        "email": payload.email or "",
        "description": payload.description or (config.description if config else ""),
    }
    primary = payload.primary_color or (config.primary_color if config else None)
    secondary = payload.secondary_color or (config.secondary_color if config else None)
    if primary:
        data["primary_color"] = primary
    if secondary:
        data["secondary_color"] = secondary

    credentials = OwnerCredentials(
        first_name=owner.first_name,
        last_name=owner.last_name,
        email=owner.email,
        password=payload.owner_password,
    )
    tenant = ensure_success(directory.create_tenant(data, owner.id, credentials)).data
    logger.info("Business '%s' registered by owner %s", tenant.slug, owner.id)

    return RegistrationResponse(
        tenant=TenantSummary.from_tenant(tenant),
        access_token=create_access_token(owner.id, tenant.id, "owner"),
        role="owner",
    )
