from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.context import SalonContext
from app.core.auth_dependencies import TokenPayload, get_context, require_admin
from app.schemas.salon_schema import (
    BulkPriceRequest,
    ProductCreate,
    ProductUpdate,
    ServiceCreate,
    ServiceUpdate,
)
from . import crud
from .validators import ensure_success

router = APIRouter(prefix="/{slug}", tags=["Catalog"])


# services

@router.get("/services")
def list_services(
    category: Optional[str] = Query(default=None),
    ctx: SalonContext = Depends(get_context),
):
    if category:
        services = ctx.services.get_by_category(category)
    else:
        services = ctx.services.get_active()
    return crud.dump(services)


@router.get("/services/all")
def list_all_services(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    """Active and inactive services, for the admin catalogue."""
    return crud.dump(ctx.services.get_visible())


@router.post("/services", status_code=status.HTTP_201_CREATED)
def create_service(
    payload: ServiceCreate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    result = ensure_success(ctx.services.create(payload.model_dump(), token.sub))
    return result.data.to_storage()


@router.put("/services/{service_id}")
def update_service(
    service_id: str,
    payload: ServiceUpdate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    service = crud.get_visible(ctx.services, service_id, "Service not found")
    updated = crud.apply_changes(service, payload.model_dump(exclude_unset=True))
    return ensure_success(ctx.services.save(updated, token.sub)).data.to_storage()


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    service_id: str,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    if not ctx.services.delete(service_id, token.sub):
        raise HTTPException(status_code=404, detail="Service not found")
    return None


@router.post("/services/bulk-prices")
def bulk_update_prices(
    payload: BulkPriceRequest,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    if payload.prices:
        result = ctx.services.bulk_set_prices(
            [price.model_dump(by_alias=True) for price in payload.prices],
            token.sub,
        )
    else:
        result = ctx.services.bulk_update_prices(
            payload.service_ids,
            percentage=payload.percentage,
            amount=payload.amount,
            actor=token.sub,
        )
    ensure_success(result)
    return {"updated": result.data, "message": result.message}


@router.get("/services/price-history")
def service_price_history(
    service_id: Optional[str] = Query(default=None, alias="serviceId"),
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.services.get_price_history(service_id))


@router.get("/services/statistics")
def service_statistics(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return ctx.services.statistics()


# products

@router.get("/products")
def list_products(ctx: SalonContext = Depends(get_context)):
    return crud.dump(ctx.products.get_active())


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    return ensure_success(ctx.products.create(payload.model_dump(), token.sub)).data.to_storage()


@router.put("/products/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    product = crud.get_visible(ctx.products, product_id, "Product not found")
    updated = crud.apply_changes(product, payload.model_dump(exclude_unset=True))
    return ensure_success(ctx.products.save(updated, token.sub)).data.to_storage()


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: str,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    if not ctx.products.delete(product_id, token.sub):
        raise HTTPException(status_code=404, detail="Product not found")
    return None
