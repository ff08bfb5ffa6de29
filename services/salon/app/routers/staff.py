from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.context import SalonContext
from app.core.auth_dependencies import TokenPayload, get_context, require_admin
from app.schemas.salon_schema import StaffAction, StaffCleanupResponse, StaffCreate, StaffUpdate
from . import crud
from .validators import ensure_success

router = APIRouter(prefix="/{slug}/staff", tags=["Staff"])


@router.get("")
def list_staff(
    category: Optional[str] = Query(default=None),
    ctx: SalonContext = Depends(get_context),
):
    if category:
        return crud.dump(ctx.staff.get_for_categories([category]))
    return crud.dump(ctx.staff.get_active())


@router.get("/all")
def list_all_staff(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.staff.get_visible())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_staff(
    payload: StaffCreate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    result = ensure_success(ctx.staff.create(payload.model_dump(exclude_none=True), token.sub))
    return result.data.to_storage()


@router.put("/{staff_id}")
def update_staff(
    staff_id: str,
    payload: StaffUpdate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    member = crud.get_visible(ctx.staff, staff_id, "Staff member not found")
    updated = crud.apply_changes(member, payload.model_dump(exclude_unset=True))
    # deactivating cancels the member's future appointments first
    return ensure_success(ctx.guard.update_staff(updated, token.sub)).data.to_storage()


@router.get("/{staff_id}/future-appointments")
def future_appointments(
    staff_id: str,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    crud.get_visible(ctx.staff, staff_id, "Staff member not found")
    return crud.dump(ctx.guard.get_future_appointments_for_staff(staff_id))


@router.delete("/{staff_id}")
def delete_staff(
    staff_id: str,
    action: Optional[StaffAction] = Query(default=None),
    reassign_to: Optional[str] = Query(default=None, alias="reassignTo"),
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    """Remove a staff member.

    Future appointments must be handled explicitly: ``action=cancel`` or
    ``action=reassign&reassignTo=<staffId>``. Without an action the request
    fails with 409 while such appointments exist.
    """
    result = ensure_success(ctx.guard.delete_staff(staff_id, action, reassign_to, token.sub))
    return {"message": result.message, "affectedAppointments": result.data or 0}


@router.post("/cleanup", response_model=StaffCleanupResponse)
def cleanup_orphaned_appointments(
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    cancelled = ctx.guard.cleanup_orphaned_appointments(ctx.staff.get_visible(), token.sub)
    return StaffCleanupResponse(cancelled=cancelled)
