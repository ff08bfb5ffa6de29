from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.context import SalonContext
from app.core.auth_dependencies import TokenPayload, get_context, require_admin
from app.models.salon import AppointmentStatus
from app.schemas.salon_schema import BookingRequest, StatusUpdateRequest
from . import crud
from .validators import ensure_found, ensure_success

router = APIRouter(prefix="/{slug}", tags=["Appointments"])


@router.get("/appointments")
def list_appointments(
    day: Optional[date] = Query(default=None, alias="date"),
    staff_id: Optional[str] = Query(default=None, alias="staffId"),
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    appointment_status: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    appointments = ctx.appointments.get_all()
    if day is not None:
        appointments = [a for a in appointments if a.date == day]
    if staff_id:
        appointments = [a for a in appointments if a.staff_id == staff_id]
    if client_id:
        appointments = [a for a in appointments if a.client_id == client_id]
    if appointment_status is not None:
        appointments = [a for a in appointments if a.status is appointment_status]
    appointments.sort(key=lambda a: (a.date, a.time))
    return crud.dump(appointments)


@router.post("/appointments", status_code=status.HTTP_201_CREATED)
def book_appointment(payload: BookingRequest, ctx: SalonContext = Depends(get_context)):
    result = ensure_success(ctx.booking.book(payload))
    return result.data.to_storage()


@router.patch("/appointments/{appointment_id}/status")
def update_appointment_status(
    appointment_id: str,
    payload: StatusUpdateRequest,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    ensure_found(ctx.appointments.get_by_id(appointment_id), "Appointment not found")
    if not ctx.appointments.update_status(appointment_id, payload.status, token.sub, payload.reason):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not update the appointment")
    return ctx.appointments.get_by_id(appointment_id).to_storage()


@router.get("/appointments/{appointment_id}/history")
def appointment_history(
    appointment_id: str,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    ensure_found(ctx.appointments.get_by_id(appointment_id), "Appointment not found")
    return crud.dump(ctx.appointments.get_update_log(appointment_id))


@router.get("/clients")
def list_clients(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.clients.get_all())


@router.get("/notifications")
def list_notifications(
    appointment_id: Optional[str] = Query(default=None, alias="appointmentId"),
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.ledger.get_all(appointment_id))
