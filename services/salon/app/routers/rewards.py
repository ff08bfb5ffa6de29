from fastapi import APIRouter, Depends, HTTPException, status

from app.context import SalonContext
from app.core.auth_dependencies import TokenPayload, get_context, require_admin
from app.models.rewards import CouponError
from app.schemas.salon_schema import RedeemRequest, RewardSettingsUpdate
from . import crud
from .validators import ensure_found, ensure_success

router = APIRouter(prefix="/{slug}", tags=["Rewards"])

_REDEMPTION_STATUS = {
    CouponError.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CouponError.APPOINTMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CouponError.ALREADY_USED: status.HTTP_409_CONFLICT,
    CouponError.EXPIRED: status.HTTP_400_BAD_REQUEST,
    CouponError.APPOINTMENT_CLOSED: status.HTTP_409_CONFLICT,
    CouponError.ALREADY_DISCOUNTED: status.HTTP_409_CONFLICT,
    CouponError.WRONG_CLIENT: status.HTTP_400_BAD_REQUEST,
    CouponError.STORAGE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.get("/clients/{client_id}/rewards")
def client_rewards(
    client_id: str,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    client = ensure_found(ctx.clients.get_by_id(client_id), "Client not found")
    settings = ctx.rewards.get_settings()
    spending = ctx.rewards.calculate_client_total_spending(client.id)
    return {
        "clientId": client.id,
        "totalSpending": spending,
        "spendingThreshold": settings.spending_threshold,
        "rewardsEarned": client.rewards_earned,
        "coupons": crud.dump(ctx.rewards.get_client_coupons(client.id)),
        "availableCoupons": crud.dump(ctx.rewards.get_client_available_coupons(client.id)),
        "history": crud.dump(ctx.rewards.get_reward_history(client.id)),
    }


@router.post("/rewards/redeem")
def redeem_coupon(
    payload: RedeemRequest,
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    redemption = ctx.rewards.use_reward_coupon(payload.code, payload.appointment_id)
    if not redemption.success:
        raise HTTPException(
            status_code=_REDEMPTION_STATUS.get(redemption.error_kind, status.HTTP_400_BAD_REQUEST),
            detail=redemption.error,
        )
    return {"success": True, "discount": redemption.discount}


@router.post("/rewards/check")
def check_rewards(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    """Issue coupons to every client that crossed the threshold."""
    return crud.dump(ctx.rewards.check_all_clients_for_rewards())


@router.get("/rewards/history")
def reward_history(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return crud.dump(ctx.rewards.get_reward_history())


@router.get("/rewards/settings")
def get_reward_settings(
    ctx: SalonContext = Depends(get_context),
    _: TokenPayload = Depends(require_admin),
):
    return ctx.rewards.get_settings().to_storage()


@router.put("/rewards/settings")
def update_reward_settings(
    payload: RewardSettingsUpdate,
    ctx: SalonContext = Depends(get_context),
    token: TokenPayload = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True, by_alias=True)
    return ensure_success(ctx.rewards.update_settings(changes, token.sub)).data.to_storage()
