"""Device push registration routes."""

from fastapi import APIRouter, Depends, Request

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_subscription_service
from api.v1.schemas.push_subscription import (
    DeviceReportRequest,
    PublicKeyResponse,
    PushStateResponse,
    PushSubscriptionResponse,
    SubscribeResponse,
)
from core.config import settings
from core.rate_limit import limiter
from domain.services.subscription_service import SubscriptionService
from infrastructure.push.reported_device import ReportedDeviceContext

router = APIRouter(prefix="/users/me/push-subscriptions", tags=["push"])

public_key_router = APIRouter(prefix="/push", tags=["push"])


@public_key_router.get(
    "/public-key",
    response_model=PublicKeyResponse,
    summary="Get the VAPID application server key",
)
async def get_public_key() -> PublicKeyResponse:
    return PublicKeyResponse(public_key=settings.vapid_public_key)


@router.put(
    "",
    response_model=SubscribeResponse,
    summary="Subscribe this device to push",
    responses={
        200: {"description": "Resulting device state; not subscribed if permission was refused"},
        502: {"description": "Registration failed; safe to retry"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def subscribe_device(
    request: Request,
    data: DeviceReportRequest,
    user: CurrentUser,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscribeResponse:
    """Idempotent: resubscribing the same endpoint updates its keys."""
    result = await service.subscribe(user.id, ReportedDeviceContext(data.to_report()))
    return SubscribeResponse(
        state=PushStateResponse.from_state(result.state),
        subscription=(
            PushSubscriptionResponse.model_validate(result.subscription)
            if result.subscription
            else None
        ),
    )


@router.post(
    "/unsubscribe",
    response_model=PushStateResponse,
    summary="Unsubscribe this device from push",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def unsubscribe_device(
    request: Request,
    data: DeviceReportRequest,
    user: CurrentUser,
    service: SubscriptionService = Depends(get_subscription_service),
) -> PushStateResponse:
    state = await service.unsubscribe(user.id, ReportedDeviceContext(data.to_report()))
    return PushStateResponse.from_state(state)


@router.post(
    "/status",
    response_model=PushStateResponse,
    summary="Get this device's push state",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def device_status(
    request: Request,
    data: DeviceReportRequest,
    user: CurrentUser,
    service: SubscriptionService = Depends(get_subscription_service),
) -> PushStateResponse:
    """Read-only: reconciles the device report against the registry."""
    state = await service.get_status(ReportedDeviceContext(data.to_report()), user_id=user.id)
    return PushStateResponse.from_state(state)
