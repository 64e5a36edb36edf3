"""API v1 router configuration."""

from fastapi import APIRouter

from api.v1.routes.events import router as events_router
from api.v1.routes.notifications import router as notifications_router
from api.v1.routes.push_subscriptions import public_key_router
from api.v1.routes.push_subscriptions import router as push_subscriptions_router

router = APIRouter()
router.include_router(events_router)
router.include_router(notifications_router)
router.include_router(push_subscriptions_router)
router.include_router(public_key_router)
