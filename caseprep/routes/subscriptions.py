import logging
from typing import List

from fastapi import APIRouter, Depends, Request

from ..auth import get_current_user
from ..database import get_db
from ..models import (
    CancelRequest,
    CheckoutRequest,
    CheckoutSession,
    PortalSession,
    Subscription,
    SubscriptionPlan,
    SubscriptionUsage,
    User,
)
from ..payments import (
    cancel_subscription,
    construct_event,
    create_checkout_session,
    create_portal_session,
    handle_webhook_event,
)
from ..subscriptions import PLANS, get_subscription, get_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/plans", response_model=List[SubscriptionPlan])
async def list_plans():
    return PLANS


@router.get("/me", response_model=Subscription)
async def get_my_subscription(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    return await get_subscription(db, current_user.id)


@router.get("/usage", response_model=SubscriptionUsage)
async def get_my_usage(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    return await get_usage(db, current_user)


@router.post("/checkout", response_model=CheckoutSession)
async def create_checkout(
    request: CheckoutRequest,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    subscription = await get_subscription(db, current_user.id)
    return create_checkout_session(current_user, subscription, request.tier)


@router.post("/portal", response_model=PortalSession)
async def billing_portal(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    subscription = await get_subscription(db, current_user.id)
    return create_portal_session(current_user, subscription)


@router.post("/cancel", response_model=Subscription)
async def cancel(
    request: CancelRequest,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    subscription = await cancel_subscription(db, current_user, immediately=request.immediately)
    logger.info(f"User {current_user.id} cancelled subscription (immediately={request.immediately})")
    return subscription


@router.post("/webhook")
async def stripe_webhook(request: Request, db=Depends(get_db)):
    payload = await request.body()
    event = construct_event(payload, request.headers.get("stripe-signature", ""))
    handled = await handle_webhook_event(db, event)
    return {"received": True, "handled": handled}
