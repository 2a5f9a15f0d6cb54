import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from fastapi import HTTPException

from .config import (
    BILLING_PORTAL_RETURN_URL,
    CHECKOUT_CANCEL_URL,
    CHECKOUT_SUCCESS_URL,
    STRIPE_PRICES,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from .errors import NotFoundError, ValidationError
from .models import (
    CheckoutSession,
    PortalSession,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
    User,
)
from .subscriptions import get_subscription

logger = logging.getLogger(__name__)

if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY

# Stripe subscription status -> our status
STRIPE_STATUSES = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


def payments_enabled() -> bool:
    return bool(STRIPE_SECRET_KEY)


def require_payments() -> None:
    if not payments_enabled():
        raise HTTPException(status_code=503, detail="Payments are not configured")


def _timestamp(value) -> Optional[str]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _set_user_plan(db, user_id: str, tier: SubscriptionTier, status: SubscriptionStatus) -> None:
    await db.users.update_one(
        {"id": user_id},
        {"$set": {
            "subscription_tier": tier.value,
            "subscription_status": status.value,
            "updated_at": _now(),
        }},
    )


async def downgrade_to_free(db, user_id: str) -> None:
    await db.subscriptions.update_one(
        {"user_id": user_id},
        {"$set": {
            "plan_id": "free",
            "tier": SubscriptionTier.FREE.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "stripe_subscription_id": None,
            "current_period_end": None,
            "cancel_at_period_end": False,
            "updated_at": _now(),
        }},
        upsert=True,
    )
    await _set_user_plan(db, user_id, SubscriptionTier.FREE, SubscriptionStatus.ACTIVE)
    logger.info(f"User {user_id} moved to the FREE plan")


def create_checkout_session(user: User, subscription: Subscription, tier: SubscriptionTier) -> CheckoutSession:
    require_payments()
    if tier == SubscriptionTier.FREE:
        raise ValidationError("The FREE plan does not require checkout")
    if subscription.tier == tier and subscription.stripe_subscription_id:
        raise ValidationError(f"Already subscribed to the {tier.value} plan")
    price = STRIPE_PRICES.get(tier.value)
    if not price:
        raise HTTPException(status_code=503, detail=f"No Stripe price configured for {tier.value}")

    params = {
        "mode": "subscription",
        "line_items": [{"price": price, "quantity": 1}],
        "success_url": CHECKOUT_SUCCESS_URL,
        "cancel_url": CHECKOUT_CANCEL_URL,
        "client_reference_id": user.id,
        "metadata": {"user_id": user.id, "tier": tier.value},
    }
    if subscription.stripe_customer_id:
        params["customer"] = subscription.stripe_customer_id
    else:
        params["customer_email"] = user.email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout failed for user {user.id}: {e}")
        raise HTTPException(status_code=502, detail="Unable to start checkout right now")

    logger.info(f"Checkout session {session['id']} created for user {user.id} ({tier.value})")
    return CheckoutSession(session_id=session["id"], checkout_url=session["url"])


def create_portal_session(user: User, subscription: Subscription) -> PortalSession:
    """Stripe-hosted billing page for a customer who has already paid once."""
    require_payments()
    if not subscription.stripe_customer_id:
        raise ValidationError("No billing account found for this user")

    try:
        session = stripe.billing_portal.Session.create(
            customer=subscription.stripe_customer_id,
            return_url=BILLING_PORTAL_RETURN_URL,
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe portal session failed for user {user.id}: {e}")
        raise HTTPException(status_code=502, detail="Unable to open the billing portal right now")

    logger.info(f"Billing portal session created for user {user.id}")
    return PortalSession(url=session["url"])


async def cancel_subscription(db, user: User, immediately: bool = False) -> Subscription:
    subscription = await get_subscription(db, user.id)
    if not subscription.stripe_subscription_id:
        raise ValidationError("No paid subscription to cancel")
    require_payments()

    try:
        if immediately:
            stripe.Subscription.cancel(subscription.stripe_subscription_id)
        else:
            stripe.Subscription.modify(subscription.stripe_subscription_id, cancel_at_period_end=True)
    except stripe.StripeError as e:
        logger.error(f"Stripe cancel failed for user {user.id}: {e}")
        raise HTTPException(status_code=502, detail="Unable to cancel subscription right now")

    if immediately:
        await downgrade_to_free(db, user.id)
    else:
        await db.subscriptions.update_one(
            {"user_id": user.id},
            {"$set": {"cancel_at_period_end": True, "updated_at": _now()}},
        )
    return await get_subscription(db, user.id)


def construct_event(payload: bytes, signature: str):
    require_payments()
    if not STRIPE_WEBHOOK_SECRET:
        raise HTTPException(status_code=503, detail="Stripe webhook secret is not configured")
    try:
        return stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError):
        raise ValidationError("Invalid webhook signature")


# Webhook event handlers
async def _find_by_stripe_subscription(db, stripe_subscription_id):
    if not stripe_subscription_id:
        return None
    return await db.subscriptions.find_one({"stripe_subscription_id": stripe_subscription_id}, {"_id": 0})


async def _checkout_completed(db, obj: Dict[str, Any]) -> None:
    metadata = obj.get("metadata") or {}
    user_id = metadata.get("user_id") or obj.get("client_reference_id")
    tier_name = metadata.get("tier")
    if not user_id or tier_name not in SubscriptionTier.__members__:
        logger.warning(f"Checkout session {obj.get('id')} is missing user or tier metadata")
        return
    tier = SubscriptionTier(tier_name)

    user = await db.users.find_one({"id": user_id}, {"_id": 0, "id": 1})
    if not user:
        raise NotFoundError("User not found", {"user_id": user_id})

    await db.subscriptions.update_one(
        {"user_id": user_id},
        {"$set": {
            "user_id": user_id,
            "plan_id": tier.value.lower(),
            "tier": tier.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "stripe_customer_id": obj.get("customer"),
            "stripe_subscription_id": obj.get("subscription"),
            "cancel_at_period_end": False,
            "updated_at": _now(),
        }},
        upsert=True,
    )
    await _set_user_plan(db, user_id, tier, SubscriptionStatus.ACTIVE)
    logger.info(f"User {user_id} upgraded to {tier.value}")


async def _subscription_updated(db, obj: Dict[str, Any]) -> None:
    subscription = await _find_by_stripe_subscription(db, obj.get("id"))
    if not subscription:
        logger.warning(f"Received update for unknown Stripe subscription {obj.get('id')}")
        return
    status = STRIPE_STATUSES.get(obj.get("status"), SubscriptionStatus(subscription["status"]))
    await db.subscriptions.update_one(
        {"user_id": subscription["user_id"]},
        {"$set": {
            "status": status.value,
            "current_period_end": _timestamp(obj.get("current_period_end")),
            "cancel_at_period_end": bool(obj.get("cancel_at_period_end")),
            "updated_at": _now(),
        }},
    )
    await _set_user_plan(db, subscription["user_id"], SubscriptionTier(subscription["tier"]), status)


async def _subscription_deleted(db, obj: Dict[str, Any]) -> None:
    subscription = await _find_by_stripe_subscription(db, obj.get("id"))
    if not subscription:
        logger.warning(f"Received deletion for unknown Stripe subscription {obj.get('id')}")
        return
    await downgrade_to_free(db, subscription["user_id"])


async def _payment_failed(db, obj: Dict[str, Any]) -> None:
    subscription = await _find_by_stripe_subscription(db, obj.get("subscription"))
    if not subscription:
        logger.warning(f"Payment failed for unknown Stripe subscription {obj.get('subscription')}")
        return
    await db.subscriptions.update_one(
        {"user_id": subscription["user_id"]},
        {"$set": {"status": SubscriptionStatus.PAST_DUE.value, "updated_at": _now()}},
    )
    await _set_user_plan(db, subscription["user_id"], SubscriptionTier(subscription["tier"]), SubscriptionStatus.PAST_DUE)
    logger.warning(f"Payment failed for user {subscription['user_id']}")


WEBHOOK_HANDLERS = {
    "checkout.session.completed": _checkout_completed,
    "customer.subscription.updated": _subscription_updated,
    "customer.subscription.deleted": _subscription_deleted,
    "invoice.payment_failed": _payment_failed,
}


async def handle_webhook_event(db, event) -> bool:
    event_type = event["type"]
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Ignoring Stripe event {event_type}")
        return False
    logger.info(f"Processing Stripe event {event_type} ({event.get('id')})")
    await handler(db, event["data"]["object"])
    return True
