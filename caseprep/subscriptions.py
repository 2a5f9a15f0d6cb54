from datetime import datetime, timedelta, timezone

from .config import RATE_LIMITS
from .errors import AuthorizationError, RateLimitError
from .models import (
    Subscription,
    SubscriptionLimits,
    SubscriptionPlan,
    SubscriptionStatus,
    SubscriptionTier,
    SubscriptionUsage,
    User,
)

PLANS = [
    SubscriptionPlan(
        id="free",
        name="Free",
        tier=SubscriptionTier.FREE,
        price_monthly=0,
        limits=SubscriptionLimits(**RATE_LIMITS["FREE"]),
        features=["Core practice drills", "Ecosystem simulation", "Rule-based feedback"],
    ),
    SubscriptionPlan(
        id="basic",
        name="Basic",
        tier=SubscriptionTier.BASIC,
        price_monthly=19,
        limits=SubscriptionLimits(**RATE_LIMITS["BASIC"]),
        features=["All drill types", "AI feedback", "Progress export"],
    ),
    SubscriptionPlan(
        id="premium",
        name="Premium",
        tier=SubscriptionTier.PREMIUM,
        price_monthly=39,
        limits=SubscriptionLimits(**RATE_LIMITS["PREMIUM"]),
        features=["Everything in Basic", "Highest daily limits", "Priority AI feedback"],
    ),
]

# Collections counted against each daily limit
USAGE_COLLECTIONS = {
    "drill_attempts_per_day": "drill_attempts",
    "simulation_attempts_per_day": "simulation_attempts",
}


def utc_day(now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d")


def seconds_until_reset(now: datetime = None) -> int:
    now = now or datetime.now(timezone.utc)
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, int((tomorrow - now).total_seconds()))


def get_plan(tier: SubscriptionTier) -> SubscriptionPlan:
    return next(p for p in PLANS if p.tier == tier)


def require_active_subscription(user: User) -> None:
    if user.subscription_status != SubscriptionStatus.ACTIVE:
        raise AuthorizationError(
            "Active subscription required",
            {"subscription_status": user.subscription_status.value},
        )


async def get_subscription(db, user_id: str) -> Subscription:
    document = await db.subscriptions.find_one({"user_id": user_id}, {"_id": 0})
    if document:
        return Subscription(**document)
    subscription = Subscription(user_id=user_id)
    await db.subscriptions.insert_one(subscription.model_dump(mode="json"))
    return subscription


async def count_attempts_today(db, limit_name: str, user_id: str, day: str = None) -> int:
    collection = getattr(db, USAGE_COLLECTIONS[limit_name])
    return await collection.count_documents({"user_id": user_id, "day": day or utc_day()})


async def get_usage(db, user: User) -> SubscriptionUsage:
    day = utc_day()
    return SubscriptionUsage(
        tier=user.subscription_tier,
        day=day,
        drill_attempts=await count_attempts_today(db, "drill_attempts_per_day", user.id, day),
        simulation_attempts=await count_attempts_today(db, "simulation_attempts_per_day", user.id, day),
        limits=get_plan(user.subscription_tier).limits,
    )


async def enforce_daily_limit(db, user: User, limit_name: str) -> None:
    limit = RATE_LIMITS[user.subscription_tier.value][limit_name]
    used = await count_attempts_today(db, limit_name, user.id)
    if used >= limit:
        raise RateLimitError(
            f"Daily limit of {limit} reached for the {user.subscription_tier.value} plan",
            retry_after=seconds_until_reset(),
            details={"limit": limit, "used": used, "tier": user.subscription_tier.value},
        )
