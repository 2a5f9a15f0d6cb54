import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends

from ..auth import get_current_user, get_password_hash, token_for_user, verify_password
from ..database import get_db
from ..errors import AuthenticationError, ValidationError
from ..models import Token, User, UserCreate, UserLogin, UserPublic
from ..notifications import send_welcome_email
from ..subscriptions import get_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def to_public(user: User) -> UserPublic:
    return UserPublic(**user.model_dump(exclude={"hashed_password", "updated_at"}))


@router.post("/register", response_model=Token)
async def register(user_data: UserCreate, background_tasks: BackgroundTasks, db=Depends(get_db)):
    # Check if user exists
    existing_user = await db.users.find_one({"email": user_data.email})
    if existing_user:
        raise ValidationError("Email already registered", {"email": user_data.email})

    # Create user on the FREE plan
    user = User(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        profile=user_data.profile,
    )
    await db.users.insert_one(user.model_dump(mode="json"))
    await get_subscription(db, user.id)
    logger.info(f"Registered user {user.id}")

    background_tasks.add_task(send_welcome_email, user.email, user.profile.first_name)

    return token_for_user(user.id)


@router.post("/login", response_model=Token)
async def login(user_data: UserLogin, db=Depends(get_db)):
    user = await db.users.find_one({"email": user_data.email})
    if not user or not verify_password(user_data.password, user["hashed_password"]):
        raise AuthenticationError("Incorrect email or password")

    await db.users.update_one(
        {"id": user["id"]},
        {"$set": {"last_login_at": datetime.now(timezone.utc).isoformat()}},
    )
    return token_for_user(user["id"])


@router.post("/refresh", response_model=Token)
async def refresh_token(current_user: User = Depends(get_current_user)):
    return token_for_user(current_user.id)


@router.get("/me", response_model=UserPublic)
async def get_current_user_profile(current_user: User = Depends(get_current_user)):
    return to_public(current_user)
