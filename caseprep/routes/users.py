from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..cache import Cache, get_cache
from ..config import CACHE_TTL
from ..database import get_db
from ..errors import AuthorizationError
from ..models import FileDownload, ProfileUpdate, User, UserProgress, UserPublic, UserSettings
from ..progress import export_progress_csv, load_attempts, summarize_progress
from .auth import to_public

router = APIRouter(prefix="/users", tags=["users"])


def _require_self(user_id: str, current_user: User) -> None:
    if user_id != current_user.id:
        raise AuthorizationError("You can only access your own account")


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, current_user: User = Depends(get_current_user)):
    _require_self(user_id, current_user)
    return to_public(current_user)


@router.put("/{user_id}/profile", response_model=UserPublic)
async def update_profile(
    user_id: str,
    update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    _require_self(user_id, current_user)

    profile = current_user.profile.model_copy(update=update.model_dump(exclude_unset=True))
    now = datetime.now(timezone.utc)
    await db.users.update_one(
        {"id": current_user.id},
        {"$set": {"profile": profile.model_dump(mode="json"), "updated_at": now.isoformat()}},
    )
    current_user.profile = profile
    current_user.updated_at = now
    return to_public(current_user)


@router.get("/{user_id}/settings", response_model=UserSettings)
async def get_settings(user_id: str, current_user: User = Depends(get_current_user)):
    _require_self(user_id, current_user)
    return current_user.settings


@router.put("/{user_id}/settings", response_model=UserSettings)
async def update_settings(
    user_id: str,
    settings: UserSettings,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    _require_self(user_id, current_user)
    await db.users.update_one(
        {"id": current_user.id},
        {"$set": {
            "settings": settings.model_dump(mode="json"),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }},
    )
    return settings


@router.get("/{user_id}/progress", response_model=UserProgress)
async def get_progress(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    _require_self(user_id, current_user)

    cache_key = f"progress:{user_id}"
    cached = await cache.get_json(cache_key)
    if cached:
        return UserProgress(**cached)

    drills, simulations = await load_attempts(db, user_id)
    progress = summarize_progress(user_id, drills, simulations)
    await cache.set_json(cache_key, progress.model_dump(mode="json"), CACHE_TTL["user"])
    return progress


@router.get("/{user_id}/progress/export", response_model=FileDownload)
async def export_progress(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    """Download finished drill and simulation attempts as CSV"""
    _require_self(user_id, current_user)
    drills, simulations = await load_attempts(db, user_id)
    return export_progress_csv(user_id, drills, simulations)
