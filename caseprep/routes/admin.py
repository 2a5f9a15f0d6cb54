import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from ..cache import Cache, get_cache
from ..config import ADMIN_TOKEN
from ..database import get_db
from ..drills.catalog import DRILLS
from ..errors import AuthenticationError, AuthorizationError
from ..models import Drill

logger = logging.getLogger(__name__)


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    if not ADMIN_TOKEN:
        raise AuthorizationError("Admin endpoints are disabled")
    if not x_admin_token:
        raise AuthenticationError("Admin token required")
    if not hmac.compare_digest(x_admin_token, ADMIN_TOKEN):
        raise AuthorizationError("Invalid admin token")


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/init-drills")
async def initialize_drills(db=Depends(get_db), cache: Cache = Depends(get_cache)):
    """Insert or refresh the starter drills"""
    for data in DRILLS:
        drill = Drill(**data)
        await db.drills.replace_one({"id": drill.id}, drill.model_dump(mode="json"), upsert=True)
        await cache.delete(f"drill:{drill.id}")

    logger.info(f"Seeded {len(DRILLS)} drills")
    return {"message": f"Initialized {len(DRILLS)} drills successfully"}
