import logging
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware

from .cache import get_cache
from .config import CORS_ORIGINS
from .database import client
from .errors import register_error_handlers
from .llm import get_llm
from .payments import payments_enabled
from .routes import api_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app without a prefix
app = FastAPI(title="Case Prep API")

register_error_handlers(app)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@api_router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "cache": get_cache().client is not None,
            "openai": get_llm().enabled,
            "payments": payments_enabled(),
        },
    }


# Include the router in the main app
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
async def shutdown_db_client():
    client.close()
