from fastapi import APIRouter

from . import admin, auth, drills, feedback, simulations, subscriptions, users

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")

for module in (auth, users, drills, simulations, feedback, subscriptions, admin):
    api_router.include_router(module.router)
