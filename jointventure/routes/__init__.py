# jointventure/routes/__init__.py
from fastapi import APIRouter
from jointventure.routes.auth import auth, profile
from jointventure.routes.trip import trip_routes, participants, chat
from jointventure.routes.dashboard import dashboard

api_router = APIRouter()

# Auth routes
api_router.include_router(auth.router)
api_router.include_router(profile.router)

# Trip routes
api_router.include_router(trip_routes.router)
api_router.include_router(participants.router)
api_router.include_router(chat.router)

# Dashboard
api_router.include_router(dashboard.router)
