"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from eventhub.api.routes import auth, events, files, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(files.router)
api_router.include_router(users.router)
