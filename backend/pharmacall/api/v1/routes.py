"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from pharmacall.api.v1.endpoints import (
    calls,
    console,
    presence,
    webhooks,
)

api_router = APIRouter()

# Caller app (bearer token)
api_router.include_router(calls.router)
api_router.include_router(presence.router)

# Telephony provider callbacks
api_router.include_router(webhooks.router)

# Pharmacist console (HTTP Basic)
api_router.include_router(console.router)
