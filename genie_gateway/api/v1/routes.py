"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter

from genie_gateway.api.v1.endpoints import (
    appointments,
    campaigns,
    functions,
    health,
    integrations,
    leads,
)

# Versioned REST API, mounted under /api/v1
api_router = APIRouter()
api_router.include_router(integrations.router)
api_router.include_router(campaigns.router)
api_router.include_router(leads.router)
api_router.include_router(appointments.router)

# Function-style routes the frontend calls at the root path
function_router = APIRouter()
function_router.include_router(health.router)
function_router.include_router(functions.router)
