"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from coworking.api.routes import availability, reservations, orders, admin

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(availability.router)
api_router.include_router(reservations.router)
api_router.include_router(orders.router)
api_router.include_router(admin.router)
