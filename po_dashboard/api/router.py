"""Top-level API router."""

from fastapi import APIRouter

from po_dashboard.api.routes.health import router as health_router
from po_dashboard.api.routes.purchase_orders import router as purchase_orders_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(purchase_orders_router)
