# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from app.api.v1 import admin, organization_analytics

api_router = APIRouter()

# Platform-wide analytics
api_router.include_router(admin.router)
# Organization dashboards and reports
api_router.include_router(organization_analytics.router)
