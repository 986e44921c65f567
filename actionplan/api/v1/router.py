"""API v1 router aggregating all endpoint routers."""

from fastapi import APIRouter

from actionplan.api.v1.endpoints import action_plans, checklists, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(action_plans.router, prefix="/documents", tags=["Action Plans"])
api_router.include_router(checklists.router, prefix="/checklists", tags=["Checklists"])
