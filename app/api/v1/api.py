# app/api/v1/api.py
from fastapi import APIRouter

from app.api.v1.endpoints import dashboard, items, loans, profiles, verification

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(profiles.router, prefix="/profiles")
api_router_v1.include_router(verification.router, prefix="/verification")
api_router_v1.include_router(items.router, prefix="/items")
api_router_v1.include_router(loans.router, prefix="/loans")
api_router_v1.include_router(dashboard.router, prefix="/dashboard")
