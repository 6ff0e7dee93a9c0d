"""API v1 routes."""

from fastapi import APIRouter

from bastion.api.v1 import evidence, health, incidents, poam, policies

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(evidence.router, prefix="/evidence", tags=["evidence"])
router.include_router(policies.router, prefix="/policies", tags=["policies"])
router.include_router(poam.router, prefix="/poam", tags=["poam"])
router.include_router(incidents.router, prefix="/incidents", tags=["incidents"])
