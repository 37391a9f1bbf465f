"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.admin import router as admin_router
from api.v1.product_votes import router as product_votes_router

router = APIRouter()

router.include_router(product_votes_router, prefix="/product-votes", tags=["Product Votes"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
