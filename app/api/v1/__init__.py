"""
API v1 Router

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import admin, orders, otp, receipts

router = APIRouter()

# Email verification
router.include_router(otp.router)

# Order placement
router.include_router(orders.router)

# Receipt upload
router.include_router(receipts.router)

# Administration
router.include_router(admin.router)
