from fastapi import APIRouter
from cyclebees.api.endpoints import (
    auth,
    coupon,
    repair,
    rental,
    contact,
    promotional,
    notifications,
    dashboard,
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(coupon.router, prefix="/coupon", tags=["coupons"])
api_router.include_router(repair.router, prefix="/repair", tags=["repair"])
api_router.include_router(rental.router, prefix="/rental", tags=["rental"])
api_router.include_router(contact.router, prefix="/contact", tags=["contact"])
api_router.include_router(promotional.router, prefix="/promotional", tags=["promotional"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
