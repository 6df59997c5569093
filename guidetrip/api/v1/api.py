from fastapi import APIRouter
from guidetrip.api.v1.routes.orders import router as orders_router
from guidetrip.api.v1.routes.overtime import router as overtime_router
from guidetrip.api.v1.routes.admin import router as admin_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(orders_router)
api_router.include_router(overtime_router)
api_router.include_router(admin_router)
