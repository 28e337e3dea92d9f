from fastapi import APIRouter
from kitchen_oms.routes.app.orders import app_router as orders_router
from kitchen_oms.routes.app.payments import payment_router

app_router = APIRouter(tags=["app"])
app_router.include_router(orders_router)
app_router.include_router(payment_router)
