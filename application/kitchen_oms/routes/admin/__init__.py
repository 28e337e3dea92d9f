from fastapi import APIRouter
from kitchen_oms.routes.admin.orders import admin_orders_router
from kitchen_oms.routes.admin.invoices import admin_invoices_router

admin_router = APIRouter(tags=["admin"])
admin_router.include_router(admin_orders_router)
admin_router.include_router(admin_invoices_router)
