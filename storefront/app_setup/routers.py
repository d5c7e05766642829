"""
Registre central des routers.
- Web: auth_web_router, orders_web_router, payments_web_router
- API v1: auth_api_router, cart, orders, payments (webhook)
- Staff: partners_router, admin_router
- Health: health_router
"""
from fastapi import FastAPI

from storefront.admin.views import api_router as admin_api_router, router as admin_router
from storefront.auth.views import api_router as auth_api_router, web_router as auth_web_router
from storefront.cart.views import router as cart_router
from storefront.health.router import router as health_router
from storefront.orders.views import api_router as orders_api_router, web_router as orders_web_router
from storefront.partners.views import router as partners_router
from storefront.payments.views import api_router as payments_api_router, web_router as payments_web_router


def register_routers(app: FastAPI) -> None:
    # Pages web (HTML)
    app.include_router(auth_web_router)
    app.include_router(orders_web_router)
    app.include_router(payments_web_router)
    # API v1
    app.include_router(auth_api_router)
    app.include_router(cart_router)
    app.include_router(orders_api_router)
    app.include_router(payments_api_router)
    # Espaces internes
    app.include_router(partners_router)
    app.include_router(admin_router)
    app.include_router(admin_api_router)
    # Health & monitoring
    app.include_router(health_router)
