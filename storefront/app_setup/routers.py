"""
Registre central des routers.
- API v1: panier, checkout/commandes, paiements (confirmation + webhook)
- Admin: commandes
- Health: health_router
"""
from fastapi import FastAPI

from storefront.admin.views import router as admin_router
from storefront.cart import views as cart_views
from storefront.health.router import router as health_router
from storefront.orders import views as orders_views
from storefront.payments import views as payments_views


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(cart_views.router)
    app.include_router(orders_views.router)
    app.include_router(payments_views.router)
    # Admin
    app.include_router(admin_router)
    # Health & monitoring
    app.include_router(health_router)
