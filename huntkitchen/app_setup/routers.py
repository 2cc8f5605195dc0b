"""
Registre central des routers (API v1 + health).
- API v1: cart, checkout, orders, webhooks
- Health: health_router
"""
from fastapi import FastAPI
from huntkitchen.cart import views as cart_views
from huntkitchen.checkout import views as checkout_views
from huntkitchen.orders import views as orders_views
from huntkitchen.webhooks import views as webhooks_views
from huntkitchen.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    - L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(cart_views.router)
    app.include_router(checkout_views.router)
    app.include_router(orders_views.router)
    app.include_router(webhooks_views.router)
    # Health & monitoring
    app.include_router(health_router)
