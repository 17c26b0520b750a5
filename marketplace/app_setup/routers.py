"""
Registre central des routers.
- API v1: checkout, fees, payments (webhook)
- Health: health_router
"""
from fastapi import FastAPI
from marketplace.checkout import views as checkout_views
from marketplace.fees import views as fees_views
from marketplace.payments import views as payments_views
from marketplace.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(checkout_views.router)
    app.include_router(fees_views.router)
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
