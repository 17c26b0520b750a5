"""
Factory d’application pour les entrypoints (ex: marketplace.asgi).
Ordonne les étapes d’initialisation de manière lisible et testable.
"""
import logging
import os
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_headers_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    """
    Construit l’app FastAPI avec le lifespan et enregistre:
      - middlewares de base et en-têtes de sécurité
      - gestionnaires d’exceptions (erreurs typées du checkout)
      - tous les routers (checkout, fees, payments, health)
    """
    configure_logging()
    app = FastAPI(title="Marketplace Checkout", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_headers_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
