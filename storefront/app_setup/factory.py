"""
Factory d'application pour les entrypoints (storefront.asgi, python -m storefront).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI

from storefront.utils.logging import configure_logging
from .exceptions import register_exception_handlers
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_no_cache_middleware, register_security_middleware
from .routers import register_routers


def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - journalisation (filtre de masquage des secrets)
      - middlewares de base, sécurité, no-cache
      - gestionnaires d'exceptions
      - tous les routers (web, API, staff, health)
    """
    configure_logging()
    app = FastAPI(title="Storefront", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
