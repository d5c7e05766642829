"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

En production, un process manager importe `storefront.asgi:app`
(ex: gunicorn -k uvicorn.workers.UvicornWorker storefront.asgi:app).
"""

from storefront.app import app

__all__ = ["app"]
