"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `marketplace.asgi:app`.
- Toute la configuration FastAPI est centralisée dans marketplace.app_setup.factory.
"""

from marketplace.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "marketplace.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
