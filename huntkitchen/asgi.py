"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `huntkitchen.asgi:app`.
- Toute la configuration FastAPI est centralisée dans huntkitchen.app_setup.factory.
"""

from huntkitchen.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "huntkitchen.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
