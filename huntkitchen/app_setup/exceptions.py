"""
Gestionnaires d'exceptions utilisés par la factory.
Toutes les erreurs sortent au format {"success": false, "error": "...", "code": "...", "details"?}.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from huntkitchen.errors import ShopError

logger = logging.getLogger(__name__)

HTTP_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}

def register_exception_handlers(app: FastAPI) -> None:
    """
    Enregistre les handlers:
    - ShopError: statut et code portés par l'exception métier
    - RequestValidationError: 400 VALIDATION_ERROR avec le détail des champs (pydantic)
    - HTTPException: statut conservé, code déduit du statut
    - Exception: 500 INTERNAL_ERROR, trace uniquement côté serveur
    """
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        content = {
            "success": False,
            "error": "Invalid request",
            "code": "VALIDATION_ERROR",
            "details": jsonable_encoder(exc.errors()),
        }
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        content = {
            "success": False,
            "error": str(exc.detail),
            "code": HTTP_CODES.get(exc.status_code, "HTTP_ERROR"),
        }
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
        return JSONResponse(status_code=500, content=content)
