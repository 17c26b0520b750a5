"""
Gestionnaires d’exceptions utilisés par la factory.
- CheckoutError: corps JSON {"error": {kind, message, details}} avec le code HTTP de l'erreur.
- RequestValidationError: traduit en InvalidRequest (400) avec le détail par champ.
- HTTPException: corps JSON FastAPI standard.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from marketplace.errors import CheckoutError, InvalidRequest

logger = logging.getLogger(__name__)


def _error_response(exc: CheckoutError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
        else:
            logger.info("%s %s -> %s", request.method, request.url.path, exc.kind)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return _error_response(InvalidRequest("Requête invalide", details=details))

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
