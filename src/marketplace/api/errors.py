"""HTTP mapping for marketplace errors.

Protean's handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404); the marketplace kinds that need a different
status code are registered on top, and FastAPI picks the most specific
handler for each exception.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from marketplace.errors import Conflict, Forbidden, OrderExpired

_STATUS_CODES = {
    Forbidden: 403,
    Conflict: 409,
    OrderExpired: 409,
}


def register_exception_handlers(app: FastAPI) -> None:
    register_protean_handlers(app)

    for exc_class, status_code in _STATUS_CODES.items():

        async def handler(request: Request, exc, status_code=status_code):  # noqa: ARG001
            return JSONResponse(status_code=status_code, content={"error": exc.messages})

        app.add_exception_handler(exc_class, handler)
