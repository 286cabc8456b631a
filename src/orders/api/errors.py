"""HTTP mapping for the fulfillment error family."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from orders.order.errors import FulfillmentError

logger = structlog.get_logger(__name__)


def register_fulfillment_error_handlers(app: FastAPI) -> None:
    """Render every ``FulfillmentError`` with the status code it carries."""

    @app.exception_handler(FulfillmentError)
    async def _handle_fulfillment_error(request: Request, exc: FulfillmentError) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            error=type(exc).__name__,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
