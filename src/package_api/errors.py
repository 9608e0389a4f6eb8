from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class LogRequestFailuresMiddleware(BaseHTTPMiddleware):
    """Log every response with a status code of 400 or higher as a warning."""

    async def dispatch(self, request, call_next):
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Request {} {} failed with exception", request.method, request.url)
            raise

        if response.status_code >= 400:
            logger.warning(
                "Request {} {} failed with status {}",
                request.method,
                request.url,
                response.status_code,
            )
        return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Request {} failed with model state: {}", request.url, exc.errors())
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def install_error_handling(app: FastAPI) -> None:
    app.add_middleware(LogRequestFailuresMiddleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
