from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.schemas.responses import ErrorResponse
from core.logging import get_error_logger_safe

logger = get_error_logger_safe("api.middleware.error_handling")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns anything the routers and exception handlers let through into an opaque 500"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", None)
            logger.error(
                "Unhandled API exception",
                path=request.url.path,
                method=request.method,
                request_id=request_id,
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            body = ErrorResponse(
                error="Internal server error",
                details={"path": request.url.path, "request_id": request_id},
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
