"""Request middleware: request ids, access logging and error translation."""

import time
import uuid
from datetime import datetime
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import WorkflowEngineError, create_error_response, get_status_code_for_error
from .logging import get_logger, set_logging_context, clear_logging_context


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _internal_error_body(error: Exception, request_id: str) -> dict:
    return {
        "error": "InternalServerError",
        "message": "An unexpected error occurred",
        "details": {
            "error_type": type(error).__name__,
            "timestamp": datetime.utcnow().isoformat()
        },
        "request_id": request_id
    }


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and render escaped errors as JSON.

    Engine errors keep their mapped status code; anything else becomes a
    500 without leaking the exception text to the client.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()
        set_logging_context(request_id=request_id, route=route)

        try:
            response = await call_next(request)
            logger.info(f"{route} -> {response.status_code} in {time.perf_counter() - started:.3f}s")
        except WorkflowEngineError as e:
            logger.warning(f"{route} failed with {e.error_code}: {e.message}")
            body = create_error_response(e)
            body["request_id"] = request_id
            response = JSONResponse(status_code=get_status_code_for_error(e), content=body)
        except Exception as e:
            logger.error(f"{route} raised {type(e).__name__}", exc_info=True)
            response = JSONResponse(status_code=500, content=_internal_error_body(e, request_id))
        finally:
            clear_logging_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
