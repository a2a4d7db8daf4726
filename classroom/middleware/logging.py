import logging
import os
import sys
import time
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from classroom.config import settings

# Paths that are never worth a log line
QUIET_PATHS = ("/api/docs", "/api/openapi.json")

# Long-poll requests are slow on purpose
LONG_POLL_SUFFIX = "/attendance/live"

def setup_logging():
    """Configure application logging."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        os.makedirs(Path(settings.LOG_FILE).parent, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )

    # Libraries that chatter at INFO
    for name in ("uvicorn", "sqlalchemy", "alembic", "aiosqlite"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    logger = logging.getLogger("classroom")
    logger.setLevel(log_level)

    return logger

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request with a request id, echoed back in X-Request-ID.

    Requests slower than SLOW_REQUEST_SECONDS are logged as warnings, except
    attendance long-polls which are expected to hang around.
    """

    def __init__(self, app: ASGIApp, slow_after: Optional[float] = None):
        super().__init__(app)
        self.logger = logging.getLogger("classroom.request")
        self.slow_after = slow_after if slow_after is not None else settings.SLOW_REQUEST_SECONDS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PATHS):
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        client = request.client.host if request.client else "unknown"
        start_time = time.perf_counter()

        self.logger.debug(f"Request started: {request.method} {path} [client: {client}] [request_id: {request_id}]")

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                f"Request failed: {request.method} {path} "
                f"[error: {str(e)}] [request_id: {request_id}]",
                exc_info=True
            )
            raise

        duration = time.perf_counter() - start_time
        level = logging.INFO
        if duration > self.slow_after and not path.endswith(LONG_POLL_SUFFIX):
            level = logging.WARNING
        self.logger.log(
            level,
            f"{request.method} {path} [status: {response.status_code}] "
            f"[duration: {duration:.3f}s] [client: {client}] [request_id: {request_id}]"
        )

        response.headers["X-Request-ID"] = request_id
        return response

def add_logging_middleware(app: FastAPI):
    """Add request logging middleware to the FastAPI app."""
    app.add_middleware(RequestLoggingMiddleware)
