from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from vermafarm.config import positive_int_env

RATE_LIMIT_WINDOW_MS = positive_int_env("RATE_LIMIT_WINDOW_MS", 15 * 60 * 1000)
RATE_LIMIT_MAX_REQUESTS = positive_int_env("RATE_LIMIT_MAX_REQUESTS", 100)


def rate_limit_string(max_requests: int, window_ms: int) -> str:
    window_seconds = max(1, window_ms // 1000)
    return f"{max_requests} per {window_seconds} second"


def create_limiter(max_requests: int = RATE_LIMIT_MAX_REQUESTS, window_ms: int = RATE_LIMIT_WINDOW_MS) -> Limiter:
    """Per-client-address limiter applied to every route not marked exempt."""
    return Limiter(key_func=get_remote_address, default_limits=[rate_limit_string(max_requests, window_ms)])


# The middleware calls this handler without awaiting it, so it must stay synchronous.
def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": "Too many requests, please try again later."},
    )


def install_rate_limiting(app: FastAPI, limiter: Limiter) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
