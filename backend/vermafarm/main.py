import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from vermafarm.rate_limit import create_limiter, install_rate_limiting
from vermafarm.routers import auth, inventory, marketplace, service_requests
from vermafarm.services.service_request_store import service_request_store

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="VermaFarm API", version="0.1.0")
limiter = create_limiter()


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


cors_origins = _parse_csv_env("CORS_ORIGINS", "*")
allow_any_origin = len(cors_origins) == 1 and cors_origins[0] == "*"

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Browsers reject wildcard CORS with credentials enabled.
    allow_credentials=not allow_any_origin,
    allow_methods=["*"],
    allow_headers=["*"],
)

trusted_hosts = _parse_csv_env("TRUSTED_HOSTS", "*")
if not (len(trusted_hosts) == 1 and trusted_hosts[0] == "*"):
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

app.add_middleware(GZipMiddleware, minimum_size=1000)
# Only /api routes are limited; the root descriptor and health checks are exempt.
install_rate_limiting(app, limiter)

app.include_router(auth.router, prefix="/api/auth")
app.include_router(inventory.router, prefix="/api/inventory")
app.include_router(marketplace.router, prefix="/api/marketplace")
app.include_router(service_requests.router, prefix="/api/service-requests")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return JSONResponse(status_code=400, content={"success": False, "message": "; ".join(messages)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


@app.get("/")
@limiter.exempt
def root():
    return {
        "success": True,
        "message": "VermaFarm API",
        "version": app.version,
        "endpoints": {
            "auth": "/api/auth",
            "inventory": "/api/inventory",
            "marketplace": "/api/marketplace",
            "serviceRequests": "/api/service-requests",
        },
    }


@app.get("/health")
@limiter.exempt
def health():
    return {"status": "ok"}


@app.get("/ready")
@limiter.exempt
def ready():
    return {"status": "ready", "database": service_request_store.ping()}
