import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from healthscan.api.backends import router as backends_router
from healthscan.api.predict import router as predict_router
from healthscan.core.config import Settings, get_settings
from healthscan.core.errors import HealthScanError
from healthscan.schemas.prediction import HealthCheckResponse
from healthscan.services.gateway import ClassifierGateway

logger = logging.getLogger(__name__)


def _register_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(HealthScanError)
    async def handle_health_scan_error(request: Request, exc: HealthScanError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.details)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc.details)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "details": exc.details},
        )

    @application.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": str(exc.errors())},
        )

    @application.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "details": None},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[ClassifierGateway] = None,
) -> FastAPI:
    """Application factory.

    Tests pass their own ``settings`` and a ``gateway`` wired to fake
    backends; production uses the cached settings and torch checkpoints.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    application = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        description=(
            "Relay between the health-scan mobile app and per-body-part image classifiers.\n\n"
            "⚠️ Outputs are wellness hints, not medical diagnoses."
        ),
    )
    application.state.settings = settings
    application.state.gateway = gateway or ClassifierGateway(settings)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(application)

    application.include_router(predict_router, prefix=settings.api_prefix)
    application.include_router(backends_router, prefix=settings.api_prefix)

    @application.get("/", response_model=HealthCheckResponse, tags=["health"])
    @application.get("/health", response_model=HealthCheckResponse, tags=["health"])
    def health_check() -> HealthCheckResponse:
        """Report process status and whether any classifier is loaded."""
        gateway_ = application.state.gateway
        return HealthCheckResponse(
            status="OK",
            message=f"{settings.app_name} is running (policy={gateway_.policy})",
            model_loaded=gateway_.model_loaded(),
        )

    logger.info(
        "Starting %s with fallback policy '%s' and models for: %s",
        settings.app_name,
        settings.fallback_policy,
        ", ".join(sorted(settings.model_dirs)) or "none",
    )
    return application


app = create_app()
