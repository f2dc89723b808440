from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import asyncio
import time

from . import __version__
from .api import environments, projects
from .api.errors import register_exception_handlers
from .config import settings
from .database import init_db
from .exceptions import DriverError
from .services import EnvironmentService, EnvironmentStore, PodmanService
from .utils import setup_logger

logger = setup_logger(__name__)

# Per-request budgets, in seconds, enforced by the timeout middleware
REQUEST_TIMEOUT = 30
CREATE_TIMEOUT = 120  # Image pulls on first create
EXEC_TIMEOUT = 300  # Commands inside sandboxes may run long


def build_environment_service() -> EnvironmentService:
    config = settings.podman_config()
    return EnvironmentService(
        store=EnvironmentStore(),
        driver=PodmanService(config),
        config=config
    )


def create_app(environment_service: Optional[EnvironmentService] = None) -> FastAPI:
    """Build the API. Without an injected service, tables are created at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = environment_service
        if service is None:
            init_db()
            service = build_environment_service()
        app.state.environment_service = service

        # The daemon still serves records when the runtime is missing
        try:
            version = await service.driver.probe()
            logger.info(f"Container runtime available: {version}")
        except DriverError as e:
            logger.warning(f"Container runtime unavailable, lifecycle calls will fail: {e}")

        yield

    app = FastAPI(
        title="BotGlue Daemon API",
        description="Per-branch development sandboxes backed by containers",
        version=__version__,
        lifespan=lifespan
    )

    # Custom middleware to add request timeouts
    @app.middleware("http")
    async def timeout_middleware(request: Request, call_next):
        timeout_seconds = REQUEST_TIMEOUT

        if request.url.path.endswith("/exec"):
            timeout_seconds = EXEC_TIMEOUT
        elif request.method == "POST" and request.url.path.rstrip("/") == "/api/environments":
            timeout_seconds = CREATE_TIMEOUT

        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                call_next(request),
                timeout=timeout_seconds
            )

            process_time = time.time() - start_time
            response.headers["X-Process-Time"] = str(process_time)

            return response

        except asyncio.TimeoutError:
            return JSONResponse(
                status_code=408,
                content={
                    "detail": f"Request timed out after {timeout_seconds} seconds",
                    "timeout": timeout_seconds,
                    "path": str(request.url.path)
                }
            )
        except Exception as e:
            logger.exception(f"Unhandled error on {request.url.path}")
            return JSONResponse(
                status_code=500,
                content={
                    "detail": f"Internal server error: {str(e)}",
                    "path": str(request.url.path)
                }
            )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
    app.include_router(environments.router, prefix="/api/environments", tags=["environments"])

    @app.get("/api/health")
    async def health_check(request: Request):
        runtime = None
        try:
            runtime = await request.app.state.environment_service.driver.probe()
        except DriverError as e:
            logger.debug(f"Runtime probe failed during health check: {e}")
        return {"status": "ok", "version": __version__, "runtime": runtime}

    return app


app = create_app()
