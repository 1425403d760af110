"""
FastAPI main application entry point.
"""
import logging
from urllib.parse import urlparse

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from code_deployer.api.v1.router import api_router
from code_deployer.core.config import settings
from code_deployer.core.database import check_database, engine
from code_deployer.core.event_handlers import register_all_handlers
from code_deployer.core.exception_handlers import register_exception_handlers
from code_deployer.schemas.deployment import Platform
from code_deployer.services.storage_service import artifact_storage

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Deployment API for publishing projects to Vercel and Netlify",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/openapi.json",
)

# Register domain exception handlers
register_exception_handlers(app)

# When allow_credentials=True, origins must be specific (not ["*"])
cors_origins = settings.get_cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "X-API-Key",
        "Accept",
        "Origin",
        "X-Requested-With",
    ],
    max_age=600,  # Cache preflight requests for 10 minutes
)


async def _broker_healthy() -> bool:
    import redis.asyncio as redis

    client = redis.from_url(settings.REDIS_URL, socket_timeout=5)
    try:
        await client.ping()
        return True
    except Exception as e:
        logger.warning(f"Broker check failed: {e}")
        return False
    finally:
        await client.aclose()


@app.on_event("startup")
async def startup_event():
    """
    Startup event handler.
    """
    register_all_handlers()

    if await check_database():
        logger.info("Database connection successful")
    else:
        logger.error("Database connection failed")

    if artifact_storage.is_available():
        logger.info(f"Artifact storage ready at {settings.ARTIFACT_STORAGE_PATH}")
    else:
        logger.warning(f"Artifact storage at {settings.ARTIFACT_STORAGE_PATH} is not writable")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Shutdown event handler.
    """
    await engine.dispose()
    logger.info("Application shutdown complete")


@app.get("/api/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status and component checks
    """
    db_healthy = await check_database()
    broker_healthy = await _broker_healthy()
    storage_healthy = artifact_storage.is_available()

    # Only DB is required for health; broker and storage are informational
    overall_status = "healthy" if db_healthy else "unhealthy"

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_status == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": overall_status,
            "components": {
                "database": "healthy" if db_healthy else "unhealthy",
                "broker": "healthy" if broker_healthy else "degraded",
                "storage": "healthy" if storage_healthy else "degraded",
            },
            "version": settings.APP_VERSION,
        }
    )


@app.get("/api/v1/info", status_code=status.HTTP_200_OK)
async def info():
    """
    API information endpoint.

    Returns:
        API version and system information
    """
    return {
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "api_version": "v1",
        "platforms": [p.value for p in Platform],
    }


# Include API v1 router
app.include_router(api_router, prefix="/api/v1")

# Stored archives are served under the path part of ARTIFACT_PUBLIC_BASE_URL
ARTIFACT_ROUTE_PREFIX = urlparse(settings.ARTIFACT_PUBLIC_BASE_URL).path.rstrip("/") or "/artifacts"


@app.get(ARTIFACT_ROUTE_PREFIX + "/{artifact_path:path}", tags=["artifacts"])
async def download_artifact(artifact_path: str):
    """
    Download an uploaded source archive.

    These are the URLs handed to the platform adapters as source_url, so
    they carry no owner credentials.

    Raises:
        ArtifactNotFoundError: If the file is missing or outside storage (404)
    """
    path = artifact_storage.open_artifact(artifact_path)
    return FileResponse(
        path=path,
        filename=path.name,
        media_type="application/zip",
    )


# Root endpoint
@app.get("/", status_code=status.HTTP_200_OK)
async def root():
    """
    Root endpoint.

    Returns:
        Welcome message with API documentation link
    """
    return {
        "message": "Code Deployer API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health",
    }
