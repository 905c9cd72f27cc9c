"""
Temple Community Hub - FastAPI Application Entry Point

Backend for a temple youth community: accounts with OTP activation, role
management, outreach contacts, programs and sessions, attendance, and
volunteer follow-up call lists.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from temple_hub.core.errors import TempleHubError
from temple_hub.core.settings import settings
from temple_hub.config.firebase import initialize_firestore
from temple_hub.routes import attendance, auth, followups, health, outreach, programs, roles, users


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Community backend for temple youth programs",
    debug=settings.DEBUG
)


@app.exception_handler(TempleHubError)
async def domain_exception_handler(request: Request, exc: TempleHubError):
    """Domain errors carry their own status code and message."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message} ({exc.details})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters are plain 400s."""
    errors = exc.errors()
    logger.info(f"Validation error on {request.method} {request.url.path}: {errors}")
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in errors
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": details}
    )


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions with full traceback."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    content = {"error": "Internal server error"}
    if settings.DEBUG:
        content["details"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


# Origins come from CORS_ORIGINS; credentials are needed for the auth cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: Firestore connection
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    try:
        initialize_firestore()
    except RuntimeError as e:
        logger.warning(f"Firestore initialization failed: {e}")
        logger.warning("The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(roles.router)
app.include_router(users.router)
app.include_router(outreach.router)
app.include_router(followups.router)
app.include_router(programs.router)
app.include_router(attendance.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }
