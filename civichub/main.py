"""
Civic Hub - FastAPI Application Entry Point

Citizens post civic problems; posts are classified into a department,
merged into existing open issues when they describe the same spot, and
rewarded with points and streaks.

DESIGN PRINCIPLES:
- AI classifies, it does not verify truth
- A post and its issue change commit together or not at all
- Gamification never blocks a post from being saved
"""

import logging
import sys
import traceback
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from civichub.core.exceptions import (
    IllegalStatusTransition,
    IssueNotFound,
    StoreReadFailure,
    StoreWriteFailure,
)
from civichub.core.settings import settings
from civichub.config.firebase import initialize_firestore
from civichub.routes import departments, health, issues, posts, sticks


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Civic issue reporting with duplicate merging and gamified streaks",
    debug=settings.DEBUG
)


@app.exception_handler(IllegalStatusTransition)
async def illegal_transition_handler(request: Request, exc: IllegalStatusTransition):
    logger.warning(f"Rejected status change on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "current_status": exc.current_status,
            "allowed_transitions": exc.allowed,
        }
    )


@app.exception_handler(IssueNotFound)
async def issue_not_found_handler(request: Request, exc: IssueNotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)}
    )


@app.exception_handler(StoreReadFailure)
@app.exception_handler(StoreWriteFailure)
async def store_failure_handler(request: Request, exc: Exception):
    logger.error(f"🔥 Store failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": f"Database unavailable: {str(exc)}"}
    )


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write(traceback.format_exc())
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError):
    """Validation errors with the raw exception objects (ctx) dropped."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


# CORS origins come from settings; keep the list explicit in production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
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
    print(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        initialize_firestore()
    except Exception as e:
        print(f"Warning: Firestore initialization failed: {e}")
        print("   The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    print(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(posts.router)
app.include_router(issues.router)
app.include_router(sticks.router)
app.include_router(departments.router)


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
        "health": "/health",
        "leaderboard": "/leaderboard"
    }
