"""
AstraSemi Assistant API
=======================

FastAPI app for the semiconductor operations assistant.

Core Endpoints:
- POST /api/auth/login    - Username/password login, sets the session cookie
- POST /api/auth/logout   - Revoke sessions, clear the cookie
- GET  /api/auth/me       - Authoritative session check
- GET  /api/session       - Lightweight (cookie-only) session check
- GET  /health            - Health check

Routers (all under /api):
- roles & tasks, briefing, community, admin, password reset, module1-4

Run with:
    uvicorn astrasemi.api:app --host 0.0.0.0 --port 8000
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings, get_llm_mode, get_cors_origins
from .schemas import HealthResponse, LoginRequest, LoginResponse
from .errors import AppError
from .db.session import init_db
from .auth import (
    SessionPayload,
    get_auth_service,
    get_db_dependency,
    get_session_payload,
    create_session_token,
    set_session_cookie,
    clear_session_cookie,
)
from .llm_client import get_llm_client
from .middleware import PageGuardMiddleware, SecurityHeadersMiddleware
from .seed import seed_demo_data
from .api_admin import router as admin_router
from .api_analysis import router as analysis_router
from .api_briefing import router as briefing_router
from .api_community import router as community_router
from .api_password import router as password_router
from .api_tasks import router as tasks_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="AstraSemi Assistant",
    description="Daily briefings, task tracking, community Q&A and document helpers for semiconductor staff",
    version=get_settings().service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Last added runs first: CORS wraps the security headers, which wrap the page guard
app.add_middleware(PageGuardMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

CORS_ALLOW_ORIGINS = get_cors_origins()
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(tasks_router, prefix="/api")
app.include_router(briefing_router, prefix="/api")
app.include_router(community_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(password_router, prefix="/api")
app.include_router(analysis_router, prefix="/api")


def _is_api_request(request: Request) -> bool:
    return request.url.path.startswith("/api")


# =============================================================================
# Lifecycle
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Log configuration, create tables and seed demo data"""
    settings = get_settings()
    logger.info(f"Starting AstraSemi Assistant v{settings.service_version}")
    logger.info(f"LLM Mode: {get_llm_mode().value}")

    for warning in settings.validate_llm_config():
        logger.warning(f"Config: {warning}")

    init_db()
    logger.info("Database tables ensured")

    if settings.seed_demo_data:
        seed_demo_data()


@app.on_event("shutdown")
async def shutdown_event():
    """Release the LLM HTTP client"""
    await get_llm_client().close()


# =============================================================================
# Health
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        llm_mode=get_llm_mode(),
        timestamp=datetime.now()
    )


# =============================================================================
# Auth
# =============================================================================

@app.post("/api/auth/login", tags=["Auth"], response_model=LoginResponse)
async def login(request: LoginRequest, response: Response, db: Session = Depends(get_db_dependency)):
    """
    Login with username and password.
    Sets the session cookie; unknown, inactive and wrong-password logins
    all get the same 401.
    """
    if not request.username or not request.username.strip() or not request.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    auth_service = get_auth_service(db)
    user = auth_service.authenticate(request.username, request.password)
    if not user:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    session_token = auth_service.create_session(user)
    set_session_cookie(response, create_session_token(user.username, user.role.value, session_token))
    logger.info(f"User {user.id} logged in")

    return LoginResponse(id=user.id, username=user.username, role=user.role.value.lower())


@app.post("/api/auth/logout", tags=["Auth"])
async def logout(
    response: Response,
    payload: Optional[SessionPayload] = Depends(get_session_payload),
    db: Session = Depends(get_db_dependency),
):
    """Revoke every session of the caller (if the cookie verifies) and clear the cookie"""
    if payload:
        auth_service = get_auth_service(db)
        auth = auth_service.resolve(payload)
        if auth:
            auth_service.revoke_sessions(auth.user_id)
    clear_session_cookie(response)
    return {"success": True}


@app.get("/api/auth/me", tags=["Auth"])
async def me(
    payload: Optional[SessionPayload] = Depends(get_session_payload),
    db: Session = Depends(get_db_dependency),
):
    """Authoritative check: user exists, is active, and the session is live"""
    auth = get_auth_service(db).resolve(payload)
    if not auth:
        return JSONResponse(status_code=401, content={"authenticated": False})
    return {
        "authenticated": True,
        "id": auth.user_id,
        "username": auth.username,
        "role": auth.role.value.lower(),
        "reputation": auth.reputation,
    }


@app.get("/api/session", tags=["Auth"])
async def session_status(payload: Optional[SessionPayload] = Depends(get_session_payload)):
    """Cookie-only check, no database round-trip"""
    if not payload:
        return JSONResponse(status_code=401, content={"authenticated": False})
    return {"authenticated": True, "username": payload.username, "role": payload.role}


# =============================================================================
# Error handlers
# =============================================================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def api_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """`{"error": ...}` bodies for /api endpoints"""
    if not _is_api_request(request):
        return await http_exception_handler(request, exc)
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "Request failed"
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are plain 400s; inputs are not echoed back"""
    errors = exc.errors()
    field = None
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        field = ".".join(loc) or None
    message = f"Invalid value for {field}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.exception("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# Frontend build (optional)
# =============================================================================

_frontend_dir = get_settings().frontend_dir
if _frontend_dir and (Path(_frontend_dir) / "index.html").exists():
    app.mount("/", StaticFiles(directory=_frontend_dir, html=True), name="frontend")
    logger.info(f"Serving frontend build from {_frontend_dir}")
elif _frontend_dir:
    logger.warning(f"FRONTEND_DIR={_frontend_dir} has no index.html, frontend not served")
