"""Middleware configuration for FastAPI application"""
import logging
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import security_logger
from app.core.security import (
    SESSION_COOKIE, get_allowed_origins, get_client_identifier, check_rate_limit,
    validate_origin_referer, log_api_access, get_cookie_domain
)
from app.db.redis import get_or_create_csrf_token

logger = logging.getLogger(__name__)

PUBLIC_ENDPOINTS = {
    "/api/auth/csrf",
    "/api/auth/register",
    "/api/auth/login",
    "/api/auth/logout",
    "/api/auth/me",
    "/metrics",
    "/health",
}


def setup_cors_middleware(app):
    """Setup CORS middleware for FastAPI app"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content={"error": message})
    origin = request.headers.get("Origin")
    if origin and origin in get_allowed_origins():
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


async def security_middleware(request: Request, call_next):
    """Middleware for security checks and API access logging"""
    session_id = None
    status_code = 500
    error = None

    try:
        path = request.url.path
        is_public_endpoint = path in PUBLIC_ENDPOINTS
        session_id = request.cookies.get(SESSION_COOKIE)

        # Rate limiting
        identifier = get_client_identifier(request, session_id)
        is_state_changing = request.method in ["POST", "PATCH", "DELETE", "PUT"]
        if not check_rate_limit(identifier, strict=is_state_changing):
            status_code = 429
            error = "Rate limit exceeded"
            security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {path}")
            return _error_response(request, 429, "Rate limit exceeded. Please try again later.")

        # Origin/Referer validation
        if not is_public_endpoint and request.method != "OPTIONS" and (request.method != "GET" or settings.ENVIRONMENT == "production"):
            if not validate_origin_referer(request):
                status_code = 403
                error = "Invalid origin or referer"
                security_logger.warning(f"Origin/Referer validation failed - Path: {path}")
                return _error_response(request, 403, "Invalid origin or referer")

        # Process request
        response = await call_next(request)
        status_code = response.status_code

        # Hand the CSRF token back on every successful response of a live session
        if session_id and status_code < 400 and path != "/api/auth/logout":
            csrf_token = get_or_create_csrf_token(session_id)
            response.headers["X-CSRF-Token"] = csrf_token
            # Non-HttpOnly cookie so the frontend can read it
            response.set_cookie(
                key="csrf_token_client",
                value=csrf_token,
                domain=get_cookie_domain(request),
                httponly=False,
                secure=settings.ENVIRONMENT == "production",
                samesite="lax",
                path="/"
            )

        return response

    except Exception as e:
        error = str(e)
        security_logger.error(f"Security middleware error: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, session_id, status_code, error)


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
