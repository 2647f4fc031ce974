"""Security dependencies, rate limiting and access logging"""
import json
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse
from fastapi import Depends, Header, HTTPException, Request, Response
from app.db.redis import get_session, get_csrf_token, check_rate_limit as redis_check_rate_limit
from app.core.config import settings
from app.core.logging import security_logger, api_access_logger

SESSION_COOKIE = "session_id"

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:8000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8000"
]


def get_allowed_origins():
    """Get list of allowed CORS origins"""
    allowed_origins = [settings.FRONTEND_URL]
    if settings.ENVIRONMENT == "development":
        allowed_origins.extend(DEV_ORIGINS)
    return allowed_origins


def require_auth(request: Request) -> int:
    """Dependency: Require authentication, return user_id"""
    session_id = request.cookies.get(SESSION_COOKIE)

    if not session_id:
        raise HTTPException(401, {"kind": "Unauthenticated", "error": "Not authenticated. Please log in."})

    user_id = get_session(session_id)
    if not user_id:
        raise HTTPException(401, {"kind": "Unauthenticated", "error": "Session expired. Please log in again."})

    return user_id


async def require_csrf_new(
    request: Request,
    user_id: int = Depends(require_auth),
    x_csrf_token: Optional[str] = Header(None, alias="X-CSRF-Token")
) -> int:
    """Dependency: Require auth + valid CSRF token, return user_id"""
    session_id = request.cookies.get(SESSION_COOKIE)

    # Frontend sends the CSRF token in the X-CSRF-Token header; the JSON body is not read here
    expected_csrf = get_csrf_token(session_id)
    if not expected_csrf or x_csrf_token != expected_csrf:
        security_logger.warning(
            f"CSRF validation failed - User: {user_id}, "
            f"IP: {request.client.host if request.client else 'unknown'}, "
            f"Path: {request.url.path}"
        )
        raise HTTPException(403, "Invalid or missing CSRF token")

    return user_id


def get_client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def get_client_identifier(request: Request, session_id: Optional[str] = None) -> str:
    """Get a unique identifier for rate limiting"""
    if session_id:
        return f"session:{session_id}"
    return f"ip:{get_client_ip(request)}"


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit

    Args:
        identifier: Client identifier (session ID or IP)
        strict: If True, use stricter rate limits for state-changing operations

    Returns:
        True if within limit, False if exceeded
    """
    return redis_check_rate_limit(identifier, strict=strict)


def validate_origin_referer(request: Request) -> bool:
    """Validate Origin and Referer headers"""
    origin = request.headers.get("Origin")
    referer = request.headers.get("Referer")

    allowed_origins = [o.rstrip("/") for o in get_allowed_origins() if o]

    # In development, allow requests without Origin/Referer (curl, test clients)
    if settings.ENVIRONMENT == "development" and not origin and not referer:
        return True

    if origin and origin.rstrip("/") in allowed_origins:
        return True

    # Check referer as fallback
    if referer:
        referer_parsed = urlparse(referer)
        referer_origin = f"{referer_parsed.scheme}://{referer_parsed.netloc}"
        if referer_origin in allowed_origins:
            return True

    return False


def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log detailed API access information"""
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "query": str(request.url.query) if request.url.query else None,
        "session_id": session_id[:16] + "..." if session_id else None,
        "client_ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "origin": request.headers.get("Origin", "none"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")


def get_cookie_domain(request: Request) -> Optional[str]:
    """Parent domain for cross-subdomain cookies, None for localhost/single-part hosts"""
    host = request.headers.get("host", settings.DOMAIN).split(":")[0]
    domain_parts = host.split(".")
    if len(domain_parts) >= 2 and not host.replace(".", "").isdigit():
        return "." + ".".join(domain_parts[-2:])
    return None


def set_auth_cookie(response: Response, session_id: str, request: Request) -> None:
    """Set session cookie with proper domain for cross-subdomain sharing"""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        domain=get_cookie_domain(request),
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=settings.SESSION_TTL_SECONDS
    )
