"""
Multi-Tenant Middleware
Extracts the caller's tenant_id from the bearer token, when one is present.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Optional
import jwt


PUBLIC_PATHS = {"/", "/health", "/docs", "/openapi.json", "/redoc"}


def extract_tenant_id(payload: dict) -> Optional[str]:
    """Tenant claim may sit at the top level or in Supabase user/app metadata."""
    return (
        payload.get("tenant_id")
        or payload.get("tenantId")
        or (payload.get("app_metadata") or {}).get("tenant_id")
        or (payload.get("user_metadata") or {}).get("tenant_id")
    )


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract tenant_id from JWT token

    Usage:
    1. Add to main.py: app.add_middleware(TenantMiddleware)
    2. Access tenant via request.state.tenant_id in endpoints

    Signature is not verified here; endpoints that need an authenticated
    user go through get_current_user, which validates the token with Supabase.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.tenant_id = None

        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return await call_next(request)

        token = auth_header.split(" ", 1)[1]

        try:
            payload = jwt.decode(
                token,
                options={"verify_signature": False}
            )
            request.state.tenant_id = extract_tenant_id(payload)
        except jwt.InvalidTokenError:
            # Invalid token - let individual endpoints handle auth
            request.state.tenant_id = None

        return await call_next(request)


def get_current_tenant(request: Request) -> Optional[str]:
    """Dependency returning the tenant_id found by TenantMiddleware, if any."""
    return getattr(request.state, "tenant_id", None)
