"""Shared FastAPI dependencies."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fundraiser.core.security import ADMIN_ROLES, decode_access_token
from fundraiser.services.providers import ProviderRegistry

security = HTTPBearer()


def get_provider_registry(request: Request) -> ProviderRegistry:
    return request.app.state.provider_registry


async def require_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    if payload.get("sub") is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    if payload.get("role") not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return payload


def get_webhook_signature(
    signature: Optional[str] = Header(default=None, alias="X-Webhook-Signature"),
) -> Optional[str]:
    return signature
