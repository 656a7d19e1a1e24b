"""
Request rate limiting (slowapi).

Requests with a valid bearer token are counted per user, everything else
per client address. Routes opt in with @limiter.limit(...).
"""
from fastapi import HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.features.users.auth import verify_jwt_token


def get_rate_limit_key(request: Request) -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            payload = verify_jwt_token(token)
        except HTTPException:
            payload = None
        if payload:
            return f"user:{payload['sub']}"
    return f"addr:{get_remote_address(request)}"


limiter = Limiter(key_func=get_rate_limit_key)
