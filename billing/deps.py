"""Shared FastAPI dependencies."""

from fastapi import Request
from fastapi.concurrency import run_in_threadpool

from billing.core.exceptions import UnauthorizedError
from billing.core.security import verify_session_token


async def get_current_clerk_id(request: Request) -> str:
    """Dependency: verify the bearer session token and return its subject."""
    auth_header = request.headers.get("Authorization") or ""
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise UnauthorizedError("Not Authorized. Login Again.")
    # JWKS fetches use blocking urllib
    claims = await run_in_threadpool(verify_session_token, token.strip())
    clerk_id = claims.get("sub")
    if not clerk_id:
        raise UnauthorizedError("Invalid token or clerkId missing.")
    return clerk_id
