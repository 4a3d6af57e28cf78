"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The only accepted credential is an `Authorization: Bearer <token>` header
carrying a JWT issued by POST /api/v1/login_check.

get_current_principal() raises Unauthenticated (401) when the header is
missing or the token does not verify. Role checks are not made here: routes
ask auth/policy.py, which raises Forbidden (403). The api/main.py exception
handler renders both as the {code, message} envelope.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Principal
from auth.tokens import verify_token
from core.errors import Unauthenticated


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises Unauthenticated if the request carries no valid token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("missing bearer token")
    return verify_token(token.strip())
