"""
api/routes/v1/security.py -- Credential check endpoint.

Routes:
  POST /api/v1/login_check -- exchange email + password for a bearer token

Accepted body encodings (detected here, the token layer never sees them):
  application/x-www-form-urlencoded  -- parsed as a form
  JSON object                        -- {"email": ..., "password": ...}
  anything else                      -- raw `email=...&password=...` text

Success: 200 {"token": "<jwt>"} with the same token in X-Token.
Failure: 401 {code, message} envelope, no token, no X-Token. Unknown email and
wrong password get the same answer.

Security:
  Rate-limited per client address (Settings.login_rate_limit).
  authenticate_user() provides timing equalization -- use it, never inline.
  Argon2 verification is CPU-bound; it runs in the thread pool so the event
  loop keeps serving other requests.
  Cache-Control: no-store on every login response.
"""

from __future__ import annotations

import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter, login_rate_limit
from api.models import LoginResponse
from api.representation import error_response
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token

logger = logging.getLogger("resultsapi.auth")

router = APIRouter()

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@router.post("/login_check", response_model=LoginResponse)
@limiter.limit(login_rate_limit)
async def login_check(request: Request) -> JSONResponse:
    """Authenticate with email and password; return a signed JWT."""
    email, password = await _read_credentials(request)

    user_store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(authenticate_user, user_store, email, password)
    if user is None:
        logger.warning("Failed login for %r", email)
        resp = error_response(401)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_access_token(user)
    logger.info("User %s logged in", user.id)
    resp = JSONResponse(status_code=200, content=LoginResponse(token=token).model_dump())
    resp.headers["X-Token"] = token
    resp.headers["Cache-Control"] = "no-store"
    return resp


async def _read_credentials(request: Request) -> tuple[str | None, str | None]:
    """Pull email and password out of a form, JSON or raw url-encoded body."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == _FORM_CONTENT_TYPE:
        form = await request.form()
        return _as_str(form.get("email")), _as_str(form.get("password"))

    raw = await request.body()
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if isinstance(data, dict):
        return _as_str(data.get("email")), _as_str(data.get("password"))

    fields = dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))
    return _as_str(fields.get("email")), _as_str(fields.get("password"))


def _as_str(value) -> str | None:
    return value if isinstance(value, str) else None
