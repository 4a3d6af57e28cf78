"""
api/routes/v1/users.py -- Users resource routes.

Routes (each also reachable with a .json or .xml suffix):
  GET     /users             -- list users (?sort=id|email|roles)
  POST    /users             -- create user (admin)
  OPTIONS /users             -- Allow: GET, POST, OPTIONS
  GET     /users/{user_id}   -- one user
  PUT     /users/{user_id}   -- partial update (self or admin); 209 + representation
  DELETE  /users/{user_id}   -- delete user (admin); 204
  OPTIONS /users/{user_id}   -- Allow: GET, PUT, DELETE, OPTIONS

Auth policy:
  OPTIONS needs no token. Every other route requires a bearer token
  (get_current_principal) and then asks auth/policy.authorize() before the
  service runs. Assigning ROLE_ADMIN is checked by UsersService.update().
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import UserCreate, UserUpdate
from api.representation import (
    USERS_PATH,
    api_response,
    cached_response,
    negotiate_format,
    options_response,
    user_representation,
)
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.policy import Action, Resource, authorize
from services.users import UsersService

router = APIRouter()

_COLLECTION_METHODS = ("GET", "POST", "OPTIONS")
_ITEM_METHODS = ("GET", "PUT", "DELETE", "OPTIONS")


def _service(request: Request) -> UsersService:
    return request.app.state.users_service


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/users")
def list_users(
    request: Request,
    sort: str = "id",
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Return every user ascending by `sort`. No users at all is a 404."""
    authorize(principal, Action.LIST, Resource.USERS)
    users = _service(request).list(sort)
    payload = {"users": [{"user": user_representation(u)} for u in users]}
    return cached_response(payload, negotiate_format(request))


@router.post("/users", status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Create a user. Admin only. Location points at the new resource."""
    authorize(principal, Action.CREATE, Resource.USERS)
    user = _service(request).create(body.email, body.password, body.roles)
    return api_response(
        201,
        {"user": user_representation(user)},
        negotiate_format(request),
        {"Location": f"{USERS_PATH}/{user.id}"},
    )


@router.options("/users", status_code=204)
def users_options() -> Response:
    return options_response(_COLLECTION_METHODS)


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}")
def get_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    authorize(principal, Action.GET, Resource.USERS, user_id)
    user = _service(request).get(user_id)
    return cached_response({"user": user_representation(user)}, negotiate_format(request))


@router.put("/users/{user_id}", status_code=209)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Partially update a user; answers 209 Content Returned with the new state.

    A non-admin may only edit themselves and may never grant ROLE_ADMIN.
    """
    authorize(principal, Action.UPDATE, Resource.USERS, user_id)
    user = _service(request).update(
        user_id,
        principal,
        email=body.email,
        password=body.password,
        roles=body.roles,
    )
    return api_response(209, {"user": user_representation(user)}, negotiate_format(request))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Delete a user and, through the foreign key cascade, their results. Admin only."""
    authorize(principal, Action.DELETE, Resource.USERS, user_id)
    _service(request).delete(user_id)
    return Response(status_code=204)


@router.options("/users/{user_id}", status_code=204)
def user_options(user_id: int) -> Response:
    return options_response(_ITEM_METHODS)
