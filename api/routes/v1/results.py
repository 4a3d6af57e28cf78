"""
api/routes/v1/results.py -- Results resource routes.

Routes (each also reachable with a .json or .xml suffix):
  GET     /results               -- list results (?sort=id|result|user|time)
  POST    /results               -- create result (admin)
  OPTIONS /results               -- Allow: GET, POST, OPTIONS
  GET     /results/{result_id}   -- one result, owner embedded
  PUT     /results/{result_id}   -- partial update (admin); 209 + representation
  DELETE  /results/{result_id}   -- delete result (admin); 204
  OPTIONS /results/{result_id}   -- Allow: GET, PUT, DELETE, OPTIONS

Auth policy: same as users.py, except that updates are admin-only as well.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import ResultCreate, ResultUpdate
from api.representation import (
    RESULTS_PATH,
    api_response,
    cached_response,
    negotiate_format,
    options_response,
    result_representation,
)
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.policy import Action, Resource, authorize
from services.results import ResultsService

router = APIRouter()

_COLLECTION_METHODS = ("GET", "POST", "OPTIONS")
_ITEM_METHODS = ("GET", "PUT", "DELETE", "OPTIONS")


def _service(request: Request) -> ResultsService:
    return request.app.state.results_service


@router.get("/results")
def list_results(
    request: Request,
    sort: str = "id",
    principal: Principal = Depends(get_current_principal),
) -> Response:
    authorize(principal, Action.LIST, Resource.RESULTS)
    results = _service(request).list(sort)
    payload = {"results": [{"result": result_representation(r)} for r in results]}
    return cached_response(payload, negotiate_format(request))


@router.post("/results", status_code=201)
def create_result(
    request: Request,
    body: ResultCreate,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Record a result for an existing user. Admin only; the value must be unused."""
    authorize(principal, Action.CREATE, Resource.RESULTS)
    result = _service(request).create(body.result, body.user, body.time)
    return api_response(
        201,
        {"result": result_representation(result)},
        negotiate_format(request),
        {"Location": f"{RESULTS_PATH}/{result.id}"},
    )


@router.options("/results", status_code=204)
def results_options() -> Response:
    return options_response(_COLLECTION_METHODS)


@router.get("/results/{result_id}")
def get_result(
    request: Request,
    result_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    authorize(principal, Action.GET, Resource.RESULTS)
    result = _service(request).get(result_id)
    return cached_response({"result": result_representation(result)}, negotiate_format(request))


@router.put("/results/{result_id}", status_code=209)
def update_result(
    request: Request,
    result_id: int,
    body: ResultUpdate,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    authorize(principal, Action.UPDATE, Resource.RESULTS)
    result = _service(request).update(result_id, value=body.result, user_id=body.user, time=body.time)
    return api_response(209, {"result": result_representation(result)}, negotiate_format(request))


@router.delete("/results/{result_id}", status_code=204)
def delete_result(
    request: Request,
    result_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    authorize(principal, Action.DELETE, Resource.RESULTS)
    _service(request).delete(result_id)
    return Response(status_code=204)


@router.options("/results/{result_id}", status_code=204)
def result_options(result_id: int) -> Response:
    return options_response(_ITEM_METHODS)
