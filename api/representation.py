"""
api/representation.py -- Content negotiation, resource representations and the error envelope.

Every response body the API produces is built here, so JSON and XML stay in
step and no route handler can leak a field by accident (User.password_hash
never appears in any representation).

Format selection (negotiate_format):
  1. A `.json` / `.xml` path suffix, stripped and recorded on request.state by
     the suffix middleware in api/main.py.
  2. The Accept header (application/xml or text/xml selects XML).
  3. JSON.

Caching headers on successful reads: ETag is the quoted MD5 of the canonical
JSON form of the payload (sorted keys), so the same resource state yields the
same ETag in either format. Cache-Control is `must-revalidate`.

XML mapping: dict keys become elements, a resource's scalar `id` becomes an
attribute of its element, list items that are dicts are unwrapped into the
list element (`<users><user id="1">...</user></users>`), and scalar list items
get an entry element (`<roles><role>ROLE_USER</role></roles>`).
"""

from __future__ import annotations

import hashlib
import json
import xml.etree.ElementTree as ET
from http import HTTPStatus
from typing import Any, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from auth.models import User
from results.models import Result

USERS_PATH = "/api/v1/users"
RESULTS_PATH = "/api/v1/results"

JSON = "json"
XML = "xml"
FORMATS = (JSON, XML)

_MEDIA_TYPES = {JSON: "application/json", XML: "application/xml"}
_XML_ACCEPT = ("application/xml", "text/xml")
_LIST_ENTRIES = {"roles": "role"}


# ---------------------------------------------------------------------------
# Negotiation
# ---------------------------------------------------------------------------


def negotiate_format(request: Request) -> str:
    """Return "json" or "xml" for this request."""
    suffix = getattr(request.state, "format", None)
    if suffix in FORMATS:
        return suffix
    accept = request.headers.get("accept", "").lower()
    if any(media in accept for media in _XML_ACCEPT):
        return XML
    return JSON


def etag_for(payload: Any) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return '"' + hashlib.md5(canonical.encode("utf-8"), usedforsecurity=False).hexdigest() + '"'


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def api_response(
    status_code: int,
    payload: Optional[dict] = None,
    fmt: str = JSON,
    headers: Optional[dict[str, str]] = None,
) -> Response:
    """Serialize `payload` in `fmt`. A None payload produces an empty body."""
    if payload is None:
        return Response(status_code=status_code, headers=headers)
    if fmt == XML:
        return Response(content=to_xml(payload), status_code=status_code, media_type=_MEDIA_TYPES[XML], headers=headers)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


def cached_response(payload: dict, fmt: str) -> Response:
    """200 with ETag and Cache-Control, used by every successful GET."""
    headers = {"Cache-Control": "must-revalidate", "ETag": etag_for(payload)}
    return api_response(200, payload, fmt, headers)


def options_response(methods: tuple[str, ...]) -> Response:
    """204 with the Allow header. Answered without authentication."""
    return Response(
        status_code=204,
        headers={"Allow": ", ".join(methods), "Cache-Control": "public, immutable"},
    )


def error_envelope(status_code: int) -> dict:
    return {"code": status_code, "message": HTTPStatus(status_code).phrase}


def error_response(status_code: int, fmt: str = JSON, headers: Optional[dict[str, str]] = None) -> Response:
    """The {code, message} envelope; message is the standard reason phrase."""
    return api_response(status_code, error_envelope(status_code), fmt, headers)


# ---------------------------------------------------------------------------
# Resource representations
# ---------------------------------------------------------------------------


def user_representation(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "roles": sorted(user.roles),
        "_links": _links(USERS_PATH, user.id),
    }


def result_representation(result: Result) -> dict:
    owner = user_representation(result.user) if result.user is not None else {"id": result.user_id}
    return {
        "id": result.id,
        "result": result.value,
        "user": owner,
        "time": result.time.isoformat(),
        "_links": _links(RESULTS_PATH, result.id),
    }


def _links(collection: str, resource_id: Optional[int]) -> dict:
    return {
        "parent": {"href": collection},
        "self": {"href": f"{collection}/{resource_id}"},
    }


# ---------------------------------------------------------------------------
# XML
# ---------------------------------------------------------------------------


def to_xml(payload: dict, root: str = "response") -> bytes:
    element = ET.Element(root)
    _fill(element, payload, root)
    return ET.tostring(element, encoding="utf-8", xml_declaration=True)


def _fill(parent: ET.Element, value: Any, tag: str) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if key == "id" and not isinstance(item, (dict, list)):
                if item is not None:
                    parent.set("id", str(item))
                continue
            child = ET.SubElement(parent, key)
            _fill(child, item, key)
    elif isinstance(value, list):
        for item in value:
            if isinstance(item, dict):
                _fill(parent, item, tag)
            else:
                entry = ET.SubElement(parent, _LIST_ENTRIES.get(tag, "entry"))
                _fill(entry, item, tag)
    elif value is not None:
        parent.text = _xml_text(value)


def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
