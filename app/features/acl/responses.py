"""
Response shaping for the ACL routes.

AJAX callers (``X-Requested-With: XMLHttpRequest``) get bare JSON; browser
callers get an ``AclMessage`` envelope naming the page to go to next.
"""
from typing import Any
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from app.features.acl.schemas import AclMessage


SUCCESS = "acl-success"
ERROR = "acl-error"

MESSAGES = {
    "created": "Group created successfully.",
    "updated": "Group updated successfully.",
    "deleted": "Group deleted successfully.",
    "failed": "The operation could not be completed.",
}


def is_ajax(request: Request) -> bool:
    return request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"


def index_url(request: Request) -> str:
    return str(request.url_for("acl.index"))


def json_response(content: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def success_response(request: Request, message_key: str) -> JSONResponse:
    if is_ajax(request):
        return json_response({}, status.HTTP_201_CREATED)
    envelope = AclMessage(status=SUCCESS, message=MESSAGES[message_key], redirect=index_url(request))
    return json_response(envelope, status.HTTP_201_CREATED)


def error_response(request: Request, message: str) -> JSONResponse:
    # Send the caller back where the request came from
    redirect = request.headers.get("referer") or index_url(request)
    envelope = AclMessage(status=ERROR, message=message, redirect=redirect)
    return json_response(envelope, status.HTTP_400_BAD_REQUEST)
