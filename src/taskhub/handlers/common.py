"""
=============================================================================
SHARED HANDLER PLUMBING
=============================================================================

Every JSON endpoint speaks the same envelope:

    ApiResponse   {"status": "success" | "error",
                   "data":   "<human readable message>",
                   "path":   "/users",      (optional, echoes the request)
                   "method": "POST"}        (optional, echoes the request)

    ApiRequest    {"message": "<text>", "id": <non-negative int, optional>}

The ``api_endpoint`` decorator is the single place where application
errors turn into HTTP statuses:

    ┌──────────────────────────────┬────────┐
    │ ValidationError              │  400   │
    │ NotFoundError                │  404   │
    │ HTTPParseError (bad JSON)    │  400   │
    │ anything else                │  re-raised (ErrorMiddleware → 500)
    └──────────────────────────────┴────────┘
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..errors import TaskhubError, ValidationError
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, json_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    status: str
    data: str
    path: Optional[str] = None
    method: Optional[str] = None

    @classmethod
    def success(cls, data: str, request: Optional[HTTPRequest] = None) -> "ApiResponse":
        if request is None:
            return cls(status="success", data=data)
        return cls(status="success", data=data, path=request.path, method=request.method)

    @classmethod
    def error(cls, data: str, request: Optional[HTTPRequest] = None) -> "ApiResponse":
        if request is None:
            return cls(status="error", data=data)
        return cls(status="error", data=data, path=request.path, method=request.method)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"status": self.status, "data": self.data}
        if self.path is not None:
            body["path"] = self.path
        if self.method is not None:
            body["method"] = self.method
        return body


@dataclass(frozen=True)
class ApiRequest:
    """Body of the demo POST endpoints."""

    message: str
    id: Optional[int] = None

    @classmethod
    def from_request(cls, request: HTTPRequest) -> "ApiRequest":
        """
        Raises:
            ValidationError: Missing/non-string message, or a bad id.
            HTTPParseError: Body is not JSON.
        """
        body = read_json_object(request)

        message = body.get("message")
        if not isinstance(message, str):
            raise ValidationError("Field 'message' must be a string")

        item_id = body.get("id")
        if item_id is not None:
            # bool is an int subclass; reject it explicitly
            if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id < 0:
                raise ValidationError("Field 'id' must be a non-negative integer")

        return cls(message=message, id=item_id)


def read_json_object(request: HTTPRequest, required: bool = True) -> Dict[str, Any]:
    """
    Decode the request body as a JSON object.

    Args:
        required: When False an empty body yields ``{}``.

    Raises:
        ValidationError: Empty body (when required) or a non-object body.
        HTTPParseError: The body is not valid JSON.
    """
    if not request.body:
        if required:
            raise ValidationError("Request body is required")
        return {}

    data = request.json
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def api_endpoint(handler: Callable[..., HTTPResponse]) -> Callable[..., HTTPResponse]:
    """
    Map application errors raised by ``handler`` to an error ApiResponse.

    Works on plain functions and on methods: the request is always the
    last positional argument.
    """
    @functools.wraps(handler)
    def wrapper(*args: Any) -> HTTPResponse:
        request: HTTPRequest = args[-1]
        try:
            return handler(*args)
        except (TaskhubError, HTTPParseError) as e:
            logger.info(
                f"{request.method} {request.path} rejected "
                f"({e.status_code}): {e}"
            )
            body = ApiResponse.error(str(e), request)
            return json_response(body.to_dict(), HTTPStatus(e.status_code))

    return wrapper
