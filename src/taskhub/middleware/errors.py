"""
Exception → response mapping for anything a handler lets escape.

Handlers decorated with ``api_endpoint`` already map their own errors;
this middleware is the net underneath them. Known errors keep their
status code. Anything else is logged with its traceback and answered
with a generic 500, and the worker thread carries on.
"""

import logging

from .base import Middleware, NextHandler
from ..errors import TaskhubError
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, error_response, internal_error
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class ErrorMiddleware(Middleware):

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            return next(request)
        except (TaskhubError, HTTPParseError) as e:
            logger.debug(f"{request.method} {request.path} → {e.status_code}: {e}")
            return error_response(HTTPStatus(e.status_code), str(e))
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            return internal_error()
