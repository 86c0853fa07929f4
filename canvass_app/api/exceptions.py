"""DRF exception handler rendering every error as ``{"error": ..., "details": [...]}``."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from django_ratelimit.exceptions import Ratelimited
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import set_rollback

from canvass_app.core.errors import CanvassError

logger = logging.getLogger(__name__)


def flatten_errors(detail: Any, path: str = "") -> Iterator[str]:
    """Yield one ``"<field path>: <message>"`` string per serializer error."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            yield from flatten_errors(value, f"{path}.{key}" if path else str(key))
    elif isinstance(detail, list):
        for index, item in enumerate(detail):
            if isinstance(item, (dict, list)):
                yield from flatten_errors(item, f"{path}[{index}]" if path else str(index))
            else:
                yield from flatten_errors(item, path)
    else:
        yield f"{path}: {detail}" if path else str(detail)


def _message(exc: exceptions.APIException) -> str:
    detail = exc.detail
    if isinstance(detail, dict) and "detail" in detail:
        detail = detail["detail"]
    if isinstance(detail, (dict, list)):
        return str(exc.default_detail)
    return str(detail)


def _error(status_code: int, message: str, details=None, headers=None) -> Response:
    body = {"error": message}
    details = list(details or [])
    if details:
        body["details"] = details
    set_rollback()
    return Response(body, status=status_code, headers=headers)


def api_exception_handler(exc, context):
    if isinstance(exc, Ratelimited):
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests, please try again later")

    if isinstance(exc, CanvassError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message, exc_info=exc)
        return _error(exc.status_code, exc.message, exc.details)

    if isinstance(exc, Http404):
        exc = exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    if isinstance(exc, exceptions.ValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Validation failed", flatten_errors(exc.detail))

    if isinstance(exc, exceptions.APIException):
        headers = {}
        if getattr(exc, "auth_header", None):
            headers["WWW-Authenticate"] = exc.auth_header
        if getattr(exc, "wait", None):
            headers["Retry-After"] = "%d" % exc.wait
        return _error(exc.status_code, _message(exc), headers=headers or None)

    view = context.get("view")
    logger.exception("Unhandled exception in %s", type(view).__name__ if view else "API")
    body = {"error": "Internal server error"}
    if settings.DEBUG:
        body["detail"] = str(exc)
    set_rollback()
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
