"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request

from nexsplit.core.container import get_auth_service
from nexsplit.core.errors import Unauthorized
from nexsplit.services._shared.base import BaseService
from nexsplit.services._shared.errors import ServiceError
from nexsplit.services._shared.ports import AccessTokenClaims

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "bearer "


def client_meta() -> tuple[str | None, str | None]:
    """Return ``(ip_address, user_agent)`` of the current request.

    The address is already resolved by ``ProxyFix`` when enabled.
    """
    return request.remote_addr, request.headers.get("User-Agent")


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


def current_claims(*, optional: bool = False) -> AccessTokenClaims | None:
    """Verify the bearer access token of the current request.

    :param optional: Return ``None`` instead of raising when no token is sent.
    :raises Unauthorized: Missing (unless ``optional``) or invalid token.
    """
    token = _bearer_token()
    if token is None:
        if optional:
            return None
        raise Unauthorized("Missing bearer access token")
    try:
        return get_auth_service().validate_access(token)
    except ServiceError as exc:
        raise BaseService.translate_exceptions(exc) from exc


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token.

    The verified :class:`AccessTokenClaims` are passed to the view as the
    ``claims`` keyword argument.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        kwargs["claims"] = current_claims()
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def translate_errors(func: F) -> F:
    """Re-raise :class:`ServiceError` as the matching API error."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        try:
            return func(*args, **kwargs)
        except ServiceError as exc:
            raise BaseService.translate_exceptions(exc) from exc

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
