"""Fault classification shared by every provider.

Wire-level reply shapes live in the adapters; this module only turns
exceptions into ``(ErrorKind, message)`` pairs and builds canonical results.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from .errors import EmptyResponseError, UnknownProviderError
from .types import ErrorKind, GenerationFailure, GenerationSuccess, TokenUsage

STATUS_KINDS = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.AUTH_ERROR,
    403: ErrorKind.PERMISSION_DENIED,
    429: ErrorKind.RATE_LIMITED,
}


def vendor_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except Exception:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
    elif isinstance(error, str):
        message = error
    else:
        message = None
    return str(message or payload.get("message") or response.text[:200] or "")


def classify_status(status: int) -> ErrorKind:
    if status in STATUS_KINDS:
        return STATUS_KINDS[status]
    if 500 <= status < 600:
        return ErrorKind.SERVICE_ERROR
    return ErrorKind.API_ERROR


def _status_message(kind: ErrorKind, status: int, name: str, detail: str) -> str:
    if kind is ErrorKind.AUTH_ERROR:
        return f"Invalid API key for {name}"
    if kind is ErrorKind.RATE_LIMITED:
        return f"Rate limit exceeded for {name}"
    if kind is ErrorKind.BAD_REQUEST:
        return detail or f"Bad request to {name}"
    if kind is ErrorKind.PERMISSION_DENIED:
        return f"Permission denied for {name}" + (f": {detail}" if detail else "")
    if kind is ErrorKind.SERVICE_ERROR:
        return f"{name} service temporarily unavailable ({status})"
    return f"{name} API error ({status}): {detail}" if detail else f"{name} API error ({status})"


def classify_exception(exc: BaseException, name: str) -> tuple[ErrorKind, str]:
    """Map a dispatch fault to the error taxonomy.

    ``name`` is the provider's display name, used in messages.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        kind = classify_status(status)
        return kind, _status_message(kind, status, name, vendor_error_message(exc.response))
    # httpx.ConnectTimeout is both a timeout and a transport error; timeout wins
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT, f"Timeout: {name} took too long to respond"
    if isinstance(exc, httpx.NetworkError):
        return ErrorKind.NETWORK_ERROR, f"Network connection to {name} failed: {exc}"
    if isinstance(exc, EmptyResponseError):
        return ErrorKind.EMPTY_RESPONSE, str(exc) or f"No response generated from {name} API"
    if isinstance(exc, UnknownProviderError):
        return ErrorKind.UNKNOWN_PROVIDER, str(exc)
    return ErrorKind.API_ERROR, f"{name} API error: {exc}"


def success(
    provider_id: str, content: str, model: str, tokens: TokenUsage, elapsed_ms: int
) -> GenerationSuccess:
    return GenerationSuccess(
        provider_id=provider_id,
        content=content.strip(),
        model=model,
        tokens=tokens,
        processing_time_ms=elapsed_ms,
    )


def failure(
    provider_id: str, kind: ErrorKind, message: str, elapsed_ms: int
) -> GenerationFailure:
    return GenerationFailure(
        provider_id=provider_id, error_kind=kind, message=message, processing_time_ms=elapsed_ms
    )


def failure_from_exception(
    provider_id: str, exc: BaseException, name: str, elapsed_ms: int
) -> GenerationFailure:
    kind, message = classify_exception(exc, name)
    return failure(provider_id, kind, message, elapsed_ms)


def ensure_content(content: Any, name: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise EmptyResponseError(f"No response generated from {name} API")
    return content
