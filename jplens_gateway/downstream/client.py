"""HTTP client wrapper for the downstream analysis services.

One ``DownstreamClient`` per stage. Each ``call`` opens its own
``httpx.AsyncClient`` so nothing is retained between requests.

Failures are classified into ``DownstreamError``:
    non-2xx response   -> http_status set, message from the response body
    transport failure  -> http_status None, message from the transport error
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from jplens_gateway.core.errors import DownstreamError

logger = logging.getLogger(__name__)


class PayloadKind(enum.Enum):
    MULTIPART = "multipart"
    JSON = "json"


@dataclass(frozen=True)
class MultipartFile:
    filename: str
    data: bytes
    content_type: str
    field_name: str = "file"


def _is_transport_error(exc: BaseException) -> bool:
    return isinstance(exc, DownstreamError) and exc.is_transport_error


def _service_message(response: httpx.Response) -> str:
    """Pull a human-readable error out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("detail", "error", "message"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)

    text = response.text.strip()
    if text:
        return text[:500]
    return response.reason_phrase or f"HTTP {response.status_code}"


class DownstreamClient:
    def __init__(
        self,
        *,
        stage: str,
        base_url: str,
        timeout_seconds: float = 30.0,
        max_attempts: int = 1,
        retry_backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._stage = stage
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff_seconds
        self._transport = transport

    @property
    def stage(self) -> str:
        return self._stage

    async def call(self, endpoint: str, payload: Any, kind: PayloadKind) -> dict[str, Any]:
        """POST *payload* to *endpoint* and return the decoded JSON object.

        Only transport failures are retried, and only when ``max_attempts`` > 1.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._retry_backoff, max=10),
            retry=retry_if_exception(_is_transport_error),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post(endpoint, payload, kind, attempt.retry_state.attempt_number)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _post(self, endpoint: str, payload: Any, kind: PayloadKind, attempt: int) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        request_kwargs: dict[str, Any]
        if kind is PayloadKind.MULTIPART:
            request_kwargs = {
                "files": {payload.field_name: (payload.filename, payload.data, payload.content_type)}
            }
        else:
            request_kwargs = {"json": payload}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, **request_kwargs)
        except httpx.TransportError as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "downstream_transport_error",
                extra={"stage": self._stage, "url": url, "attempt": attempt, "error": message},
            )
            raise DownstreamError(stage=self._stage, service_message=message) from exc

        if not response.is_success:
            message = _service_message(response)
            logger.warning(
                "downstream_http_error",
                extra={"stage": self._stage, "url": url, "status": response.status_code, "error": message},
            )
            raise DownstreamError(
                stage=self._stage, http_status=response.status_code, service_message=message
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise DownstreamError(
                stage=self._stage,
                http_status=response.status_code,
                service_message="invalid JSON response",
            ) from exc
        if not isinstance(data, dict):
            raise DownstreamError(
                stage=self._stage,
                http_status=response.status_code,
                service_message="invalid JSON response",
            )

        logger.debug(
            "downstream_call_complete",
            extra={"stage": self._stage, "url": url, "status": response.status_code},
        )
        return data
