"""Typed failures raised by the pipeline and its collaborators.

Only the gateway (``api.routes``) turns these into HTTP responses.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base exception for every failure the pipeline reports."""

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class InvalidImageError(PipelineError):
    """Raised when the upload is not an acceptable image (client fault)."""

    def __init__(self, reason: str, *, stage: str = "normalization") -> None:
        super().__init__(reason, stage=stage)
        self.reason = reason


class DownstreamError(PipelineError):
    """Raised when a downstream service fails or cannot be reached."""

    def __init__(
        self,
        *,
        stage: str,
        service_message: str,
        http_status: int | None = None,
    ) -> None:
        if http_status is None:
            message = f"{stage} service unreachable: {service_message}"
        else:
            message = f"{stage} service returned HTTP {http_status}: {service_message}"
        super().__init__(message, stage=stage)
        self.http_status = http_status
        self.service_message = service_message

    @property
    def is_transport_error(self) -> bool:
        return self.http_status is None
