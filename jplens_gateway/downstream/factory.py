from __future__ import annotations

import httpx

from jplens_gateway.core.config import Settings
from jplens_gateway.downstream.base import (
    ENRICHMENT_STAGE,
    EXTRACTION_STAGE,
    EnrichmentService,
    ExtractionService,
)
from jplens_gateway.downstream.client import DownstreamClient
from jplens_gateway.downstream.mock import MockEnrichmentService, MockExtractionService
from jplens_gateway.downstream.services import HttpEnrichmentService, HttpExtractionService


def _client(
    settings: Settings,
    stage: str,
    base_url: str,
    transport: httpx.AsyncBaseTransport | None,
) -> DownstreamClient:
    return DownstreamClient(
        stage=stage,
        base_url=base_url,
        timeout_seconds=settings.downstream_timeout_seconds,
        max_attempts=settings.downstream_max_attempts,
        retry_backoff_seconds=settings.downstream_retry_backoff_seconds,
        transport=transport,
    )


def get_extraction_service(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> ExtractionService:
    """Return the configured stage-1 service.

    DOWNSTREAM_MODE options:
        http  — HttpExtractionService against EXTRACTION_SERVICE_URL
        mock  — canned result (dev/test, no collaborator required)
    """
    if settings.downstream_mode == "mock":
        return MockExtractionService()
    return HttpExtractionService(
        _client(settings, EXTRACTION_STAGE, settings.extraction_service_url, transport)
    )


def get_enrichment_service(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> EnrichmentService:
    if settings.downstream_mode == "mock":
        return MockEnrichmentService()
    return HttpEnrichmentService(
        _client(settings, ENRICHMENT_STAGE, settings.enrichment_service_url, transport)
    )
