"""HTTP-backed stage services."""
from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from jplens_gateway.core.errors import DownstreamError
from jplens_gateway.downstream.base import EnrichmentService, ExtractionService
from jplens_gateway.downstream.client import DownstreamClient, MultipartFile, PayloadKind
from jplens_gateway.imaging.normalizer import NormalizedImage
from jplens_gateway.schemas import EnrichmentRequest, EnrichmentResult, ExtractionResult

logger = logging.getLogger(__name__)

_ResultT = TypeVar("_ResultT", bound=BaseModel)


def _parse(model: type[_ResultT], data: dict[str, Any], stage: str) -> _ResultT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "downstream_malformed_response",
            extra={"stage": stage, "errors": exc.error_count()},
        )
        raise DownstreamError(
            stage=stage,
            http_status=200,
            service_message=f"malformed response: {exc.errors()[0]['msg']}",
        ) from exc


class HttpExtractionService(ExtractionService):
    endpoint = "/translate-image"

    def __init__(self, client: DownstreamClient) -> None:
        self._client = client

    async def translate_image(self, image: NormalizedImage, filename: str) -> ExtractionResult:
        payload = MultipartFile(filename=filename, data=image.data, content_type=image.content_type)
        data = await self._client.call(self.endpoint, payload, PayloadKind.MULTIPART)
        return _parse(ExtractionResult, data, self.stage)


class HttpEnrichmentService(EnrichmentService):
    endpoint = "/analyze/simple"

    def __init__(self, client: DownstreamClient) -> None:
        self._client = client

    async def analyze(self, request: EnrichmentRequest) -> EnrichmentResult:
        data = await self._client.call(
            self.endpoint, request.model_dump(mode="json"), PayloadKind.JSON
        )
        return _parse(EnrichmentResult, data, self.stage)
