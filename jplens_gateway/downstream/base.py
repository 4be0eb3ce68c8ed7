from __future__ import annotations

from jplens_gateway.imaging.normalizer import NormalizedImage
from jplens_gateway.schemas import EnrichmentRequest, EnrichmentResult, ExtractionResult

EXTRACTION_STAGE = "extraction"
ENRICHMENT_STAGE = "enrichment"


class ExtractionService:
    """Stage 1: text recognition and literal translation of an image."""

    stage = EXTRACTION_STAGE

    async def translate_image(self, image: NormalizedImage, filename: str) -> ExtractionResult:
        raise NotImplementedError


class EnrichmentService:
    """Stage 2: natural translation and cultural commentary."""

    stage = ENRICHMENT_STAGE

    async def analyze(self, request: EnrichmentRequest) -> EnrichmentResult:
        raise NotImplementedError
