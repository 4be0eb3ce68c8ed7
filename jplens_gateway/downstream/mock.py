from __future__ import annotations

from jplens_gateway.downstream.base import EnrichmentService, ExtractionService
from jplens_gateway.imaging.normalizer import NormalizedImage
from jplens_gateway.schemas import EnrichmentRequest, EnrichmentResult, ExtractionResult


class MockExtractionService(ExtractionService):
    async def translate_image(self, image: NormalizedImage, filename: str) -> ExtractionResult:
        # Canned result for local development without the extraction service
        return ExtractionResult.model_validate({
            "ocr": {"text": "営業中", "confidence": 0.93},
            "translation": {
                "raw_text": "営業中",
                "translation": {"literal": "business in progress", "natural": "Open"},
                "context": {"usage": "shop door sign", "formality": "neutral"},
            },
        })


class MockEnrichmentService(EnrichmentService):
    async def analyze(self, request: EnrichmentRequest) -> EnrichmentResult:
        return EnrichmentResult.model_validate({
            "ai_enhanced_analysis": {
                "natural_translation": f"Open ({request.translation.literal})",
                "cultural_note": "Shops hang this sign while they are open for customers.",
                "insight": f"'{request.translation.raw_text}' is a fixed set phrase.",
                "usage_example": {
                    "example_japanese": "このお店は今営業中です。",
                    "example_english": "This shop is open now.",
                },
            }
        })
