"""Analysis pipeline tests — stubbed stage services, real normalizer."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from jplens_gateway.core.errors import DownstreamError, InvalidImageError
from jplens_gateway.downstream.base import EnrichmentService, ExtractionService
from jplens_gateway.imaging.normalizer import ImageNormalizer
from jplens_gateway.pipeline.pipeline import AnalysisPipeline, PipelineState, UploadedImage
from jplens_gateway.schemas import AnalyzeResponse, EnrichmentRequest, EnrichmentResult, ExtractionResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _stubs(extraction_payload: dict, enrichment_payload: dict) -> tuple[AsyncMock, AsyncMock]:
    extraction = AsyncMock(spec=ExtractionService)
    extraction.translate_image.return_value = ExtractionResult.model_validate(extraction_payload)
    enrichment = AsyncMock(spec=EnrichmentService)
    enrichment.analyze.return_value = EnrichmentResult.model_validate(enrichment_payload)
    return extraction, enrichment


def _pipeline(extraction: AsyncMock, enrichment: AsyncMock) -> AnalysisPipeline:
    return AnalysisPipeline(ImageNormalizer(max_side=500), extraction, enrichment)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_pipeline_composes_both_stages(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    pipeline = _pipeline(extraction, enrichment)

    result = await pipeline.process(
        UploadedImage(data=make_image((2000, 1000)), content_type="image/jpeg", filename="menu.jpg")
    )

    assert isinstance(result, AnalyzeResponse)
    assert result.original_image == "menu.jpg"
    assert result.ocr.confidence == 0.97
    assert result.basic_translation.translation.natural == "Hi there"
    assert result.ai_analysis.ai_enhanced_analysis.natural_translation == "Hello!"
    assert pipeline.state is PipelineState.COMPOSED

    image, filename = extraction.translate_image.await_args.args
    assert (image.width, image.height) == (500, 250)
    assert image.format == "JPEG"
    assert filename == "menu.jpg"


@pytest.mark.asyncio
async def test_stage_two_gets_projection_of_stage_one(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    await _pipeline(extraction, enrichment).process(
        UploadedImage(data=make_image((50, 50), "PNG"), content_type="image/png", filename="a.png")
    )

    (request,) = enrichment.analyze.await_args.args
    assert isinstance(request, EnrichmentRequest)
    assert request.model_dump() == {
        "ocr": {"text": "こんにちは", "confidence": 0.97},
        "translation": {"raw_text": "こんにちは", "literal": "hello"},
    }


@pytest.mark.asyncio
async def test_response_serializes_with_client_field_names(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    result = await _pipeline(extraction, enrichment).process(
        UploadedImage(data=make_image((20, 20)), content_type="image/jpeg", filename="a.jpg")
    )
    body = result.model_dump(mode="json", by_alias=True, exclude_unset=True)
    assert set(body) == {"originalImage", "ocr", "basicTranslation", "aiAnalysis"}
    assert body["basicTranslation"]["context"] == {"usage": "greeting", "formality": "neutral"}


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("data", "content_type"),
    [(b"", "image/jpeg"), (b"GIF89a...", "application/pdf"), (b"garbage", "image/png")],
)
async def test_invalid_image_never_reaches_downstream(
    data, content_type, extraction_payload, enrichment_payload
) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    pipeline = _pipeline(extraction, enrichment)

    with pytest.raises(InvalidImageError):
        await pipeline.process(UploadedImage(data=data, content_type=content_type, filename="x"))

    extraction.translate_image.assert_not_awaited()
    enrichment.analyze.assert_not_awaited()
    assert pipeline.state is PipelineState.FAILED


@pytest.mark.asyncio
async def test_stage_one_failure_skips_stage_two(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    extraction.translate_image.side_effect = DownstreamError(
        stage="extraction", http_status=503, service_message="unavailable"
    )
    pipeline = _pipeline(extraction, enrichment)

    with pytest.raises(DownstreamError) as exc_info:
        await pipeline.process(UploadedImage(data=make_image((20, 20)), content_type="image/jpeg", filename="a.jpg"))

    assert exc_info.value.stage == "extraction"
    enrichment.analyze.assert_not_awaited()
    assert pipeline.state is PipelineState.FAILED


@pytest.mark.asyncio
async def test_stage_two_failure_yields_no_response(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    enrichment.analyze.side_effect = DownstreamError(stage="enrichment", service_message="connection refused")
    pipeline = _pipeline(extraction, enrichment)

    with pytest.raises(DownstreamError) as exc_info:
        await pipeline.process(UploadedImage(data=make_image((20, 20)), content_type="image/jpeg", filename="a.jpg"))

    assert exc_info.value.stage == "enrichment"
    assert exc_info.value.http_status is None
    extraction.translate_image.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_exception_propagates(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    extraction.translate_image.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await _pipeline(extraction, enrichment).process(
            UploadedImage(data=make_image((20, 20)), content_type="image/jpeg", filename="a.jpg")
        )


@pytest.mark.asyncio
async def test_pipeline_runs_only_once(make_image, extraction_payload, enrichment_payload) -> None:
    extraction, enrichment = _stubs(extraction_payload, enrichment_payload)
    pipeline = _pipeline(extraction, enrichment)
    upload = UploadedImage(data=make_image((20, 20)), content_type="image/jpeg", filename="a.jpg")
    await pipeline.process(upload)

    with pytest.raises(RuntimeError, match="already ran"):
        await pipeline.process(upload)
