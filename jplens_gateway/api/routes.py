from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse

from jplens_gateway.core.config import Settings
from jplens_gateway.core.errors import DownstreamError, InvalidImageError
from jplens_gateway.downstream.factory import get_enrichment_service, get_extraction_service
from jplens_gateway.imaging.normalizer import ImageNormalizer, is_allowed_type
from jplens_gateway.pipeline.pipeline import AnalysisPipeline, UploadedImage
from jplens_gateway.schemas import AnalyzeResponse, ErrorResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline(settings: Settings = Depends(get_settings)) -> AnalysisPipeline:
    """Build a fresh pipeline for each request."""
    return AnalysisPipeline(
        normalizer=ImageNormalizer(max_side=settings.max_image_side, jpeg_quality=settings.jpeg_quality),
        extraction=get_extraction_service(settings),
        enrichment=get_enrichment_service(settings),
    )


def error_response(
    status_code: int, error: str, details: str | None = None, stage: str | None = None
) -> JSONResponse:
    body = ErrorResponse(error=error, details=details, stage=stage)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def analyze(
    image: UploadFile | None = File(None),
    settings: Settings = Depends(get_settings),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> JSONResponse:
    if image is None:
        return error_response(400, "No image file provided")

    filename = image.filename or "upload"
    content_type = image.content_type or ""

    # Transport-level gate: cheap checks before any decode work.
    if not is_allowed_type(content_type):
        return error_response(400, "Unsupported image type", f"content_type={content_type!r}")

    data = await image.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes / (1024 * 1024)
        return error_response(400, "Image too large", f"upload exceeds {limit_mb:g} MB limit")

    logger.info(
        "analyze_request",
        extra={"upload_filename": filename, "content_type": content_type, "bytes": len(data)},
    )

    try:
        result = await pipeline.process(
            UploadedImage(data=data, content_type=content_type, filename=filename)
        )
    except InvalidImageError as exc:
        return error_response(400, "Invalid image file", exc.reason, exc.stage)
    except DownstreamError as exc:
        logger.error(
            "analyze_downstream_failed",
            extra={"stage": exc.stage, "status": exc.http_status, "error": exc.service_message},
        )
        return error_response(500, "Failed to process image", str(exc), exc.stage)
    except Exception as exc:
        logger.exception("analyze_internal_error", extra={"upload_filename": filename})
        return error_response(500, "Failed to process image", str(exc) or exc.__class__.__name__)

    return JSONResponse(content=result.model_dump(mode="json", by_alias=True, exclude_unset=True))
