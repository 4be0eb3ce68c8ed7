"""Analysis pipeline — orchestrates normalize → extract → enrich → compose.

- Strictly sequential: stage 2 consumes stage 1's output.
- Fail fast: the first failure ends the run, no partial response.
- Stage 2 only ever sees the narrow ``EnrichmentRequest`` projection.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass

from jplens_gateway.downstream.base import EnrichmentService, ExtractionService
from jplens_gateway.imaging.normalizer import ImageNormalizer, NormalizedImage
from jplens_gateway.schemas import AnalyzeResponse, EnrichmentRequest

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    RECEIVED = "received"
    NORMALIZING = "normalizing"
    EXTRACTING = "extracting"
    ENRICHING = "enriching"
    COMPOSED = "composed"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadedImage:
    data: bytes
    content_type: str
    filename: str


class AnalysisPipeline:
    def __init__(
        self,
        normalizer: ImageNormalizer,
        extraction: ExtractionService,
        enrichment: EnrichmentService,
    ) -> None:
        self._normalizer = normalizer
        self._extraction = extraction
        self._enrichment = enrichment
        self.state = PipelineState.RECEIVED

    # ------------------------------------------------------------------ #
    #  Public entry point                                                  #
    # ------------------------------------------------------------------ #

    async def process(self, upload: UploadedImage) -> AnalyzeResponse:
        if self.state is not PipelineState.RECEIVED:
            raise RuntimeError(f"pipeline already ran (state={self.state.value})")

        try:
            # ── Step 1: Normalization ─────────────────────────────────
            self.state = PipelineState.NORMALIZING
            image: NormalizedImage = await self._run_step(
                "normalization", self._normalize(upload)
            )
            logger.info(
                "normalization_complete",
                extra={
                    "upload_filename": upload.filename,
                    "size": f"{image.width}x{image.height}",
                    "resized": image.resized,
                    "bytes": len(image.data),
                },
            )

            # ── Step 2: Extraction (stage 1) ──────────────────────────
            self.state = PipelineState.EXTRACTING
            extraction = await self._run_step(
                "extraction", self._extraction.translate_image(image, upload.filename)
            )
            logger.info(
                "extraction_complete",
                extra={"upload_filename": upload.filename, "confidence": extraction.ocr.confidence},
            )

            # ── Step 3: Enrichment (stage 2), fed the narrow projection ──
            self.state = PipelineState.ENRICHING
            enrichment = await self._run_step(
                "enrichment",
                self._enrichment.analyze(EnrichmentRequest.from_extraction(extraction)),
            )

            # ── Step 4: Compose ───────────────────────────────────────
            response = AnalyzeResponse(
                original_image=upload.filename,
                ocr=extraction.ocr,
                basic_translation=extraction.translation,
                ai_analysis=enrichment,
            )
            self.state = PipelineState.COMPOSED
        except BaseException:
            failed_in = self.state
            self.state = PipelineState.FAILED
            logger.info(
                "pipeline_failed",
                extra={"upload_filename": upload.filename, "failed_state": failed_in.value},
            )
            raise

        logger.info("pipeline_complete", extra={"upload_filename": upload.filename})
        return response

    # ------------------------------------------------------------------ #
    #  Helpers                                                             #
    # ------------------------------------------------------------------ #

    async def _normalize(self, upload: UploadedImage) -> NormalizedImage:
        # Decode/resize is CPU-bound; keep it off the event loop.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._normalizer.normalize, upload.data, upload.content_type
        )

    async def _run_step(self, step: str, coro):
        """Await one step and log its duration."""
        t0 = time.monotonic()
        try:
            result = await coro
        except Exception as exc:
            duration_ms = int((time.monotonic() - t0) * 1000)
            logger.warning(
                f"{step}_failed",
                extra={"step": step, "duration_ms": duration_ms, "error": str(exc)},
            )
            raise
        duration_ms = int((time.monotonic() - t0) * 1000)
        logger.debug(f"{step}_timing", extra={"step": step, "duration_ms": duration_ms})
        return result
