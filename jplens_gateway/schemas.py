from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    # Downstream payloads: immutable, unknown fields kept and passed through.
    model_config = ConfigDict(frozen=True, extra="allow")


# ---------------------------------------------------------------------------
# Stage 1: extraction service (/translate-image)
# ---------------------------------------------------------------------------

class OCRText(_Payload):
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


class TranslationVariants(_Payload):
    literal: str
    natural: str | None = None


class UsageContext(_Payload):
    usage: str | None = None
    formality: str | None = None


class BasicTranslation(_Payload):
    raw_text: str
    translation: TranslationVariants
    context: UsageContext | None = None


class ExtractionResult(_Payload):
    ocr: OCRText
    translation: BasicTranslation


# ---------------------------------------------------------------------------
# Stage 2: enrichment service (/analyze/simple)
# ---------------------------------------------------------------------------

class LiteralTranslation(BaseModel):
    raw_text: str
    literal: str


class EnrichmentRequest(BaseModel):
    """The narrow hand-off from stage 1 to stage 2."""
    model_config = ConfigDict(frozen=True)

    ocr: OCRText
    translation: LiteralTranslation

    @classmethod
    def from_extraction(cls, extraction: ExtractionResult) -> EnrichmentRequest:
        return cls(
            ocr=OCRText(text=extraction.ocr.text, confidence=extraction.ocr.confidence),
            translation=LiteralTranslation(
                raw_text=extraction.translation.raw_text,
                literal=extraction.translation.translation.literal,
            ),
        )


class UsageExample(_Payload):
    example_japanese: str | None = None
    example_english: str | None = None


class EnhancedAnalysis(_Payload):
    natural_translation: str | None = None
    cultural_note: str | None = None
    insight: str | None = None
    usage_example: UsageExample | None = None


class EnrichmentResult(_Payload):
    ai_enhanced_analysis: EnhancedAnalysis


# ---------------------------------------------------------------------------
# Gateway responses
# ---------------------------------------------------------------------------

class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_image: str = Field(alias="originalImage")
    ocr: OCRText
    basic_translation: BasicTranslation = Field(alias="basicTranslation")
    ai_analysis: EnrichmentResult = Field(alias="aiAnalysis")


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
    stage: str | None = None
