"""Shared pytest configuration and fixtures."""
from __future__ import annotations

import io
import os
from collections.abc import Callable

import pytest
from PIL import Image

# Pin the environment before any gateway module is imported
os.environ.setdefault("DOWNSTREAM_MODE", "http")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("BASIC_AUTH_PASSWORD", None)


def encode_image(size: tuple[int, int], fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    if mode in ("L", "P"):
        img = Image.new("RGB", size, color).convert(mode)
    else:
        img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture
def extraction_payload() -> dict:
    return {
        "ocr": {"text": "こんにちは", "confidence": 0.97},
        "translation": {
            "raw_text": "こんにちは",
            "translation": {"literal": "hello", "natural": "Hi there"},
            "context": {"usage": "greeting", "formality": "neutral"},
        },
    }


@pytest.fixture
def enrichment_payload() -> dict:
    return {
        "ai_enhanced_analysis": {
            "natural_translation": "Hello!",
            "cultural_note": "Used from late morning until evening.",
            "insight": "Literally 'as for today'.",
            "usage_example": {
                "example_japanese": "こんにちは、田中さん。",
                "example_english": "Hello, Mr. Tanaka.",
            },
        }
    }
