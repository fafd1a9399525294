"""Typed structures shared by the capture pipeline modules."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, TypedDict

from pydantic import BaseModel, ConfigDict, Field

OCRProviderId = Literal["googlevision", "ocrspace", "tesseract"]
LLMProviderId = Literal["openai", "anthropic", "gemini"]
Theme = Literal["light", "dark", "system"]


class Region(BaseModel):
    """Rectangle selected on the page, in viewport pixels."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)


class OCRResultRequired(TypedDict):
    text: str
    confidence: int
    success: bool


class OCRResult(OCRResultRequired, total=False):
    """Normalized recognition outcome; ``error`` is also used as an advisory note."""

    error: str


class SummaryResultRequired(TypedDict):
    summary: str
    success: bool


class SummaryResult(SummaryResultRequired, total=False):
    error: str


class Settings(TypedDict):
    """Provider selection, credentials and UI preferences."""

    ocrService: str
    llmService: str
    theme: str
    apiKeys: Dict[str, str]


class Message(TypedDict, total=False):
    type: str
    data: Dict[str, Any]


class OCRSpaceWord(TypedDict, total=False):
    WordText: str
    Confidence: float


class OCRSpaceLine(TypedDict, total=False):
    Words: List[OCRSpaceWord]


class OCRSpaceOverlay(TypedDict, total=False):
    Lines: List[OCRSpaceLine]


class OCRSpaceParsedResult(TypedDict, total=False):
    ParsedText: str
    TextOverlay: OCRSpaceOverlay


__all__ = [
    "OCRProviderId",
    "LLMProviderId",
    "Theme",
    "Region",
    "OCRResult",
    "SummaryResult",
    "Settings",
    "Message",
    "OCRSpaceWord",
    "OCRSpaceLine",
    "OCRSpaceOverlay",
    "OCRSpaceParsedResult",
]
