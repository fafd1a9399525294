"""OCR providers normalized to a single ``OCRResult`` contract."""

from __future__ import annotations

import logging
import math
import os
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, cast

import requests
from PIL import Image, ImageDraw, ImageFont

from .capture import CaptureError, decode_image, encode_png, split_data_url
from .types import OCRResult, OCRSpaceParsedResult

try:  # pragma: no cover - optional dependency
    import pytesseract as _pytesseract  # type: ignore[import]
except ImportError:  # pragma: no cover - optional dependency
    _pytesseract = None

pytesseract = cast(Any | None, _pytesseract)

logger = logging.getLogger(__name__)

OCR_SPACE_ENDPOINT = "https://api.ocr.space/parse/image"
GOOGLE_VISION_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"

DEFAULT_OCR_PROVIDER = "ocrspace"
FAILURE_MESSAGE = "Text recognition failed, please try again"
NO_TEXT_MESSAGE = "No text found in image"
# Used when Vision only returns the flat description without word scores.
VISION_FALLBACK_CONFIDENCE = 85


class OCRError(Exception):
    """Raised by a provider when text recognition cannot be completed."""


def round_half_up(value: float) -> int:
    # tolerance absorbs float noise such as 0.925 * 100 == 92.49999...
    return int(math.floor(value + 0.5 + 1e-9))


def _clamp_confidence(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def calculate_average_confidence(words: Sequence[Mapping[str, Any]]) -> int:
    """Mean of the ``Confidence`` values of OCR.space style words."""
    if not words:
        return 0
    total = sum(float(word.get("Confidence", 0) or 0) for word in words)
    return round_half_up(total / len(words))


def fragment_confidence(word_confidences: Sequence[float]) -> float:
    return sum(word_confidences) / max(len(word_confidences), 1)


def overall_confidence(fragments: Sequence[Sequence[float]]) -> int:
    """Average of the per-fragment word-confidence means, rounded half up."""
    if not fragments:
        return 0
    mean = sum(fragment_confidence(words) for words in fragments) / len(fragments)
    return _clamp_confidence(mean)


def _no_text() -> OCRResult:
    return {"text": "", "confidence": 0, "success": True, "error": NO_TEXT_MESSAGE}


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _mappings(value: Any) -> List[Dict[str, Any]]:
    """Dict entries of a JSON array; anything else in the payload is skipped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _http_timeout() -> float:
    try:
        return float(os.environ.get("CONTEXT_CAPTURE_HTTP_TIMEOUT", "30"))
    except ValueError:
        return 30.0


class OCRProvider(Protocol):
    provider_id: str

    def recognize(self, image_data: str) -> OCRResult:
        ...


class OCRSpaceProvider:
    provider_id = "ocrspace"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        self._api_key = api_key
        self._session = session or requests.Session()

    def recognize(self, image_data: str) -> OCRResult:
        if not self._api_key:
            raise OCRError("OCR API key not configured")

        _, base64_data = split_data_url(image_data)
        form: Dict[str, str] = {
            "apikey": self._api_key,
            "base64Image": base64_data,
            "language": "eng",
            "isOverlayRequired": "false",
            "filetype": "png",
            "detectOrientation": "true",
            "scale": "true",
            "OCREngine": "2",
        }
        # multipart/form-data, matching the browser FormData upload
        files = {name: (None, value) for name, value in form.items()}
        response = self._session.post(OCR_SPACE_ENDPOINT, files=files, timeout=_http_timeout())
        if not response.ok:
            raise OCRError(f"OCR API request failed: {response.status_code}")

        data: Dict[str, Any] = response.json() or {}
        if data.get("IsErroredOnProcessing"):
            message = data.get("ErrorMessage") or "OCR processing failed"
            if isinstance(message, list):
                message = "; ".join(str(item) for item in message)
            raise OCRError(str(message))

        parsed = cast(List[OCRSpaceParsedResult], _mappings(data.get("ParsedResults")))
        if not parsed:
            return _no_text()

        text = "\n".join(str(result.get("ParsedText") or "") for result in parsed).strip()
        if not text:
            return _no_text()

        fragments: List[List[float]] = []
        for result in parsed:
            overlay = _mapping(result.get("TextOverlay"))
            words = [
                word
                for line in _mappings(overlay.get("Lines"))
                for word in _mappings(line.get("Words"))
            ]
            fragments.append([float(word.get("Confidence", 0) or 0) for word in words])

        return {"text": text, "confidence": overall_confidence(fragments), "success": True}


class GoogleVisionProvider:
    provider_id = "googlevision"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        self._api_key = api_key
        self._session = session or requests.Session()

    def recognize(self, image_data: str) -> OCRResult:
        if not self._api_key:
            raise OCRError("Google Vision API key not configured")

        _, base64_data = split_data_url(image_data)
        response = self._session.post(
            GOOGLE_VISION_ENDPOINT,
            params={"key": self._api_key},
            json={
                "requests": [
                    {
                        "image": {"content": base64_data},
                        "features": [{"type": "TEXT_DETECTION", "maxResults": 1}],
                    }
                ]
            },
            timeout=_http_timeout(),
        )
        if not response.ok:
            raise OCRError(f"Google Vision API request failed: {response.status_code}")

        body: Dict[str, Any] = response.json() or {}
        responses = _mappings(body.get("responses"))
        if not responses:
            return _no_text()
        first = responses[0]
        error = first.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise OCRError(str(message or "Google Vision processing failed"))

        annotation = _mapping(first.get("fullTextAnnotation"))
        text = str(annotation.get("text") or "").strip()
        if text:
            scores = list(_vision_word_scores(annotation))
            if scores:
                confidence = _clamp_confidence(sum(scores) / len(scores) * 100)
            else:
                confidence = VISION_FALLBACK_CONFIDENCE
            return {"text": text, "confidence": confidence, "success": True}

        annotations = _mappings(first.get("textAnnotations"))
        if annotations:
            description = str(annotations[0].get("description") or "").strip()
            if description:
                return {
                    "text": description,
                    "confidence": VISION_FALLBACK_CONFIDENCE,
                    "success": True,
                }
        return _no_text()


def _vision_word_scores(annotation: Mapping[str, Any]) -> Iterable[float]:
    for page in _mappings(annotation.get("pages")):
        for block in _mappings(page.get("blocks")):
            for paragraph in _mappings(block.get("paragraphs")):
                for word in _mappings(paragraph.get("words")):
                    confidence = word.get("confidence")
                    if confidence is None:
                        symbols = [
                            float(symbol["confidence"])
                            for symbol in _mappings(word.get("symbols"))
                            if symbol.get("confidence") is not None
                        ]
                        if not symbols:
                            continue
                        confidence = sum(symbols) / len(symbols)
                    yield float(confidence)


class TesseractProvider:
    """Local recognition; only usable where the Tesseract engine is installed."""

    provider_id = "tesseract"

    def __init__(self, api_key: Optional[str] = None, language: str = "eng") -> None:
        self._language = language

    def _ensure_engine(self) -> Any:
        if pytesseract is None:
            raise OCRError("Local OCR engine unavailable: pytesseract not installed")
        try:
            pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as exc:
            raise OCRError("Local OCR engine unavailable: tesseract binary not found") from exc
        return pytesseract

    def recognize(self, image_data: str) -> OCRResult:
        engine = self._ensure_engine()
        try:
            with decode_image(image_data) as image:
                source = image.convert("RGB")
        except CaptureError as exc:
            raise OCRError("Local OCR processing failed") from exc

        try:
            data = engine.image_to_data(source, lang=self._language, output_type=engine.Output.DICT)
        except (engine.TesseractError, RuntimeError, OSError) as exc:
            raise OCRError("Local OCR processing failed") from exc

        confidences: List[float] = []
        lines: Dict[tuple, List[str]] = {}
        for index, word in enumerate(data.get("text", [])):
            conf = float(data.get("conf", [])[index])
            if conf < 0 or not str(word).strip():
                continue
            key = (
                data["block_num"][index],
                data["par_num"][index],
                data["line_num"][index],
            )
            lines.setdefault(key, []).append(str(word))
            confidences.append(conf)

        text = "\n".join(" ".join(parts) for _, parts in sorted(lines.items())).strip()
        if not text:
            return _no_text()
        return {"text": text, "confidence": overall_confidence([confidences]), "success": True}


ProviderFactory = Callable[[Optional[str]], OCRProvider]

OCR_PROVIDERS: Dict[str, ProviderFactory] = {
    "googlevision": lambda key: GoogleVisionProvider(key),
    "ocrspace": lambda key: OCRSpaceProvider(key),
    "tesseract": lambda key: TesseractProvider(key),
}


class OCRService:
    """Routes ``extract_text`` to the active provider."""

    def __init__(self, providers: Optional[Mapping[str, ProviderFactory]] = None) -> None:
        self._factories: Dict[str, ProviderFactory] = dict(providers or OCR_PROVIDERS)
        self._service = DEFAULT_OCR_PROVIDER
        self._provider: OCRProvider = self._factories[self._service](None)

    @property
    def service(self) -> str:
        return self._service

    def configure(self, service: str, api_key: Optional[str]) -> None:
        if service not in self._factories:
            logger.warning("Unknown OCR provider '%s'; defaulting to %s", service, DEFAULT_OCR_PROVIDER)
            service = DEFAULT_OCR_PROVIDER
        self._service = service
        self._provider = self._factories[service](api_key)
        logger.info("OCR provider set to %s (api key configured: %s)", service, bool(api_key))

    def extract_text(self, image_data: str) -> OCRResult:
        provider = self._provider
        try:
            return provider.recognize(image_data)
        except Exception as exc:  # noqa: BLE001 - every provider failure is reported the same way
            logger.error("OCR extraction with %s failed: %s", provider.provider_id, exc)
            return {"text": "", "confidence": 0, "success": False, "error": FAILURE_MESSAGE}

    def test_ocr(self) -> bool:
        """Recognize a rendered "Test OCR" sample with the active provider."""
        image = Image.new("RGB", (200, 50), "white")
        font = ImageFont.load_default(size=16)
        ImageDraw.Draw(image).text((10, 15), "Test OCR", fill="black", font=font)
        result = self.extract_text(encode_png(image))
        return bool(result["success"]) and "test" in result["text"].lower()


__all__ = [
    "OCRError",
    "OCRProvider",
    "OCRService",
    "OCRSpaceProvider",
    "GoogleVisionProvider",
    "TesseractProvider",
    "OCR_PROVIDERS",
    "calculate_average_confidence",
    "overall_confidence",
    "FAILURE_MESSAGE",
    "NO_TEXT_MESSAGE",
]
