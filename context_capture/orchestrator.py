"""Background coordinator: provider configuration and the capture pipeline."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .capture import ScreenGrabber, grab_visible_screen
from .channel import BACKGROUND, Err, Handler, HandlerResult, MessageChannel, MessageType, Ok, dispatch
from .llm import LLMService
from .ocr import NO_TEXT_MESSAGE, OCRService
from .selector import min_selection_size, validate_region
from .settings_store import SettingsStore
from .types import LLMProviderId, OCRProviderId, Region, Theme

logger = logging.getLogger(__name__)

TabId = Union[int, str]


class CaptureRegionRequest(BaseModel):
    region: Region
    tabId: TabId


class OCRRequest(BaseModel):
    imageData: str = Field(..., min_length=1)


class LLMRequest(BaseModel):
    text: str


class ApiTestRequest(BaseModel):
    service: str


class StartCaptureRequest(BaseModel):
    tabId: TabId


class SettingsUpdate(BaseModel):
    """Partial settings; omitted fields keep their stored value."""

    model_config = ConfigDict(extra="ignore")

    ocrService: Optional[OCRProviderId] = None
    llmService: Optional[LLMProviderId] = None
    theme: Optional[Theme] = None
    apiKeys: Optional[Dict[str, str]] = None


class Orchestrator:
    def __init__(
        self,
        store: SettingsStore,
        channel: Optional[MessageChannel] = None,
        grabber: Optional[ScreenGrabber] = None,
        ocr: Optional[OCRService] = None,
        llm: Optional[LLMService] = None,
        minimum: Optional[int] = None,
    ) -> None:
        self._store = store
        self.channel = channel or MessageChannel()
        self._grab = grabber or grab_visible_screen
        self.ocr = ocr or OCRService()
        self.llm = llm or LLMService()
        self._minimum = min_selection_size() if minimum is None else minimum
        self._handlers: Dict[str, Handler] = {
            MessageType.CAPTURE_REGION.value: self._handle_capture_region,
            MessageType.OCR_REQUEST.value: self._handle_ocr_request,
            MessageType.LLM_REQUEST.value: self._handle_llm_request,
            MessageType.GET_SETTINGS.value: self._handle_get_settings,
            MessageType.SAVE_SETTINGS.value: self._handle_save_settings,
            MessageType.TEST_API.value: self._handle_test_api,
            MessageType.START_CAPTURE.value: self._handle_start_capture,
        }
        self.initialize_services()
        self.channel.register(BACKGROUND, self.handle_message)

    def initialize_services(self) -> None:
        """Push the stored provider selection and credentials into both services."""
        settings = self._store.get_settings()
        ocr_service = settings["ocrService"]
        llm_service = settings["llmService"]
        self.ocr.configure(ocr_service, self._store.get_api_key(ocr_service))
        self.llm.configure(llm_service, self._store.get_api_key(llm_service))
        logger.info("Background services initialized (ocr=%s, llm=%s)", ocr_service, llm_service)

    def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return dispatch(self._handlers, message)

    def start_capture(self, tab_id: TabId) -> Dict[str, Any]:
        return self.channel.send(tab_id, {"type": MessageType.START_CAPTURE.value})

    def _handle_capture_region(self, data: Dict[str, Any]) -> HandlerResult:
        request = CaptureRegionRequest.model_validate(data)
        region, tab_id = request.region, request.tabId
        if not validate_region(region, self._minimum):
            return Err("Selected region is too small")
        logger.info("Capturing %sx%s region for tab %s", region.width, region.height, tab_id)

        frame = self._grab()

        cropped = self.channel.send(
            tab_id,
            {
                "type": MessageType.CROP_IMAGE.value,
                "data": {"imageData": frame, "region": region.model_dump()},
            },
        )
        if cropped.get("error"):
            return Err(str(cropped["error"]))

        ocr_result = self.ocr.extract_text(str(cropped.get("croppedImage") or ""))
        if not ocr_result["success"] or not ocr_result["text"].strip():
            return Err(ocr_result.get("error") or NO_TEXT_MESSAGE)
        logger.debug("Recognized %s chars (confidence %s)", len(ocr_result["text"]), ocr_result["confidence"])

        summary_result = self.llm.generate_summary(ocr_result["text"])
        if not summary_result["success"]:
            return Err(summary_result.get("error") or "Failed to generate summary")

        self.channel.send(
            tab_id,
            {
                "type": MessageType.SHOW_RESULTS.value,
                "data": {"summary": summary_result["summary"], "region": region.model_dump()},
            },
        )
        return Ok({"success": True})

    def _handle_ocr_request(self, data: Dict[str, Any]) -> HandlerResult:
        request = OCRRequest.model_validate(data)
        return Ok(dict(self.ocr.extract_text(request.imageData)))

    def _handle_llm_request(self, data: Dict[str, Any]) -> HandlerResult:
        request = LLMRequest.model_validate(data)
        return Ok(dict(self.llm.generate_summary(request.text)))

    def _handle_get_settings(self, data: Dict[str, Any]) -> HandlerResult:
        return Ok({"settings": dict(self._store.get_settings())})

    def _handle_save_settings(self, data: Dict[str, Any]) -> HandlerResult:
        update = SettingsUpdate.model_validate(data)
        self._store.save_settings(update.model_dump(exclude_none=True))
        self.initialize_services()
        return Ok({"success": True})

    def _handle_test_api(self, data: Dict[str, Any]) -> HandlerResult:
        try:
            request = ApiTestRequest.model_validate(data)
            success = False
            if request.service == "ocr":
                success = self.ocr.test_ocr()
            elif request.service == "llm":
                success = self.llm.test_llm()
        except Exception as exc:  # noqa: BLE001 - reported as a failed test
            logger.error("API test failed: %s", exc)
            return Ok({"success": False, "error": str(exc) or "Test failed"})
        return Ok({"success": success})

    def _handle_start_capture(self, data: Dict[str, Any]) -> HandlerResult:
        request = StartCaptureRequest.model_validate(data)
        response = self.start_capture(request.tabId)
        if response.get("error"):
            return Err(str(response["error"]))
        return Ok({"success": True})


__all__ = ["Orchestrator", "SettingsUpdate"]
