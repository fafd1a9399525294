"""Page-side context: region selection, cropping and result display."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .capture import CaptureError, ScreenCapture
from .channel import Err, Handler, HandlerResult, MessageChannel, MessageType, Ok, dispatch
from .selector import RegionSelector
from .surface import InMemoryPage, PageSurface, Scheduler
from .types import Region
from .ui import ResultsUI

logger = logging.getLogger(__name__)

CROP_FAILED = "Failed to crop image"


class PageContext:
    """Answers page messages and drives selection → capture → display."""

    def __init__(
        self,
        tab_id: Union[str, int],
        channel: MessageChannel,
        surface: Optional[PageSurface] = None,
        capture: Optional[ScreenCapture] = None,
        scheduler: Optional[Scheduler] = None,
        minimum: Optional[int] = None,
        optimize_images: bool = False,
    ) -> None:
        self.tab_id = tab_id
        self.surface: PageSurface = surface if surface is not None else InMemoryPage()
        self._channel = channel
        self._capture = capture or ScreenCapture()
        self._optimize_images = optimize_images
        self.selector = RegionSelector(self.surface, minimum=minimum)
        self.results = ResultsUI(self.surface, scheduler=scheduler, on_retry=self.start_capture)
        self._handlers: Dict[str, Handler] = {
            MessageType.SHOW_RESULTS.value: self._handle_show_results,
            MessageType.START_CAPTURE.value: self._handle_start_capture,
            MessageType.CROP_IMAGE.value: self._handle_crop_image,
        }

    def attach(self) -> None:
        self._channel.register(self.tab_id, self.handle_message)
        logger.info("Page context %s attached", self.tab_id)

    def detach(self) -> None:
        self.selector.stop()
        self.results.hide_all()
        self._channel.unregister(self.tab_id)

    def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return dispatch(self._handlers, message)

    def snapshot(self) -> Dict[str, Any]:
        """Selection state and the visible overlay with its element texts."""
        overlay = self.results.current
        shown: Optional[Dict[str, Any]] = None
        if overlay is not None:
            shown = {
                "kind": overlay.kind,
                "left": overlay.left,
                "top": overlay.top,
                "text": {name: element.text for name, element in overlay.elements.items() if element.text},
            }
        return {"tabId": self.tab_id, "selecting": self.selector.is_active, "overlay": shown}

    def start_capture(self) -> None:
        if self.selector.is_active:
            logger.info("Capture already active")
            return
        self.selector.start(self.handle_capture)

    def handle_capture(self, region: Region) -> None:
        self.selector.stop()
        self.results.show_loading(region)
        try:
            response = self._channel.send_to_background(
                {
                    "type": MessageType.CAPTURE_REGION.value,
                    "data": {"region": region.model_dump(), "tabId": self.tab_id},
                }
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Capture request failed: %s", exc)
            self.results.show_error("Failed to capture region. Please try again.", region)
            return
        if response.get("error"):
            logger.warning("Capture pipeline reported: %s", response["error"])
            self.results.show_error(str(response["error"]), region)

    def _handle_show_results(self, data: Dict[str, Any]) -> HandlerResult:
        region = Region.model_validate(data.get("region") or {})
        summary = str(data.get("summary") or "")
        logger.info("Summary for tab %s:\n%s", self.tab_id, summary)
        self.results.show_results(summary, region)
        return Ok({"success": True})

    def _handle_start_capture(self, data: Dict[str, Any]) -> HandlerResult:
        self.start_capture()
        return Ok({"success": True})

    def _handle_crop_image(self, data: Dict[str, Any]) -> HandlerResult:
        try:
            region = Region.model_validate(data.get("region") or {})
            cropped = self._capture.capture_visible_tab(region, data.get("imageData"))
        except (ValidationError, CaptureError, OSError, ValueError) as exc:
            logger.error("Failed to crop image: %s", exc)
            return Err(CROP_FAILED)
        if self._optimize_images:
            cropped = self._capture.optimize_image_for_ocr(cropped)
        return Ok({"croppedImage": cropped})


__all__ = ["PageContext", "CROP_FAILED"]
