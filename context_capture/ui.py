"""Loading, result and error overlays anchored below a captured region."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .surface import Cancellable, Element, Overlay, PageSurface, Scheduler, ThreadingScheduler
from .types import Region

logger = logging.getLogger(__name__)

RESULTS_DISMISS_SECONDS = 30.0
ERROR_DISMISS_SECONDS = 10.0
COPY_FEEDBACK_SECONDS = 2.0
ANCHOR_GAP = 10

LOADING_TEXT = "Processing..."
COPY_LABEL = "Copy to Clipboard"
COPIED_LABEL = "Copied!"


class ResultsUI:
    """Shows at most one of the loading, results or error overlays.

    Auto-dismiss callbacks arrive on timer threads, so overlay swaps are
    serialized on one lock.
    """

    def __init__(
        self,
        surface: PageSurface,
        scheduler: Optional[Scheduler] = None,
        on_retry: Optional[Callable[[], None]] = None,
    ) -> None:
        self._surface = surface
        self._scheduler = scheduler or ThreadingScheduler()
        self._on_retry = on_retry
        self._overlay: Optional[Overlay] = None
        self._dismiss_timer: Optional[Cancellable] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[Overlay]:
        return self._overlay

    def show_loading(self, region: Region) -> None:
        overlay = self._anchored("loading", region)
        overlay.elements["spinner"] = Element(width=16, height=16)
        overlay.elements["message"] = Element(text=LOADING_TEXT)
        self._show(overlay)

    def show_results(self, summary: str, region: Region) -> None:
        overlay = self._anchored("results", region)
        overlay.elements["title"] = Element(text="Summary")
        overlay.elements["close"] = Element(text="×", on_click=self.hide_all)
        overlay.elements["summary"] = Element(text=summary)
        copy_button = Element(text=COPY_LABEL)
        copy_button.on_click = lambda: self._copy_clicked(summary, copy_button)
        overlay.elements["copy"] = copy_button
        self._show(overlay, RESULTS_DISMISS_SECONDS)

    def show_error(self, message: str, region: Region) -> None:
        overlay = self._anchored("error", region)
        overlay.elements["title"] = Element(text="Error")
        overlay.elements["close"] = Element(text="×", on_click=self.hide_all)
        overlay.elements["message"] = Element(text=message)
        overlay.elements["retry"] = Element(text="Try Again", on_click=self._retry)
        self._show(overlay, ERROR_DISMISS_SECONDS)

    def hide_all(self) -> None:
        with self._lock:
            self._hide()

    def _hide(self) -> None:
        if self._dismiss_timer is not None:
            self._dismiss_timer.cancel()
            self._dismiss_timer = None
        if self._overlay is not None:
            self._surface.unmount(self._overlay)
            self._overlay = None

    def copy_to_clipboard(self, text: str) -> bool:
        try:
            self._surface.write_clipboard(text)
            return True
        except Exception as exc:  # noqa: BLE001 - any primary failure falls back
            logger.warning("Clipboard write failed, using selection copy: %s", exc)
        return self._surface.exec_copy(text)

    def _anchored(self, kind: str, region: Region) -> Overlay:
        return Overlay(kind=kind, left=region.x, top=region.y + region.height + ANCHOR_GAP)

    def _show(self, overlay: Overlay, dismiss_after: Optional[float] = None) -> None:
        with self._lock:
            self._hide()
            self._overlay = overlay
            self._surface.mount(overlay)
            if dismiss_after is not None:
                self._dismiss_timer = self._scheduler.call_later(
                    dismiss_after, lambda: self._dismiss(overlay)
                )

    def _dismiss(self, overlay: Overlay) -> None:
        with self._lock:
            # a newer overlay may have replaced this one
            if self._overlay is overlay:
                self._dismiss_timer = None
                self._surface.unmount(overlay)
                self._overlay = None

    def _copy_clicked(self, summary: str, button: Element) -> None:
        if self.copy_to_clipboard(summary):
            button.text = COPIED_LABEL

            def restore() -> None:
                button.text = COPY_LABEL

            self._scheduler.call_later(COPY_FEEDBACK_SECONDS, restore)

    def _retry(self) -> None:
        self.hide_all()
        if self._on_retry is not None:
            self._on_retry()


__all__ = ["ResultsUI", "RESULTS_DISMISS_SECONDS", "ERROR_DISMISS_SECONDS"]
