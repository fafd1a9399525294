"""
Unit tests for context_capture.ui.
"""
import threading
from unittest.mock import MagicMock

import pytest

from context_capture.surface import InMemoryPage
from context_capture.types import Region
from context_capture.ui import ERROR_DISMISS_SECONDS, RESULTS_DISMISS_SECONDS, ResultsUI

REGION = Region(x=40, y=60, width=200, height=100)


class InterleavingPage(InMemoryPage):
    """Shows fresh results from another thread while an error is being removed."""

    def __init__(self) -> None:
        super().__init__()
        self.ui = None
        self.worker = None

    def unmount(self, overlay):
        if overlay.kind == "error" and self.worker is None:
            self.worker = threading.Thread(target=self.ui.show_results, args=("fresh", REGION))
            self.worker.start()
            self.worker.join(timeout=0.2)
        super().unmount(overlay)


@pytest.fixture
def page():
    return InMemoryPage()


@pytest.fixture
def ui(page, scheduler):
    return ResultsUI(page, scheduler=scheduler)


class TestOverlays:
    """Only one overlay is ever visible."""

    def test_loading_is_anchored_below_region(self, page, ui):
        ui.show_loading(REGION)

        overlay = page.overlays_of("loading")[0]
        assert (overlay.left, overlay.top) == (40, 170)
        assert overlay.element("message").text == "Processing..."

    def test_results_replace_loading(self, page, ui):
        ui.show_loading(REGION)
        ui.show_results("a\nb\nc", REGION)

        assert [overlay.kind for overlay in page.overlays] == ["results"]
        assert page.overlays[0].element("summary").text == "a\nb\nc"

    def test_error_replaces_results(self, page, ui):
        ui.show_results("summary", REGION)
        ui.show_error("Something failed", REGION)

        assert [overlay.kind for overlay in page.overlays] == ["error"]
        assert page.overlays[0].element("message").text == "Something failed"

    def test_close_button(self, page, ui):
        ui.show_results("summary", REGION)
        page.overlays[0].element("close").click()

        assert page.overlays == []
        assert ui.current is None


class TestAutoDismiss:
    """Results and errors disappear on their own."""

    def test_results_dismiss_after_30_seconds(self, page, ui, scheduler):
        ui.show_results("summary", REGION)

        assert [timer.delay for timer in scheduler.pending()] == [RESULTS_DISMISS_SECONDS]
        scheduler.fire(RESULTS_DISMISS_SECONDS)
        assert page.overlays == []

    def test_error_dismiss_after_10_seconds(self, page, ui, scheduler):
        ui.show_error("boom", REGION)

        assert [timer.delay for timer in scheduler.pending()] == [ERROR_DISMISS_SECONDS]
        scheduler.fire(ERROR_DISMISS_SECONDS)
        assert page.overlays == []

    def test_replaced_overlay_timer_is_cancelled(self, page, ui, scheduler):
        ui.show_error("boom", REGION)
        ui.show_results("summary", REGION)
        scheduler.fire(ERROR_DISMISS_SECONDS)

        assert [overlay.kind for overlay in page.overlays] == ["results"]

    def test_dismiss_racing_a_new_overlay(self, scheduler):
        page = InterleavingPage()
        ui = ResultsUI(page, scheduler=scheduler)
        page.ui = ui
        ui.show_error("boom", REGION)

        scheduler.fire(ERROR_DISMISS_SECONDS)
        page.worker.join(timeout=5)

        assert [overlay.kind for overlay in page.overlays] == ["results"]
        assert ui.current is page.overlays[0]
        ui.hide_all()
        assert page.overlays == []

    def test_loading_has_no_timer(self, ui, scheduler):
        ui.show_loading(REGION)

        assert scheduler.pending() == []


class TestRetry:
    def test_retry_hides_error_and_restarts(self, page, scheduler):
        on_retry = MagicMock()
        ui = ResultsUI(page, scheduler=scheduler, on_retry=on_retry)
        ui.show_error("boom", REGION)

        page.overlays[0].element("retry").click()

        assert page.overlays == []
        on_retry.assert_called_once_with()


class TestClipboard:
    """Copying prefers the clipboard API and falls back to selection copy."""

    def test_primary_clipboard(self, scheduler):
        clipboard = MagicMock()
        page = InMemoryPage(clipboard=clipboard)
        ui = ResultsUI(page, scheduler=scheduler)
        ui.show_results("summary text", REGION)

        page.overlays[0].element("copy").click()

        clipboard.write_text.assert_called_once_with("summary text")
        assert page.copied_selection is None
        assert page.overlays[0].element("copy").text == "Copied!"

    def test_fallback_without_clipboard(self, page, ui):
        assert ui.copy_to_clipboard("summary text") is True
        assert page.copied_selection == "summary text"
        assert page.overlays_of("copy-buffer") == []

    def test_fallback_when_primary_raises(self, scheduler):
        clipboard = MagicMock()
        clipboard.write_text.side_effect = PermissionError("Document is not focused")
        page = InMemoryPage(clipboard=clipboard)
        ui = ResultsUI(page, scheduler=scheduler)

        assert ui.copy_to_clipboard("summary text") is True
        assert page.copied_selection == "summary text"

    def test_copy_label_restores(self, page, ui, scheduler):
        ui.show_results("summary", REGION)
        button = page.overlays[0].element("copy")

        button.click()
        scheduler.fire(2.0)

        assert button.text == "Copy to Clipboard"
