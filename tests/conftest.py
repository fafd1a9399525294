"""
Shared pytest fixtures for the context capture test suite.

Provides generated images, fake HTTP responses, a manual scheduler and a
wired background/page pair so tests never touch the network or the screen.
"""

import base64
import io
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from PIL import Image, ImageDraw

# Keep the module-level app away from any real settings file.
os.environ.setdefault(
    "CONTEXT_CAPTURE_SETTINGS_PATH",
    str(Path(tempfile.mkdtemp(prefix="context-capture-")) / "settings.json"),
)

from context_capture.channel import MessageChannel
from context_capture.llm import LLMService
from context_capture.ocr import OCRService
from context_capture.orchestrator import Orchestrator
from context_capture.page import PageContext
from context_capture.settings_store import SettingsStore
from context_capture.surface import InMemoryPage


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def make_png(width: int, height: int, color: str = "white") -> str:
    image = Image.new("RGB", (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def open_data_url(data_url: str) -> Image.Image:
    _, data = data_url.split(",", 1)
    return Image.open(io.BytesIO(base64.b64decode(data)))


@pytest.fixture
def png_factory() -> Callable[..., str]:
    return make_png


@pytest.fixture
def screen_frame() -> str:
    """An 800x600 frame with a red block at (100, 100)-(300, 200)."""
    image = Image.new("RGB", (800, 600), "white")
    ImageDraw.Draw(image).rectangle((100, 100, 299, 199), fill="red")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def fake_response(status: int = 200, body: Optional[Any] = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    if body is None:
        response.json.side_effect = ValueError("no json body")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def http_response() -> Callable[..., MagicMock]:
    return fake_response


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------

class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Collects timers so tests decide when they fire."""

    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def fire(self, delay: float) -> None:
        for timer in list(self.pending()):
            if timer.delay == delay:
                timer.callback()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class StubOCR:
    provider_id = "stub-ocr"

    def __init__(self, result: Dict[str, Any]) -> None:
        self.result = result
        self.calls: List[str] = []

    def recognize(self, image_data: str) -> Dict[str, Any]:
        self.calls.append(image_data)
        return dict(self.result)


class StubSummarizer:
    provider_id = "stub-llm"

    def __init__(self, summary: str = "Line one\nLine two\nLine three") -> None:
        self.summary = summary
        self.calls: List[str] = []

    def summarize(self, text: str) -> str:
        self.calls.append(text)
        return self.summary


@pytest.fixture
def stub_ocr() -> StubOCR:
    return StubOCR({"text": "Quarterly revenue grew 12 percent.", "confidence": 91, "success": True})


@pytest.fixture
def stub_summarizer() -> StubSummarizer:
    return StubSummarizer()


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------

@pytest.fixture
def store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def channel() -> MessageChannel:
    return MessageChannel()


@pytest.fixture
def orchestrator(store, channel, screen_frame, stub_ocr, stub_summarizer) -> Orchestrator:
    ocr = OCRService(providers={"ocrspace": lambda key: stub_ocr})
    llm = LLMService(providers={"openai": lambda key: stub_summarizer})
    return Orchestrator(
        store,
        channel=channel,
        grabber=lambda: screen_frame,
        ocr=ocr,
        llm=llm,
        minimum=50,
    )


@pytest.fixture
def page(channel, scheduler) -> PageContext:
    context = PageContext(7, channel, surface=InMemoryPage(), scheduler=scheduler, minimum=50)
    context.attach()
    return context
