"""Host page abstractions: overlays, input listeners, timers and clipboard."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


@dataclass(frozen=True)
class PointerEvent:
    x: float
    y: float
    button: int = 0


@dataclass(frozen=True)
class KeyEvent:
    key: str


@dataclass
class Element:
    """A positioned piece of an overlay (box, label or button)."""

    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0
    text: str = ""
    visible: bool = True
    on_click: Optional[Callable[[], None]] = None

    def click(self) -> None:
        if self.visible and self.on_click is not None:
            self.on_click()


@dataclass
class Overlay:
    kind: str
    left: float = 0.0
    top: float = 0.0
    elements: Dict[str, Element] = field(default_factory=dict)

    def element(self, name: str) -> Element:
        return self.elements[name]


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        ...


class ThreadingScheduler:
    """Runs callbacks on daemon timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class Clipboard(Protocol):
    def write_text(self, text: str) -> None:
        ...


class ClipboardUnavailableError(Exception):
    """Raised when the page exposes no primary clipboard."""


class PageSurface(Protocol):
    def mount(self, overlay: Overlay) -> None:
        ...

    def unmount(self, overlay: Overlay) -> None:
        ...

    def add_listener(self, event: str, listener: Listener) -> None:
        ...

    def remove_listener(self, event: str, listener: Listener) -> None:
        ...

    def write_clipboard(self, text: str) -> None:
        ...

    def exec_copy(self, text: str) -> bool:
        ...


class InMemoryPage:
    """Page surface that keeps overlays and listeners in memory."""

    def __init__(self, clipboard: Optional[Clipboard] = None) -> None:
        self.overlays: List[Overlay] = []
        self._overlay_lock = threading.Lock()
        self.listeners: Dict[str, List[Listener]] = {}
        self.clipboard = clipboard
        self.copied_selection: Optional[str] = None

    def mount(self, overlay: Overlay) -> None:
        with self._overlay_lock:
            self.overlays.append(overlay)

    def unmount(self, overlay: Overlay) -> None:
        with self._overlay_lock:
            if overlay in self.overlays:
                self.overlays.remove(overlay)

    def overlays_of(self, kind: str) -> List[Overlay]:
        with self._overlay_lock:
            return [overlay for overlay in self.overlays if overlay.kind == kind]

    def add_listener(self, event: str, listener: Listener) -> None:
        self.listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        registered = self.listeners.get(event, [])
        if listener in registered:
            registered.remove(listener)

    def listener_count(self) -> int:
        return sum(len(items) for items in self.listeners.values())

    def dispatch(self, event: str, payload: Any = None) -> None:
        for listener in list(self.listeners.get(event, [])):
            listener(payload)

    def write_clipboard(self, text: str) -> None:
        if self.clipboard is None:
            raise ClipboardUnavailableError("Clipboard API unavailable")
        self.clipboard.write_text(text)

    def exec_copy(self, text: str) -> bool:
        # select the text in an off-screen element and copy the selection
        buffer = Overlay(kind="copy-buffer", left=-9999, top=-9999)
        buffer.elements["textarea"] = Element(text=text, visible=False)
        self.mount(buffer)
        try:
            self.copied_selection = buffer.elements["textarea"].text
        finally:
            self.unmount(buffer)
        return True


__all__ = [
    "Cancellable",
    "Clipboard",
    "ClipboardUnavailableError",
    "Element",
    "InMemoryPage",
    "KeyEvent",
    "Listener",
    "Overlay",
    "PageSurface",
    "PointerEvent",
    "Scheduler",
    "ThreadingScheduler",
]
