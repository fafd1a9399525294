"""Interactive region selection as a small state machine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from .surface import Element, KeyEvent, Overlay, PageSurface, PointerEvent
from .types import Region

logger = logging.getLogger(__name__)

CONFIRM_BUTTON_OFFSET = 10
CANCEL_KEYS = ("Escape", "Esc")

Rect = Tuple[float, float, float, float]
CaptureCallback = Callable[[Region], None]


def min_selection_size() -> int:
    try:
        return int(os.environ.get("CONTEXT_CAPTURE_MIN_SELECTION", "50"))
    except ValueError:
        return 50


def validate_region(region: Region, minimum: Optional[int] = None) -> bool:
    minimum = min_selection_size() if minimum is None else minimum
    return (
        region.x >= 0
        and region.y >= 0
        and region.width > 0
        and region.height > 0
        and region.width >= minimum
        and region.height >= minimum
    )


def normalize_rect(x0: float, y0: float, x1: float, y1: float) -> Rect:
    """Return ``(left, top, width, height)`` for a drag from (x0, y0) to (x1, y1)."""
    return (min(x0, x1), min(y0, y1), abs(x1 - x0), abs(y1 - y0))


class SelectorState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    CONFIRMING = "confirming"


@dataclass
class SelectionSession:
    """State owned by one active selection; dropped on teardown."""

    overlay: Overlay
    on_capture: CaptureCallback
    state: SelectorState = SelectorState.SELECTING
    dragging: bool = False
    start_x: float = 0.0
    start_y: float = 0.0
    rect: Optional[Rect] = None


class RegionSelector:
    def __init__(self, surface: PageSurface, minimum: Optional[int] = None) -> None:
        self._surface = surface
        self._minimum = min_selection_size() if minimum is None else minimum
        self._session: Optional[SelectionSession] = None

    @property
    def state(self) -> SelectorState:
        return self._session.state if self._session else SelectorState.IDLE

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def selection(self) -> Optional[Rect]:
        return self._session.rect if self._session else None

    def start(self, on_capture: CaptureCallback) -> None:
        if self._session is not None:
            logger.debug("Region selection already active; ignoring start")
            return
        overlay = Overlay(kind="selector")
        overlay.elements["selection"] = Element(visible=False)
        overlay.elements["confirm"] = Element(text="Capture", visible=False, on_click=self.confirm)
        self._session = SelectionSession(overlay=overlay, on_capture=on_capture)
        self._surface.mount(overlay)
        self._surface.add_listener("pointerdown", self._on_pointer_down)
        self._surface.add_listener("pointermove", self._on_pointer_move)
        self._surface.add_listener("pointerup", self._on_pointer_up)
        self._surface.add_listener("keydown", self._on_key_down)

    def stop(self) -> None:
        session = self._session
        if session is None:
            return
        self._surface.remove_listener("pointerdown", self._on_pointer_down)
        self._surface.remove_listener("pointermove", self._on_pointer_move)
        self._surface.remove_listener("pointerup", self._on_pointer_up)
        self._surface.remove_listener("keydown", self._on_key_down)
        self._surface.unmount(session.overlay)
        self._session = None

    def cancel(self) -> None:
        if self._session is not None:
            logger.info("Region selection cancelled")
        self.stop()

    def confirm(self) -> None:
        session = self._session
        if session is None or session.state is not SelectorState.CONFIRMING or session.rect is None:
            return
        left, top, width, height = session.rect
        region = Region(
            x=max(0, round(left)), y=max(0, round(top)), width=round(width), height=round(height)
        )
        callback = session.on_capture
        self.stop()
        callback(region)

    def _on_pointer_down(self, event: Any) -> None:
        session = self._session
        if session is None or not isinstance(event, PointerEvent) or event.button != 0:
            return
        session.state = SelectorState.SELECTING
        session.dragging = True
        session.start_x, session.start_y = event.x, event.y
        session.rect = (event.x, event.y, 0.0, 0.0)
        box = session.overlay.element("selection")
        box.left, box.top, box.width, box.height = session.rect
        box.visible = True
        session.overlay.element("confirm").visible = False

    def _on_pointer_move(self, event: Any) -> None:
        session = self._session
        if session is None or not session.dragging or not isinstance(event, PointerEvent):
            return
        session.rect = normalize_rect(session.start_x, session.start_y, event.x, event.y)
        box = session.overlay.element("selection")
        box.left, box.top, box.width, box.height = session.rect

    def _on_pointer_up(self, event: Any) -> None:
        session = self._session
        if session is None or not session.dragging or not isinstance(event, PointerEvent):
            return
        session.dragging = False
        rect = normalize_rect(session.start_x, session.start_y, event.x, event.y)
        _, _, width, height = rect
        box = session.overlay.element("selection")
        button = session.overlay.element("confirm")
        if width >= self._minimum and height >= self._minimum:
            session.rect = rect
            session.state = SelectorState.CONFIRMING
            box.left, box.top, box.width, box.height = rect
            button.left = rect[0] + rect[2] + CONFIRM_BUTTON_OFFSET
            button.top = rect[1]
            button.visible = True
        else:
            session.rect = None
            session.state = SelectorState.SELECTING
            box.visible = False
            button.visible = False

    def _on_key_down(self, event: Any) -> None:
        if isinstance(event, KeyEvent) and event.key in CANCEL_KEYS:
            self.cancel()


__all__ = [
    "RegionSelector",
    "SelectionSession",
    "SelectorState",
    "normalize_rect",
    "validate_region",
    "min_selection_size",
]
