"""Request/response message passing between isolated contexts."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Union

logger = logging.getLogger(__name__)

BACKGROUND = "background"
UNKNOWN_MESSAGE_TYPE = "Unknown message type"


class MessageType(str, Enum):
    CAPTURE_REGION = "CAPTURE_REGION"
    OCR_REQUEST = "OCR_REQUEST"
    LLM_REQUEST = "LLM_REQUEST"
    GET_SETTINGS = "GET_SETTINGS"
    SAVE_SETTINGS = "SAVE_SETTINGS"
    TEST_API = "TEST_API"
    SHOW_RESULTS = "SHOW_RESULTS"
    START_CAPTURE = "START_CAPTURE"
    CROP_IMAGE = "CROP_IMAGE"


class ChannelError(Exception):
    """Raised when no context is registered under the target id."""


@dataclass(frozen=True)
class Ok:
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Err:
    message: str


HandlerResult = Union[Ok, Err]
Handler = Callable[[Dict[str, Any]], HandlerResult]
Receiver = Callable[[Dict[str, Any]], Dict[str, Any]]


def to_response(result: HandlerResult) -> Dict[str, Any]:
    if isinstance(result, Err):
        return {"error": result.message}
    return dict(result.payload)


def dispatch(handlers: Mapping[str, Handler], message: Mapping[str, Any]) -> Dict[str, Any]:
    """Run the handler registered for ``message['type']``.

    A failing handler is reported as ``{"error": ...}``; the exception never
    reaches the caller.
    """
    message_type = str(message.get("type") or "")
    handler = handlers.get(message_type)
    if handler is None:
        return {"error": UNKNOWN_MESSAGE_TYPE}
    data = message.get("data") or {}
    try:
        return to_response(handler(dict(data)))
    except Exception as exc:  # noqa: BLE001
        logger.error("Handler for %s failed: %s", message_type, exc)
        return {"error": str(exc) or f"{message_type} failed"}


def _isolate(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(payload))


class MessageChannel:
    """Routes messages to receivers registered by context id.

    Payloads are copied through JSON in both directions so contexts never
    share mutable state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._receivers: Dict[str, Receiver] = {}

    def register(self, context_id: Union[str, int], receiver: Receiver) -> None:
        with self._lock:
            self._receivers[str(context_id)] = receiver

    def unregister(self, context_id: Union[str, int]) -> None:
        with self._lock:
            self._receivers.pop(str(context_id), None)

    def is_registered(self, context_id: Union[str, int]) -> bool:
        with self._lock:
            return str(context_id) in self._receivers

    def send(self, context_id: Union[str, int], message: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            receiver = self._receivers.get(str(context_id))
        if receiver is None:
            raise ChannelError(
                f"Could not establish connection to context {context_id}: receiving end does not exist"
            )
        logger.debug("Delivering %s to context %s", message.get("type"), context_id)
        response = receiver(_isolate(message))
        return _isolate(response or {})

    def send_to_background(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        return self.send(BACKGROUND, message)


__all__ = [
    "BACKGROUND",
    "ChannelError",
    "Err",
    "Handler",
    "HandlerResult",
    "MessageChannel",
    "MessageType",
    "Ok",
    "UNKNOWN_MESSAGE_TYPE",
    "dispatch",
    "to_response",
]
