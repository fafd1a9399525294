"""FastAPI server exposing the background message dispatch table."""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .orchestrator import Orchestrator
from .page import PageContext
from .settings_store import SettingsStore, default_settings_path
from .surface import Scheduler
from .types import Region

logger = logging.getLogger(__name__)

app: FastAPI = FastAPI(title="Context Capture API", version="0.1.0")

orchestrator = Orchestrator(SettingsStore(default_settings_path()))

# Page context driven over HTTP when no real input surface is attached.
desktop_page: Optional[PageContext] = None


class MessageEnvelope(BaseModel):
    type: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None


class SelectionCommand(BaseModel):
    action: Literal["cancel", "confirm"]
    region: Optional[Region] = None


def attach_desktop_page(
    tab_id: Union[int, str], scheduler: Optional[Scheduler] = None
) -> PageContext:
    """Attach a page context to the orchestrator's channel and serve it under ``/page``."""
    global desktop_page
    if desktop_page is not None:
        desktop_page.detach()
    desktop_page = PageContext(tab_id, orchestrator.channel, scheduler=scheduler)
    desktop_page.attach()
    return desktop_page


def _require_page() -> PageContext:
    if desktop_page is None:
        raise HTTPException(status_code=404, detail="No desktop page attached")
    return desktop_page


@app.post("/messages")
def post_message(message: MessageEnvelope) -> Dict[str, Any]:
    logger.debug("Received %s over HTTP", message.type)
    return orchestrator.handle_message(message.model_dump(exclude_none=True))


@app.get("/page")
def get_page() -> Dict[str, Any]:
    return _require_page().snapshot()


@app.post("/page/selection")
def post_selection(command: SelectionCommand) -> Dict[str, Any]:
    """Finish the desktop selection: cancel it, or confirm an explicit region."""
    page = _require_page()
    if command.action == "cancel":
        page.selector.cancel()
    else:
        if command.region is None:
            raise HTTPException(status_code=400, detail="A region is required to confirm")
        page.handle_capture(command.region)
    return page.snapshot()


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
