"""HTTP bridge for host notifications.

A runtime that cannot embed the engine posts its events here; they are
dispatched into the in-process ``RuntimeHost`` exactly as hooks would be.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Depends

from ..hooks.host import RuntimeHost
from ..schemas import EventIngestResult, EventKind
from .deps import get_host

router = APIRouter(prefix="/events", tags=["events"])


@router.post("/{kind}", status_code=202, response_model=EventIngestResult)
async def ingest_event(
    kind: EventKind,
    payload: Union[List[Dict[str, Any]], Dict[str, Any], None] = Body(default=None),
    host: RuntimeHost = Depends(get_host),
):
    """Dispatch one event, or a list of events, of the given kind.

    ``send`` lists are delivered to onSend in a single call, matching the
    hook contract; every other kind is dispatched one event at a time.
    """
    if kind is EventKind.SEND:
        events = payload if isinstance(payload, list) else [payload or {}]
        callbacks = host.dispatch(kind.value, events)
        return EventIngestResult(kind=kind, accepted=len(events), callbacks=callbacks)

    if kind in (EventKind.FLOWS_STARTED, EventKind.FLOWS_STOPPED):
        callbacks = host.dispatch(kind.value, payload)
        return EventIngestResult(kind=kind, accepted=1, callbacks=callbacks)

    events = payload if isinstance(payload, list) else [payload or {}]
    callbacks = 0
    for event in events:
        callbacks += host.dispatch(kind.value, event)
    return EventIngestResult(kind=kind, accepted=len(events), callbacks=callbacks)
