# app/routers/access.py
"""
Access entry endpoints — manual check-in/out, event log, person status, live stream.
"""

import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.errors import RecordError
from app.schemas.access_event import (
    AccessEventOut, EntryRole, EntryWarningOut, PersonStatusOut, RecordEntryRequest,
)
from app.services.ledger import AccessLedger, get_ledger
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

STREAM_BUFFER = 8     # snapshots held per live client


@router.post("/access/entries", response_model=AccessEventOut, status_code=status.HTTP_201_CREATED,
             summary="Record a manual check-in / check-out")
def record_entry(body: RecordEntryRequest, ledger: AccessLedger = Depends(get_ledger)):
    """
    Returns 201 with the stored event, or 409 with a warning when the person's
    current status conflicts with the requested direction. Resend with
    `confirm: true` to record anyway.
    """
    try:
        outcome = ledger.record_entry(body.entry, body.operator, confirmed=body.confirm)
    except RecordError as e:
        if e.is_validation:
            raise HTTPException(status_code=422, detail=str(e))
        raise HTTPException(status_code=503, detail=f"Could not record entry: {e}")

    if outcome.warning:
        w = outcome.warning
        payload = EntryWarningOut(kind=w.kind, person_key=w.person_key,
                                  current_status=w.current_status, message=w.message)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=payload.model_dump(mode="json"))
    return outcome.event


@router.get("/access/entries/today", response_model=list[AccessEventOut], summary="Today's entries")
def get_today_entries(limit: Optional[int] = None, ledger: AccessLedger = Depends(get_ledger)):
    """Newest first. Returns every entry for today unless `limit` is given."""
    return ledger.get_today_entries(limit=limit)


@router.get("/access/entries", response_model=list[AccessEventOut], summary="Entries in a time window")
def get_entries(start: datetime, end: datetime, limit: Optional[int] = None,
                ledger: AccessLedger = Depends(get_ledger)):
    """Events with start <= occurred_at < end, newest first. The whole window unless `limit` is given."""
    return ledger.store.query_window(start, end, limit=limit)


@router.get("/access/people/{person_key}/entries", response_model=list[AccessEventOut],
            summary="Entry history for one person (latest RECENT_ENTRIES_LIMIT by default)")
def get_person_entries(person_key: str, limit: Optional[int] = None, ledger: AccessLedger = Depends(get_ledger)):
    """Newest first. Without `limit`, returns at most RECENT_ENTRIES_LIMIT events."""
    return ledger.store.query_by_person(person_key, limit=limit or settings.RECENT_ENTRIES_LIMIT)


@router.get("/access/people/{person_key}/status", response_model=PersonStatusOut,
            summary="Current in/out status")
def get_person_status(person_key: str, role: Optional[EntryRole] = None,
                      ledger: AccessLedger = Depends(get_ledger)):
    """Based on the latest event for the key on any day; `unknown` if none."""
    return PersonStatusOut(person_key=person_key, role=role,
                           status=ledger.get_person_status(person_key, role))


def offer_latest(queue: asyncio.Queue, payload: dict):
    """Enqueue a snapshot; when the client lags and the queue is full, drop the oldest one."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(payload)


@router.websocket("/access/today/stream")
async def stream_today(websocket: WebSocket, ledger: AccessLedger = Depends(get_ledger)):
    """
    Pushes {"events": [...], "stats": {...}} on connect and after every change
    to today's entries. Each message is a full snapshot, so a slow client
    only skips intermediate states.
    """
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_BUFFER)

    def on_update(events, stats):
        payload = {
            "events": [e.model_dump(mode="json") for e in events],
            "stats": stats.model_dump(),
        }
        loop.call_soon_threadsafe(offer_latest, queue, payload)

    subscription = await run_in_threadpool(ledger.subscribe_today, on_update)

    async def _pump():
        while True:
            await websocket.send_json(await queue.get())

    pump = asyncio.create_task(_pump())
    try:
        while True:
            await websocket.receive_text()   # client messages are ignored
    except WebSocketDisconnect:
        logger.info("Live view client disconnected")
    finally:
        subscription.unsubscribe()
        pump.cancel()
        try:
            await pump
        except asyncio.CancelledError:
            pass
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.info(f"Live view send stopped: {e!r}")
