# backend/routes.py

import asyncio
import logging
from contextlib import suppress
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from .analytics import LiveDashboard, compute_dashboard
from .errors import IngestionError, MissingCredential
from .ingestion import ContractNoteUpload, UploadAttempt
from .report import render_report
from .schemas import ContractNoteSummary, DashboardView, TradeRecord

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request):
    return request.app.state.store


def get_pipeline(request: Request):
    return request.app.state.pipeline


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """User id asserted by the identity provider in front of the API."""
    if not x_user_id:
        raise MissingCredential("Please login to process data.")
    return x_user_id


def attempt_payload(attempt: UploadAttempt) -> dict:
    payload = attempt.model_dump(mode="json")
    payload["steps"] = attempt.steps()
    return payload


@router.post("/contract-notes", status_code=201)
def upload_contract_note(
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
    user_id: str = Depends(current_user),
    pipeline=Depends(get_pipeline),
):
    upload = ContractNoteUpload(
        filename=file.filename or "contract-note.pdf",
        content_type=file.content_type or "",
        data=file.file.read(),
    )
    attempt = UploadAttempt()
    try:
        note_id = pipeline.ingest(user_id, upload, password=password, attempt=attempt)
    except IngestionError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"detail": e.message, "error": type(e).__name__, "attempt": attempt_payload(attempt)},
        )
    return {"contract_note_id": note_id, "attempt": attempt_payload(attempt)}


@router.get("/contract-notes", response_model=List[ContractNoteSummary])
def list_contract_notes(user_id: str = Depends(current_user), store=Depends(get_store)):
    return store.list_summaries(user_id)


@router.get("/trades", response_model=List[TradeRecord])
def list_trades(user_id: str = Depends(current_user), store=Depends(get_store)):
    return store.list_trades(user_id)


@router.get("/dashboard", response_model=DashboardView)
def dashboard(user_id: str = Depends(current_user), store=Depends(get_store)):
    return compute_dashboard(store.list_summaries(user_id))


@router.get("/report", response_class=PlainTextResponse)
def report(user_id: str = Depends(current_user), store=Depends(get_store)):
    summaries = store.list_summaries(user_id)
    return PlainTextResponse(render_report(compute_dashboard(summaries), summaries), media_type="text/markdown")


@router.websocket("/ws/dashboard")
async def dashboard_stream(websocket: WebSocket):
    user_id = websocket.query_params.get("user_id") or websocket.headers.get("x-user-id")
    if not user_id:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    def push(view: DashboardView):
        # store writes may notify from a worker thread
        loop.call_soon_threadsafe(updates.put_nowait, view)

    live = await run_in_threadpool(LiveDashboard, websocket.app.state.store, user_id, push)

    async def pump():
        while True:
            view = await updates.get()
            await websocket.send_json(view.model_dump(mode="json"))

    sender = asyncio.create_task(pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Dashboard stream for %s closed", user_id)
    finally:
        await run_in_threadpool(live.close)
        sender.cancel()
        with suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await sender


@router.get("/health")
def health():
    return {"status": "ok"}
