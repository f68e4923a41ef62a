from pathlib import Path
from typing import Optional
import asyncio
import json
import logging

from fastapi import FastAPI, Depends, HTTPException, Request, status, Query
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

# ── local modules ───────────────────────────────────────────────────
from . import config
from .conflicts import ScheduleConflict
from .db import DB_URL, engine, get_db, init_db
from .errors import EventNotFound, InvalidEventTimes, InvalidWindow, MemberNotFound
from .notifier import event_bus
from .recurrence import parse_window
from .schemas import (
    EventIn,
    EventPatch,
    EventsOut,
    MemberIn,
    MemberOut,
    MembersOut,
    OccurrenceOut,
    StatusOut,
    WriteOut,
)
from .service import EventService, WriteResult
from .store import EventFilters, EventStore
# ────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Event Calendar API")

# ───────────────────────── CORS ─────────────────────────────────────
from fastapi.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=86400,
)

# ───────────────────────── Error mapping ────────────────────────────
@app.exception_handler(InvalidWindow)
async def invalid_window_handler(_request: Request, exc: InvalidWindow):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

@app.exception_handler(EventNotFound)
async def not_found_handler(_request: Request, exc: EventNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Event not found"})

@app.exception_handler(InvalidEventTimes)
@app.exception_handler(MemberNotFound)
async def unprocessable_handler(_request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

# ───────────────────────── DB migrations (optional) ─────────────────
from alembic import command
from alembic.config import Config

def alembic_config(url: str = DB_URL) -> Config:
    app_dir = Path(__file__).resolve().parent
    cfg = Config(str(app_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(app_dir / "migrations"))
    # configparser interpolation: a literal % in a password must be doubled
    cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return cfg

def run_migrations(url: str = DB_URL) -> None:
    command.upgrade(alembic_config(url), "head")

def has_event_tables(bind) -> bool:
    with bind.connect() as conn:
        return inspect(conn).has_table("events")

@app.on_event("startup")
def on_startup():
    if config.AUTO_MIGRATE:
        logger.info("AUTO_MIGRATE=1, upgrading schema to head")
        run_migrations()
    elif not has_event_tables(engine):
        init_db()

# ───────────────────────── Lifecycle & health ───────────────────────
@app.get("/health")
def health_check():
    return {"status": "ok"}

@app.get("/")
def read_root():
    return {"message": "FastAPI backend is running."}

@app.get("/dbcheck")
def dbcheck(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"db": "ok"}

# ───────────────────────── Event reads ──────────────────────────────
@app.get("/events", response_model=EventsOut)
def list_events(
    start: str = Query(...),
    end: str = Query(...),
    category: list[str] = Query(default=[]),
    participant: list[str] = Query(default=[]),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    start_dt, end_dt = parse_window(start, end)
    filters = EventFilters(categories=category, participant_ids=participant, search=search)
    occurrences = EventService(db).list_occurrences(start_dt, end_dt, filters)
    return EventsOut(events=[OccurrenceOut.from_occurrence(o) for o in occurrences])

# ───────────────────────── Change stream (SSE) ──────────────────────
KEEPALIVE_SECONDS = 20.0

def _sse(payload: dict, event: Optional[str] = None) -> str:
    head = f"event: {event}\n" if event else ""
    return f"{head}data: {json.dumps(payload)}\n\n"

@app.get("/events/stream")
async def stream_events(request: Request):
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    async def gen():
        # subscribed only while the body is read; writers run in the threadpool
        unsubscribe = event_bus.subscribe(lambda payload: loop.call_soon_threadsafe(queue.put_nowait, payload))
        try:
            yield _sse({"type": "connected"})
            yield _sse({"type": "ready"}, event="ready")
            while not await request.is_disconnected():
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(payload)
        finally:
            unsubscribe()

    return StreamingResponse(
        gen(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
    )

# ───────────────────────── Event writes ─────────────────────────────
def _occurrences_out(result: WriteResult) -> WriteOut:
    if isinstance(result, ScheduleConflict):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.message)
    return WriteOut(events=[OccurrenceOut.from_occurrence(o) for o in result])

@app.post("/events", response_model=WriteOut, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventIn, db: Session = Depends(get_db)):
    return _occurrences_out(EventService(db).create_event(payload.model_dump()))

@app.put("/events/{event_id}", response_model=WriteOut)
def replace_event(event_id: str, payload: EventIn, db: Session = Depends(get_db)):
    fields = payload.model_dump()
    # full replacement: no participantIds means no participants
    fields["participant_ids"] = fields["participant_ids"] or []
    return _occurrences_out(EventService(db).update_event(event_id, fields))

@app.patch("/events/{event_id}", response_model=WriteOut)
def patch_event(event_id: str, payload: EventPatch, db: Session = Depends(get_db)):
    return _occurrences_out(EventService(db).update_event(event_id, payload.model_dump(exclude_unset=True)))

@app.delete("/events/{event_id}", response_model=StatusOut)
def delete_event(event_id: str, db: Session = Depends(get_db)):
    EventService(db).delete_event(event_id)
    return StatusOut()

# ───────────────────────── Members ──────────────────────────────────
@app.get("/members", response_model=MembersOut)
def list_members(db: Session = Depends(get_db)):
    members = EventStore(db).list_members()
    return MembersOut(members=[MemberOut.model_validate(m) for m in members])

@app.post("/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def create_member(payload: MemberIn, db: Session = Depends(get_db)):
    member = EventStore(db).create_member(payload.name, payload.part, payload.contact)
    db.commit()
    db.refresh(member)
    return MemberOut.model_validate(member)
