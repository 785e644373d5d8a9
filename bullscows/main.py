'''
Bulls & Cows API

Endpoints:
GET    /session              -> current round (secret hidden until won)
POST   /session/guess        -> submit a guess
POST   /session/reset        -> start a new round
POST   /session/level        -> change the number of digits

Scores:
GET    /scores               -> local best scores (per level, optional player filter)
DELETE /scores               -> clear the local table
GET    /scores/online        -> cached remote scores
GET    /stats                -> statistics of the current player

Identity & sync:
GET    /identity             -> current player
PUT    /identity             -> choose a display name
POST   /identity/anonymous   -> get a generated name
POST   /sync                 -> refresh remote scores and push pending ones
GET    /sync/status          -> backlog state

One GameController per process; routes only forward events to it.
'''

import asyncio
import os
from dataclasses import dataclass
from typing import List, Optional

import requests
import structlog
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .bootstrap_db import create_all
from .db import create_db_engine, create_session_factory
from .game import GameController, GuessResult
from .identity import IdentityStore, InvalidDisplayName
from .ledger import ScoreLedger
from .logging import setup_logging
from .persistence import DocumentStore
from .remote_client import HttpScoreStore, ScoreTransport
from .repository import SQLStore
from .settings import GameSettings, load_settings
from .store import InMemoryStore, KeyValueStore
from .sync import SyncBacklog

from .schemas import (
    DisplayNameRequest,
    GuessRequest,
    GuessResponse,
    Identity,
    LevelChangeRequest,
    LevelChangeResponse,
    MessageOut,
    OutcomeOut,
    PlayerStats,
    ScoreRecord,
    SessionView,
    SyncReport,
    SyncStatus,
)

logger = structlog.get_logger()

APP_ENV = os.getenv("APP_ENV", "local")

app = FastAPI(title="Bulls & Cows API", version="1.0.0")

# Allow everything in dev so the docs and front-end work easily
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@dataclass
class Services:
    settings: GameSettings
    documents: DocumentStore
    identities: IdentityStore
    ledger: ScoreLedger
    backlog: SyncBacklog
    controller: GameController


def build_services(
    settings: GameSettings,
    backend: Optional[KeyValueStore] = None,
    transport: Optional[ScoreTransport] = None,
) -> Services:
    if backend is None:
        if settings.storage_backend == "memory":
            backend = InMemoryStore()
        else:
            engine = create_db_engine(settings.database_url)
            create_all(engine)
            backend = SQLStore(create_session_factory(engine))

    if transport is None and settings.score_store_url:
        http = requests.Session()
        if settings.score_store_token:
            http.headers["Authorization"] = f"Bearer {settings.score_store_token}"
        transport = HttpScoreStore(settings.score_store_url, session=http, max_retries=settings.sync_max_retries)

    documents = DocumentStore(backend)
    identities = IdentityStore(documents)
    ledger = ScoreLedger(
        documents,
        identities,
        levels=settings.levels,
        max_per_level=settings.max_scores_per_level,
    )
    backlog = SyncBacklog(documents, transport, max_pending=settings.max_pending_scores)
    controller = GameController(
        documents,
        ledger,
        backlog,
        levels=settings.levels,
        default_level=settings.default_level,
    )
    return Services(
        settings=settings,
        documents=documents,
        identities=identities,
        ledger=ledger,
        backlog=backlog,
        controller=controller,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services(load_settings())
    return _services


# --- Startup: logging + periodic sync (skipped under tests) ---

async def _sync_loop(backlog: SyncBacklog, interval: float) -> None:
    while True:
        try:
            await asyncio.to_thread(backlog.tick)
        except Exception:
            logger.exception("sync_tick_failed")
        await asyncio.sleep(interval)


if APP_ENV != "test":
    @app.on_event("startup")
    async def _start_background_sync():
        setup_logging()
        services = get_services()
        if services.backlog.configured:
            app.state.sync_task = asyncio.create_task(
                _sync_loop(services.backlog, services.settings.sync_interval_seconds)
            )
        logger.info("app_started", env=APP_ENV, storage=services.settings.storage_backend)

    @app.on_event("shutdown")
    async def _stop_background_sync():
        task = getattr(app.state, "sync_task", None)
        if task is not None:
            task.cancel()


def _to_guess_response(result: GuessResult) -> GuessResponse:
    outcome = None
    if result.outcome is not None:
        outcome = OutcomeOut(bulls=result.outcome.bulls, cows=result.outcome.cows)
    return GuessResponse(
        accepted=result.accepted,
        error_kind=result.error_kind,
        message=result.message,
        outcome=outcome,
        is_win=result.is_win,
        attempt_count=result.attempt_count,
        elapsed_display=result.elapsed_display,
        round_id=result.round_id,
        score_status=result.score_status,
    )

# ---------------- Routes ----------------

@app.get("/session", response_model=SessionView, summary="Get the current round")
def get_session(services: Services = Depends(get_services)) -> SessionView:
    return services.controller.state()

@app.post("/session/guess", response_model=GuessResponse, summary="Submit a guess")
def submit_guess(
    payload: GuessRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> GuessResponse:
    # Rejected guesses are a normal answer (accepted=false), not an HTTP error
    result = services.controller.submit_guess(payload.guess, round_id=payload.round_id)
    if result.record is not None:
        # forwarding never delays the answer to the player
        background_tasks.add_task(services.backlog.deliver, result.record)
    return _to_guess_response(result)

@app.post("/session/reset", response_model=SessionView, summary="Start a new round")
def reset_session(services: Services = Depends(get_services)) -> SessionView:
    services.controller.reset()
    return services.controller.state()

@app.post("/session/level", response_model=LevelChangeResponse, summary="Change the number of digits")
def change_level(
    payload: LevelChangeRequest,
    services: Services = Depends(get_services),
) -> LevelChangeResponse:
    try:
        result = services.controller.change_level(payload.level, confirmed=payload.confirmed)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    return LevelChangeResponse(
        applied=result.applied,
        needs_confirmation=result.needs_confirmation,
        session=services.controller.state(),
    )

@app.get("/scores", response_model=List[ScoreRecord], summary="Local best scores")
def get_scores(
    level: Optional[int] = None,
    player_id: Optional[str] = None,
    services: Services = Depends(get_services),
) -> List[ScoreRecord]:
    return services.ledger.query(level=level, player_id=player_id)

@app.delete("/scores", response_model=MessageOut, summary="Delete every local score")
def clear_scores(services: Services = Depends(get_services)) -> MessageOut:
    services.ledger.clear()
    return MessageOut(message="Local scores deleted.")

@app.get("/scores/online", response_model=List[ScoreRecord], summary="Remote scores (last fetched copy)")
def get_online_scores(
    level: Optional[int] = None,
    services: Services = Depends(get_services),
) -> List[ScoreRecord]:
    return services.backlog.remote_scores(level=level)

@app.get("/stats", response_model=PlayerStats, summary="Statistics of the current player")
def get_stats(services: Services = Depends(get_services)) -> PlayerStats:
    identity = services.identities.resolve()
    return services.ledger.player_stats(identity.player_id if identity else None)

@app.get("/identity", response_model=Identity, summary="Current player")
def get_identity(services: Services = Depends(get_services)) -> Identity:
    identity = services.identities.resolve()
    if identity is None:
        raise HTTPException(status_code=404, detail="No player name chosen yet.")
    return identity

def _retry_blocked_score(services: Services, background_tasks: BackgroundTasks) -> None:
    _, record = services.controller.commit_pending_score()
    if record is not None:
        background_tasks.add_task(services.backlog.deliver, record)

@app.put("/identity", response_model=Identity, summary="Choose a display name")
def set_identity(
    payload: DisplayNameRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> Identity:
    try:
        identity = services.identities.set_display_name(payload.display_name)
    except InvalidDisplayName as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    _retry_blocked_score(services, background_tasks)
    return identity

@app.post("/identity/anonymous", response_model=Identity, summary="Play under a generated name")
def use_anonymous(
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> Identity:
    identity = services.identities.use_anonymous()
    _retry_blocked_score(services, background_tasks)
    return identity

@app.post("/sync", response_model=SyncReport, summary="Synchronize scores now")
def sync_now(services: Services = Depends(get_services)) -> SyncReport:
    if not services.backlog.configured:
        raise HTTPException(status_code=409, detail="No remote score store configured.")
    return services.backlog.sync_now()

@app.get("/sync/status", response_model=SyncStatus, summary="Sync backlog state")
def sync_status(services: Services = Depends(get_services)) -> SyncStatus:
    return services.backlog.status()
