# npm_wildcard/server.py
import logging
import threading
from typing import Callable, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from pydantic import BaseModel

from npm_wildcard import __version__
from npm_wildcard.config import Config
from npm_wildcard.decision import decide
from npm_wildcard.errors import NpmWildcardError
from npm_wildcard.orchestrator import Orchestrator, RunReport

logger = logging.getLogger(__name__)


# ---------- Models ----------
class RunInput(BaseModel):
    wildcards: Optional[List[str]] = None
    dry_run: Optional[bool] = None


class DecisionOut(BaseModel):
    wildcard: str
    action: str
    cert_id: Optional[str] = None
    reason: Optional[str] = None
    expires_on: Optional[str] = None


class _RunState:
    def __init__(self):
        self.lock = threading.Lock()
        self.latest: RunReport | None = None
        self.latest_error: str | None = None


def create_app(cfg: Config,
               factory: Callable[..., Orchestrator] = Orchestrator.from_config) -> FastAPI:
    """
    Control surface for service mode. Runs are single-flight: a second
    POST /runs while one is in progress gets 409.
    """
    app = FastAPI(title="npm-wildcard", version=__version__)
    state = _RunState()

    def _execute(wildcards: list[str], dry_run: bool):
        try:
            orc = factory(cfg, dry_run=dry_run)
            state.latest = orc.run(wildcards)
            state.latest_error = None
        except Exception as e:
            logger.exception("Run failed")
            state.latest_error = str(e)
        finally:
            state.lock.release()

    # ---------- Health ----------
    @app.get("/readyz")
    def readyz():
        return {"ok": True, "running": state.lock.locked()}

    # ---------- Decisions ----------
    @app.get("/wildcards/{wildcard}/decision", response_model=DecisionOut)
    def wildcard_decision(wildcard: str):
        if not wildcard.startswith("*."):
            raise HTTPException(400, "wildcard must look like '*.<base-domain>'")
        try:
            orc = factory(cfg, dry_run=True)
            d = decide(wildcard, orc.inventory.all(), cfg.warn_days)
        except NpmWildcardError as e:
            raise HTTPException(502, str(e))
        return DecisionOut(
            wildcard=wildcard,
            action=d.action.value,
            cert_id=str(d.cert_id) if d.cert_id is not None else None,
            reason=d.reason.value if d.reason else None,
            expires_on=d.expires_on,
        )

    # ---------- Runs ----------
    @app.post("/runs", status_code=202)
    def start_run(inp: RunInput, background: BackgroundTasks):
        wildcards = inp.wildcards or list(cfg.wildcards)
        bad = [w for w in wildcards if not w.startswith("*.")]
        if bad:
            raise HTTPException(400, f"invalid wildcards: {bad}")
        dry_run = cfg.dry_run if inp.dry_run is None else inp.dry_run
        if not state.lock.acquire(blocking=False):
            raise HTTPException(409, "a run is already in progress")
        background.add_task(_execute, wildcards, dry_run)
        return {"accepted": True, "wildcards": wildcards, "dry_run": dry_run}

    @app.get("/runs/latest")
    def latest_run():
        if state.latest_error is not None:
            return {"error": state.latest_error}
        if state.latest is None:
            raise HTTPException(404, "no run has completed yet")
        return state.latest.as_dict()

    return app
