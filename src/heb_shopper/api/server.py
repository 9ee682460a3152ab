"""
FastAPI service exposing the run controller.

Commands: start a run, cancel a run. Observers read the snapshot over HTTP or
attach to a run over a websocket for the snapshot plus live events.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketState

from heb_shopper.config import ShopperConfig, load_config
from heb_shopper.models.api import StartRunRequest, StartRunResponse, APIError
from heb_shopper.core.errors import RunConflict
from heb_shopper.agents.controller import RunController

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

WS_POLL_SECONDS = 1.0


def _build_controller(config: ShopperConfig) -> RunController:
    from heb_shopper.agents.backends import create_backend
    from heb_shopper.core.ai_cleaner import AICleaner

    backend = create_backend(config)
    cleaner = AICleaner(model=config.ollama_model, host=config.ollama_host)
    return RunController(backend, cleaner=cleaner, config=config)


def _error(status_code: int, error_code: str, message: str, run_id: Optional[str] = None) -> JSONResponse:
    body = APIError(error_code=error_code, error_message=message, run_id=run_id)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app(controller: Optional[RunController] = None, config: Optional[ShopperConfig] = None) -> FastAPI:
    """
    Build the API around a controller.

    Args:
        controller: Controller to serve; built from config (real browser) when omitted
        config: Configuration used when building the controller
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctrl = controller
        if ctrl is None:
            ctrl = _build_controller(config or load_config())
        app.state.controller = ctrl
        try:
            adopted = await run_in_threadpool(ctrl.recover)
            if adopted:
                logger.info(f"[API] Resumed run {adopted} from checkpoint")
        except Exception as e:
            logger.error(f"[API] Could not resume from checkpoint: {e}")
        yield
        await run_in_threadpool(ctrl.shutdown)

    app = FastAPI(title="HEB Shopper", lifespan=lifespan)

    # Enable CORS for Streamlit
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, "INVALID_REQUEST", message)

    @app.exception_handler(RunConflict)
    async def run_conflict(request: Request, exc: RunConflict):
        return _error(409, "RUN_IN_PROGRESS", exc.message, run_id=exc.active_run_id)

    @app.get("/api/health")
    def health_check(request: Request):
        """Health check endpoint."""
        ctrl: RunController = request.app.state.controller
        store = ctrl.store.describe() if ctrl.store is not None else None
        return {
            "status": "ok",
            "run_status": ctrl.status,
            "checkpoint_store": store,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/api/run", status_code=202, response_model=StartRunResponse)
    def start_run(body: StartRunRequest, request: Request):
        """Start a shopping run; 409 while another run is active."""
        ctrl: RunController = request.app.state.controller
        logger.info(f"[API] Start requested ({len(body.shopping_list)} chars, AI cleanup: {body.clean_with_ai})")
        run_id = ctrl.start(body.shopping_list, clean_with_ai=body.clean_with_ai)
        return StartRunResponse(run_id=run_id)

    @app.post("/api/run/{run_id}/cancel", status_code=202)
    def cancel_run(run_id: str, request: Request):
        ctrl: RunController = request.app.state.controller
        accepted = ctrl.cancel(run_id)
        return {"run_id": run_id, "cancel_requested": accepted}

    @app.get("/api/run")
    def get_run(request: Request):
        """Current run snapshot."""
        ctrl: RunController = request.app.state.controller
        return jsonable_encoder(ctrl.snapshot())

    @app.websocket("/ws/runs/{run_id}")
    async def watch_run(websocket: WebSocket, run_id: str):
        await websocket.accept()
        ctrl: RunController = websocket.app.state.controller
        subscription = ctrl.attach(run_id=run_id)
        try:
            snapshot = subscription.snapshot
            await websocket.send_json({"type": "snapshot", "state": jsonable_encoder(snapshot)})
            if snapshot.run_id != run_id or not snapshot.is_active:
                return

            while True:
                event = await run_in_threadpool(subscription.get, WS_POLL_SECONDS)
                if event is None:
                    if subscription.closed:
                        logger.warning(f"[API] Observer for run {run_id} fell behind; closing")
                        return
                    continue
                await websocket.send_json(jsonable_encoder(event))
                if event.type == "run-status" and event.status in ("completed", "error"):
                    return
        except WebSocketDisconnect:
            logger.info(f"[API] Observer for run {run_id} disconnected")
        finally:
            ctrl.detach(subscription)
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
