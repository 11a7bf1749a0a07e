"""
FastAPI HTTP server for the factory replenisher.

Exposes:
- GET /api/state - task states and the last tick report
- GET /api/inventory - current source container contents
- GET /api/diagnostics - configured materials, recipes and machines
- POST /api/tick - run one or more ticks (optionally advancing the simulated world)

By default the app drives the toy world from world.py. create_app() accepts
any started FactoryController, with or without a ToyWorld.
"""

import logging
import os
import sys
import threading
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .config import get_log_level
from .tasks import DiagnosticSection, FactoryController, TickReport
from .world import ToyWorld, build_toy_factory

# Configure logging
logging.basicConfig(
    level=get_log_level(),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    stream=sys.stdout,
    force=True
)

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class TickRequest(BaseModel):
    """Request body for POST /api/tick."""
    count: int = Field(default=1, ge=1, le=100, description="Number of ticks to run")
    advance_world: bool = Field(default=True, description="Let the simulated world act after each tick")


class TickResponse(BaseModel):
    reports: list[TickReport] = Field(default_factory=list)


class StateResponse(BaseModel):
    tick: int
    enabled_tasks: int
    task_states: dict[str, Any] = Field(default_factory=dict)
    last_report: Optional[TickReport] = None


class InventoryResponse(BaseModel):
    source: str
    items: dict[str, int] = Field(default_factory=dict, description="Item id -> total count")


class DiagnosticsResponse(BaseModel):
    sections: list[DiagnosticSection] = Field(default_factory=list)


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(controller: FactoryController, world: Optional[ToyWorld] = None) -> FastAPI:
    """
    Build the API around a started controller.

    Endpoints run on the threadpool, so every controller and world access
    goes through one lock: ticks never overlap and each container sees a
    single operation at a time.
    """
    lock = threading.Lock()

    app = FastAPI(
        title="Factory Replenisher API",
        description="REST API for inspecting and stepping the replenishment engine",
        version="1.0.0",
    )

    origins_env = os.getenv("REPLENISHER_CORS_ORIGINS")
    if origins_env:
        allow_origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    else:
        allow_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/state")
    def get_state() -> StateResponse:
        with lock:
            states = {
                task_id: state.model_dump() if isinstance(state, BaseModel) else state
                for task_id, state in controller.registry.task_states().items()
            }
            return StateResponse(
                tick=controller.tick_count,
                enabled_tasks=controller.registry.enabled_count(),
                task_states=states,
                last_report=controller.last_report,
            )

    @app.get("/api/inventory")
    def get_inventory() -> InventoryResponse:
        with lock:
            inventory_res = controller.source_inventory()
        if not inventory_res.ok:
            raise HTTPException(status_code=503, detail=inventory_res.error.message)
        return InventoryResponse(
            source=controller.config.source_container,
            items={item_id: info.total_count for item_id, info in inventory_res.value.items.items()},
        )

    @app.get("/api/diagnostics")
    def get_diagnostics() -> DiagnosticsResponse:
        with lock:
            return DiagnosticsResponse(sections=controller.registry.diagnostics())

    @app.post("/api/tick")
    def post_tick(req: TickRequest) -> TickResponse:
        """
        Run `count` controller ticks.

        With advance_world, the simulated world acts after every tick so that
        machines consume their inputs and the processing chain produces output.
        """
        reports = []
        with lock:
            for _ in range(req.count):
                reports.append(controller.run_tick())
                if req.advance_world and world is not None:
                    world.tick()

        logger.info(
            "POST /api/tick: ticks=%d transfers=%d",
            req.count,
            sum(r.metrics.transfers for r in reports),
        )
        return TickResponse(reports=reports)

    return app


def build_default_app() -> FastAPI:
    """App over a freshly built toy world."""
    world = build_toy_factory()
    controller = FactoryController(world.config, world.network)
    start_res = controller.start()
    if not start_res.ok:
        raise RuntimeError(f"toy world failed to start: {start_res.error.message}")
    return create_app(controller, world)


app = build_default_app()
