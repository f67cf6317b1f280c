"""FastAPI app exposing the controller over HTTP.

Routes:
- ``POST /``      — one controller invocation; the raw body is the payload.
- ``GET /state``  — current stored record for the configured service.
- ``GET /health`` — liveness plus the store circuit-breaker states.
"""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from levelguard.exceptions import StoreUnavailableError
from levelguard.handler import DegradationController, get_controller
from levelguard.responses import unavailable_response
from levelguard.storage import GuardedStateStore

logger = logging.getLogger(__name__)

app = FastAPI(title="levelguard", version="0.1.0")


def controller_dependency() -> DegradationController:
    return get_controller()


@app.post("/")
async def invoke(
    request: Request,
    controller: DegradationController = Depends(controller_dependency),
):
    """Run one invocation; an empty body counts as no payload."""
    raw = await request.body()
    result = await run_in_threadpool(controller.handle, raw or None)
    return JSONResponse(result.body().model_dump(), status_code=result.status_code)


@app.get("/state")
def read_state(controller: DegradationController = Depends(controller_dependency)):
    try:
        state = controller.store.load(controller.service_id)
    except StoreUnavailableError as exc:
        logger.warning("State read failed: %s", exc)
        unavailable = unavailable_response()
        return JSONResponse({"error": unavailable.message}, status_code=unavailable.status_code)
    return state.to_record()


@app.get("/health")
def health(controller: DegradationController = Depends(controller_dependency)):
    data = {"status": "ok", "serviceId": controller.service_id}
    if isinstance(controller.store, GuardedStateStore):
        data["storeCircuit"] = controller.store.circuit_state.value
        data["storeCircuits"] = {
            operation: state.value for operation, state in controller.store.circuit_states.items()
        }
    return data
