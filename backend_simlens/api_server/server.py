"""
FastAPI server — simulation analysis and activity feed.

Exposes POST /analyze for already-fetched payloads, simulation endpoints that
go through the simulation API client, and the merged history feed. Local
executions live in an in-process ExecutionLog; nothing is persisted.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from backend_simlens.analytics.flow_aggregator import FlowWindow
from backend_simlens.analytics.pipeline import analyze_simulation
from backend_simlens.config import get_settings
from backend_simlens.core.exceptions import SimulationApiError, UnexpectedResponseError
from backend_simlens.history import ExecutionLog, ExecutionRecord, merge
from backend_simlens.simlens_logging import get_logger
from backend_simlens.simulation.client import SimulateRequest, SimulationApiClient

logger = get_logger(__name__)

app = FastAPI(
    title="SimLens API",
    description="Execution forecasts for raw on-chain calls: call tree, gas, flows, activity feed.",
    version="0.1.0",
)

_execution_log: ExecutionLog | None = None


def get_execution_log() -> ExecutionLog:
    """Dependency: process-wide execution log."""
    global _execution_log
    if _execution_log is None:
        _execution_log = ExecutionLog()
    return _execution_log


def reset_execution_log_for_test() -> None:
    global _execution_log
    _execution_log = None


def get_api_client() -> SimulationApiClient:
    """Dependency: simulation API client (overridden in tests)."""
    return SimulationApiClient(get_settings())


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    """POST /analyze body: a raw simulation payload and an optional focal address."""

    payload: Any = Field(..., description="Upstream simulation response (any shape)")
    actor: str | None = Field(None, description="Address whose inflow/outflow is tracked")
    window: FlowWindow = Field("30", description="Flow series window: last 30, last 100, or all transfers")


class SimulateBody(BaseModel):
    """POST /simulate body."""

    request: SimulateRequest
    actor: str | None = Field(None, description="Address whose inflow/outflow is tracked")
    window: FlowWindow = Field("30", description="Flow series window: last 30, last 100, or all transfers")


class ExecutionBody(BaseModel):
    """POST /executions body: a transaction sent from the connected wallet."""

    from_address: str | None = Field(None, alias="from", description="Sender address")
    to: str = Field(..., min_length=1, description="Recipient address")
    calldata: str = Field("0x", description="Calldata")
    value: str = Field("0", description="Value in ether")
    gas_limit: str | None = Field(None, alias="gasLimit", description="Gas limit")
    chain_id: int = Field(..., alias="chainId", gt=0, description="EVM chain id")
    hash: str = Field(..., min_length=1, description="Transaction hash")
    timestamp: int = Field(..., ge=0, description="Milliseconds since epoch")

    model_config = ConfigDict(populate_by_name=True)


class HistoryResponse(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    remote_error: str | None = Field(None, description="Set when saved simulations could not be listed")


def _unexpected(exc: UnexpectedResponseError) -> HTTPException:
    return HTTPException(status_code=422, detail=str(exc))


def _upstream(exc: SimulationApiError) -> HTTPException:
    return HTTPException(status_code=502, detail={"message": exc.message, "upstream_status": exc.status_code})


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@app.get("/health")
def health() -> dict[str, Any]:
    settings = get_settings()
    return {"status": "ok", "has_credentials": settings.has_credentials}


@app.post("/analyze")
def analyze(body: AnalyzeRequest) -> dict[str, Any]:
    """Analyze an already-fetched payload. 422 when the payload is not an object."""
    try:
        analysis = analyze_simulation(body.payload, actor=body.actor)
    except UnexpectedResponseError as e:
        logger.warning("analyze_unexpected_payload", error=str(e))
        raise _unexpected(e) from e
    return analysis.to_dict(flow_window=body.window)


@app.post("/simulate")
async def simulate(body: SimulateBody, client: SimulationApiClient = Depends(get_api_client)) -> dict[str, Any]:
    try:
        async with client:
            result = await client.simulate_and_save(body.request)
    except UnexpectedResponseError as e:
        raise _unexpected(e) from e
    except SimulationApiError as e:
        raise _upstream(e) from e
    return analyze_simulation(result, actor=body.actor).to_dict(flow_window=body.window)


@app.get("/simulations/{simulation_id}")
async def get_simulation(
    simulation_id: str,
    actor: str | None = None,
    window: FlowWindow = "30",
    client: SimulationApiClient = Depends(get_api_client),
) -> dict[str, Any]:
    try:
        async with client:
            result = await client.get_saved_simulation(simulation_id)
    except UnexpectedResponseError as e:
        raise _unexpected(e) from e
    except SimulationApiError as e:
        raise _upstream(e) from e
    return analyze_simulation(result, actor=actor).to_dict(flow_window=window)


@app.get("/history", response_model=HistoryResponse)
async def history(
    log: ExecutionLog = Depends(get_execution_log),
    client: SimulationApiClient = Depends(get_api_client),
) -> HistoryResponse:
    """Saved simulations and local executions, newest first. Listing failures keep local items."""
    remote: list[Any] = []
    remote_error: str | None = None
    try:
        async with client:
            remote = await client.list_saved_simulations()
    except SimulationApiError as e:
        logger.warning("history_remote_unavailable", status=e.status_code, error=e.message)
        remote_error = e.message
    items = merge(remote, log.items(), execution_limit=log.limit)
    return HistoryResponse(items=[i.to_dict() for i in items], remote_error=remote_error)


@app.post("/executions", status_code=201)
def record_execution(body: ExecutionBody, log: ExecutionLog = Depends(get_execution_log)) -> dict[str, Any]:
    record = ExecutionRecord(
        from_address=body.from_address,
        to_address=body.to,
        calldata=body.calldata,
        value=body.value,
        gas_limit=body.gas_limit,
        chain_id=body.chain_id,
        tx_hash=body.hash,
        timestamp=body.timestamp,
    )
    log.record(record)
    return record.to_history_item().to_dict()


@app.delete("/executions")
def clear_executions(log: ExecutionLog = Depends(get_execution_log)) -> dict[str, Any]:
    dropped = len(log)
    log.clear()
    return {"cleared": dropped}
