"""
Simulation API client — the network-fetching collaborator.

Responsibilities:
- POST simulation requests and fetch saved simulations over HTTP (httpx).
- Translate non-success responses and transport failures into SimulationApiError.
- Run every fetched payload through the normalizer; an unusable payload raises
  UnexpectedResponseError instead of passing None downstream.

Retries, cancellation, and caching are left to callers.
"""

from __future__ import annotations

import re
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from backend_simlens.config import Settings, get_settings
from backend_simlens.core.exceptions import (
    InvalidRequestError,
    SimulationApiError,
    UnexpectedResponseError,
)
from backend_simlens.core.numeric import parse_ether
from backend_simlens.history.models import HistoryItem
from backend_simlens.simlens_logging import get_logger
from backend_simlens.simlens_logging.logger import bind_simulation
from backend_simlens.simulation.models import CanonicalResult
from backend_simlens.simulation.normalizer import normalize

logger = get_logger(__name__)

DEFAULT_RESIMULATION_GAS = 30_000_000
LIST_KEYS = ("simulations", "data", "results")

_SIMULATION_ID_RE = re.compile(r"/simulations/[^/]+")


class SimulateRequest(BaseModel):
    """Request body for the simulate endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    save: bool = Field(..., description="Persist the simulation so it can be listed and fetched later")
    save_if_fails: bool | None = Field(None, description="Persist reverting simulations as well")
    simulation_type: Literal["full", "quick", "abi"] = Field("full", description="Amount of decoded data returned")
    network_id: str = Field(..., min_length=1, description="EVM chain id as string (e.g. 8453)")
    from_address: str = Field(..., alias="from", description="Sender address")
    to: str = Field(..., description="Recipient address")
    input: str = Field("0x", description="Calldata")
    gas: int | None = Field(None, ge=0, description="Gas limit")
    value: str | int | None = Field(None, description="Value in wei; string avoids precision loss")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @property
    def input_bytes(self) -> int:
        data = self.input.strip()
        if data.startswith("0x"):
            return max(0, (len(data) - 2) // 2)
        return len(data)


def redact_path(path: str) -> str:
    """Hide simulation ids in logged paths."""
    return _SIMULATION_ID_RE.sub("/simulations/:id", path)


def _error_message(body: Any, status_code: int) -> str:
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str) and err["message"]:
            return err["message"]
        if isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
    return f"Simulation API request failed ({status_code})"


class SimulationApiClient:
    """
    Async client for one simulation project.

    Use as an async context manager, or pass an existing httpx.AsyncClient
    (e.g. with a MockTransport in tests) which the caller then owns.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._base_url = self._settings.project_api_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.request_timeout_sec)
        )

    async def __aenter__(self) -> SimulationApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self._settings.access_key:
            headers["X-Access-Key"] = self._settings.access_key
        return headers

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        """Perform one API call; return the decoded JSON body or raise SimulationApiError."""
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.warning(
                "simulation_api_unreachable",
                path=redact_path(path),
                error=str(e) or type(e).__name__,
            )
            raise SimulationApiError(str(e) or "Simulation API unreachable") from e
        try:
            body = resp.json()
        except ValueError:
            body = None

        logger.debug(
            "simulation_api_response",
            path=redact_path(path),
            status=resp.status_code,
            ok=resp.is_success,
        )
        if not resp.is_success:
            message = _error_message(body, resp.status_code)
            logger.warning(
                "simulation_api_error",
                path=redact_path(path),
                status=resp.status_code,
                error=message,
            )
            raise SimulationApiError(message, status_code=resp.status_code)
        return body

    async def simulate_and_save(self, request: SimulateRequest) -> CanonicalResult:
        """Run a simulation and return its normalized result."""
        logger.info(
            "simulation_api_simulate",
            network_id=request.network_id,
            simulation_type=request.simulation_type,
            save=request.save,
            save_if_fails=request.save_if_fails,
            input_bytes=request.input_bytes,
            gas=request.gas,
        )
        payload = await self._request("POST", "/simulate", json=request.to_payload())
        result = normalize(payload)
        if result is None:
            raise UnexpectedResponseError("Unexpected simulate response")
        return result

    async def list_saved_simulations(self) -> list[Any]:
        """Return the raw saved-simulation records (first array among simulations, data, results)."""
        payload = await self._request("GET", "/simulations")
        if not isinstance(payload, dict):
            return []
        for key in LIST_KEYS:
            records = payload.get(key)
            if isinstance(records, list):
                logger.debug("simulation_api_listed", count=len(records), source_key=key)
                return records
        return []

    async def get_saved_simulation(self, simulation_id: str) -> CanonicalResult:
        """Fetch one saved simulation by id and return its normalized result."""
        payload = await self._request("GET", f"/simulations/{simulation_id}")
        result = normalize(payload)
        if result is None:
            bind_simulation(simulation_id).warning("simulation_api_unexpected_payload")
            raise UnexpectedResponseError("Unexpected simulation response")
        return result


def _text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _gas(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = _text(value)
    if text is not None:
        try:
            return int(float(text))
        except ValueError:
            return None
    return None


def build_resimulation_request(
    item: HistoryItem,
    previous: CanonicalResult | None,
    default_chain_id: int,
    *,
    default_gas: int = DEFAULT_RESIMULATION_GAS,
) -> SimulateRequest:
    """
    Build a request that re-runs a saved simulation.

    Prefers the saved simulation's own transaction (from, to, input, gas,
    value in wei) and falls back to the history item; the item's ether value
    is converted back to wei. Raises InvalidRequestError without from/to.
    """
    tx = (previous.transaction if previous else None) or {}
    sim = (previous.simulation if previous else None) or {}

    from_address = _text(tx.get("from")) or _text(item.from_address)
    to_address = _text(tx.get("to")) or _text(item.to_address)
    if not from_address or not to_address:
        raise InvalidRequestError("Missing from/to for re-simulation")

    calldata = _text(tx.get("input")) or _text(item.calldata) or "0x"
    gas = _gas(tx.get("gas"))
    if gas is None:
        gas = _gas(item.gas_limit)
    if gas is None:
        gas = default_gas

    value_wei = _text(tx.get("value"))
    if value_wei is None and _text(item.value):
        try:
            value_wei = str(parse_ether(item.value))
        except ValueError:
            value_wei = None

    network_id = _text(sim.get("network_id")) or str(default_chain_id)

    return SimulateRequest(
        save=True,
        save_if_fails=True,
        simulation_type="full",
        network_id=network_id,
        from_address=from_address,
        to=to_address,
        input=calldata,
        gas=gas,
        value=value_wei or "0",
    )
