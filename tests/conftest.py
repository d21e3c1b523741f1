"""
Pytest fixtures for SimLens tests: isolated settings and sample simulation payloads.
"""

from __future__ import annotations

import pytest

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40
ADDR_C = "0x" + "c" * 40

_ENV_VARS = (
    "TENDERLY_ACCOUNT_SLUG",
    "TENDERLY_PROJECT_SLUG",
    "TENDERLY_ACCESS_KEY",
    "TENDERLY_API_BASE_URL",
    "SIMLENS_DEFAULT_CHAIN_ID",
    "SIMLENS_REQUEST_TIMEOUT_SEC",
    "SIMLENS_EXECUTION_HISTORY_LIMIT",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Clear SimLens env vars and the settings cache around every test."""
    from backend_simlens.config.settings import reset_settings

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("backend_simlens.config.env.load_simlens_env", lambda: None)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    """Settings pointing at a fake API root with credentials."""
    from backend_simlens.config import Settings

    return Settings(
        api_base_url="https://api.test/api/v1",
        account_slug="acme",
        project_slug="sim",
        access_key="secret-key",
        default_chain_id=8453,
        request_timeout_sec=5.0,
        execution_history_limit=50,
    )


@pytest.fixture
def scenario_a_payload():
    """Envelope with snake_case fields: root frame 0x64 gas, one child 0x32."""
    return {
        "result": {
            "gas_used": "0x64",
            "status": True,
            "call_trace": [
                {"trace_address": [], "gas_used": "0x64"},
                {"trace_address": [0], "gas_used": "0x32"},
            ],
        }
    }


@pytest.fixture
def rich_payload():
    """A saved-simulation style payload with nested simulation/transaction objects."""
    return {
        "simulation": {
            "id": "sim-123",
            "network_id": "8453",
            "status": False,
            "created_at": "2024-01-01T00:00:00Z",
        },
        "transaction": {
            "from": ADDR_A,
            "to": ADDR_B,
            "gas_used": 120,
            "block_number": "0x10",
            "transaction_info": {
                "call_trace": [
                    {
                        "trace_address": [],
                        "type": "CALL",
                        "from": ADDR_A,
                        "to": ADDR_B,
                        "gas_used": 100,
                        "error": "execution reverted: X",
                        "decoded_input": [{"name": "amount", "type": "uint256", "value": "5"}],
                    },
                    {
                        "trace_address": [0],
                        "type": "DELEGATECALL",
                        "method": "transfer",
                        "from": ADDR_B,
                        "to": ADDR_C,
                        "gas_used": 30,
                        "error": "execution reverted: X",
                    },
                ],
                "logs": [
                    {"name": "Transfer", "inputs": [{"name": "to", "value": ADDR_B, "is_indexed": True}],
                     "raw_log": {"address": ADDR_C, "topics": [], "data": "0x"}},
                    {"name": "", "raw": {"address": ADDR_C}},
                ],
                "state_diff": [],
                "asset_changes": [
                    {"type": "Transfer", "from": ADDR_A, "to": ADDR_B, "amount": "100",
                     "raw_amount": "100000000", "dollar_value": "100",
                     "token_info": {"symbol": "USDC"},
                     "asset_info": {"symbol": "USDC", "name": "USD Coin", "decimals": 6,
                                    "contract_address": ADDR_C, "dollar_value": "1"}},
                    {"type": "Transfer", "from": ADDR_B, "to": ADDR_A, "amount": "0.01",
                     "dollar_value": "40", "asset_info": {"name": "Wrapped Ether"}},
                ],
                "exposure_changes": [
                    {"owner": ADDR_A, "spender": ADDR_C, "dollar_value": "5.5"},
                ],
                "balance_changes": [
                    {"address": ADDR_A, "dollar_value": "-60", "transfers": [0, 1]},
                ],
                "state_changes": [
                    {"address": ADDR_C, "storage": [{"slot": "0x01", "previous_value": "0x0", "new_value": "0x1"}]},
                    {"address": ADDR_A, "nonce": {"previous_value": "0x1", "new_value": "0x2"},
                     "balance": {"previousValue": "0x10", "newValue": "0x08"}},
                ],
            },
        },
        "generated_access_list": [
            {"address": ADDR_C, "storage_keys": ["0x01", "0x02"]},
            {"address": ADDR_B, "storage_keys": []},
        ],
    }
