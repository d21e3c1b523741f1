"""
Supported EVM chains: display labels and block-explorer links.

Unknown chain ids label as "Chain <id>" and fall back to Etherscan.
"""

from __future__ import annotations

from dataclasses import dataclass

FALLBACK_EXPLORER_URL = "https://etherscan.io"


@dataclass(frozen=True)
class Chain:
    chain_id: int
    name: str
    explorer_name: str
    explorer_url: str


SUPPORTED_CHAINS: dict[int, Chain] = {
    c.chain_id: c
    for c in (
        Chain(8453, "Base", "Basescan", "https://basescan.org"),
        Chain(84532, "Base Sepolia", "Basescan", "https://sepolia.basescan.org"),
        Chain(1, "Ethereum", "Etherscan", "https://etherscan.io"),
        Chain(42161, "Arbitrum One", "Arbiscan", "https://arbiscan.io"),
        Chain(10, "OP Mainnet", "Optimism Explorer", "https://optimistic.etherscan.io"),
        Chain(137, "Polygon", "PolygonScan", "https://polygonscan.com"),
        Chain(7777777, "Zora", "Explorer", "https://explorer.zora.energy"),
    )
}


def is_supported_chain_id(chain_id: int) -> bool:
    return chain_id in SUPPORTED_CHAINS


def get_chain_label(chain_id: int) -> str:
    chain = SUPPORTED_CHAINS.get(chain_id)
    return chain.name if chain else f"Chain {chain_id}"


def get_explorer_name(chain_id: int) -> str:
    chain = SUPPORTED_CHAINS.get(chain_id)
    return chain.explorer_name if chain else "Explorer"


def _explorer_base(chain_id: int) -> str:
    chain = SUPPORTED_CHAINS.get(chain_id)
    return chain.explorer_url if chain else FALLBACK_EXPLORER_URL


def get_explorer_tx_url(chain_id: int, tx_hash: str) -> str:
    return f"{_explorer_base(chain_id)}/tx/{tx_hash}"


def get_explorer_address_url(chain_id: int, address: str) -> str:
    return f"{_explorer_base(chain_id)}/address/{address}"
