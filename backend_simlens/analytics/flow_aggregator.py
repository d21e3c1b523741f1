"""
Flow aggregator: token/value transfers to per-participant and per-token statistics.

Responsibilities:
- Accumulate received/sent USD for a focal actor, or total transfer volume when none is set.
- Keep a ledger per participant (lower-cased address) and per token (symbol, else name, else "Unknown").
- Build the flow series (actor: cumulative signed net; otherwise: per-transfer size)
  and downsample it for charts.

Only transfers with a parseable, non-zero USD value take part in monetary
aggregates; counts elsewhere (e.g. number of asset changes) are unaffected.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from backend_simlens.simlens_logging import get_logger
from backend_simlens.simulation.models import AssetChange, BalanceChange, ExposureChange

logger = get_logger(__name__)

UNKNOWN_TOKEN = "Unknown"
FLOW_SERIES_MAX_POINTS = 60
NET_FLOW_EPSILON = 0.01
NET_FLOW_MAX_ROWS = 12
NET_FLOW_SIDE_ROWS = 6

FlowWindow = Literal["30", "100", "all"]

T = TypeVar("T")


def parse_usd(value: Any) -> float | None:
    """Parse a USD amount ("1,234.5", 12.0); None when absent, unparsable, or non-finite."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        n = float(value)
    elif isinstance(value, str):
        s = value.replace(",", "").strip()
        if not s:
            return None
        try:
            n = float(s)
        except ValueError:
            return None
    else:
        return None
    return n if math.isfinite(n) else None


def usd_magnitude(value: Any) -> float:
    """Absolute USD value, 0.0 when unparsable."""
    n = parse_usd(value)
    return abs(n) if n is not None else 0.0


def _text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def downsample(values: Sequence[T], max_points: int) -> list[T]:
    """
    Stride-sample values down to at most max_points, keeping evenly spaced indices.

    len(result) == min(len(values), max_points); the first point is always kept.
    """
    if max_points <= 0:
        return []
    n = len(values)
    if n <= max_points:
        return list(values)
    return [values[(i * n) // max_points] for i in range(max_points)]


@dataclass(frozen=True)
class ParticipantFlow:
    key: str
    address: str
    in_usd: float
    out_usd: float

    @property
    def net_usd(self) -> float:
        return self.in_usd - self.out_usd

    @property
    def volume_usd(self) -> float:
        return self.in_usd + self.out_usd

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "in_usd": self.in_usd,
            "out_usd": self.out_usd,
            "net_usd": self.net_usd,
            "volume_usd": self.volume_usd,
        }


@dataclass(frozen=True)
class TokenFlow:
    key: str
    symbol: str
    name: str | None
    logo: str | None
    usd: float
    count: int


@dataclass(frozen=True)
class FlowStats:
    """Aggregated flows for one batch of asset changes."""

    actor: str | None
    received_usd: float
    sent_usd: float
    total_volume_usd: float
    transfer_count: int
    participants: tuple[ParticipantFlow, ...]
    tokens: tuple[TokenFlow, ...]
    flow_points: tuple[float, ...]

    @property
    def net_usd(self) -> float:
        return self.received_usd - self.sent_usd if self.actor else 0.0

    @property
    def counterparties(self) -> tuple[ParticipantFlow, ...]:
        """Participants ranked by volume, excluding the actor when one is set."""
        if not self.actor:
            return self.participants
        return tuple(p for p in self.participants if p.key != self.actor)

    def to_dict(self, window: FlowWindow | int = "30") -> dict[str, Any]:
        """Totals and ledgers plus the windowed flow series and net-flow rows."""
        return {
            "actor": self.actor,
            "received_usd": self.received_usd,
            "sent_usd": self.sent_usd,
            "net_usd": self.net_usd,
            "total_volume_usd": self.total_volume_usd,
            "transfer_count": self.transfer_count,
            "counterparties": [p.to_dict() for p in self.counterparties],
            "tokens": [
                {"symbol": t.symbol, "name": t.name, "usd": t.usd, "count": t.count}
                for t in self.tokens
            ],
            "series": flow_window(self.flow_points, window),
            "net_flow": [p.to_dict() for p in net_flow_by_participant(self.participants)],
        }


class _Ledger:
    def __init__(self, address: str) -> None:
        self.address = address
        self.in_usd = 0.0
        self.out_usd = 0.0


def aggregate_flows(
    asset_changes: Iterable[AssetChange] | None,
    actor: str | None = None,
) -> FlowStats:
    """
    Aggregate asset changes into actor totals, participant and token ledgers, and a flow series.

    actor is matched case-insensitively against from/to addresses.
    """
    actor_key = (_text(actor) or "").lower() or None

    received = sent = volume = 0.0
    transfer_count = 0
    participants: dict[str, _Ledger] = {}
    tokens: dict[str, TokenFlow] = {}
    points: list[float] = []
    cumulative_net = 0.0

    for change in asset_changes or ():
        if not isinstance(change, AssetChange):
            continue
        usd = usd_magnitude(change.dollar_value)
        if usd <= 0:
            continue
        transfer_count += 1
        volume += usd

        sender = _text(change.from_address)
        recipient = _text(change.to_address)
        sender_key = sender.lower() if sender else None
        recipient_key = recipient.lower() if recipient else None

        if actor_key:
            if sender_key == actor_key:
                sent += usd
            if recipient_key == actor_key:
                received += usd

        if sender and sender_key:
            participants.setdefault(sender_key, _Ledger(sender)).out_usd += usd
        if recipient and recipient_key:
            participants.setdefault(recipient_key, _Ledger(recipient)).in_usd += usd

        info = change.asset_info
        symbol = _text(info.symbol) if info else None
        name = _text(info.name) if info else None
        logo = _text(info.logo) if info else None
        token_key = symbol or name or UNKNOWN_TOKEN
        token = tokens.get(token_key)
        tokens[token_key] = TokenFlow(
            key=token_key,
            symbol=token.symbol if token else (symbol or token_key),
            name=token.name if token else name,
            logo=token.logo if token else logo,
            usd=(token.usd if token else 0.0) + usd,
            count=(token.count if token else 0) + 1,
        )

        if actor_key:
            delta = (usd if recipient_key == actor_key else 0.0) - (
                usd if sender_key == actor_key else 0.0
            )
            cumulative_net += delta
            points.append(cumulative_net)
        else:
            points.append(usd)

    participant_rows = sorted(
        (
            ParticipantFlow(key=key, address=led.address, in_usd=led.in_usd, out_usd=led.out_usd)
            for key, led in participants.items()
        ),
        key=lambda p: p.volume_usd,
        reverse=True,
    )
    token_rows = sorted(tokens.values(), key=lambda t: t.usd, reverse=True)

    stats = FlowStats(
        actor=actor_key,
        received_usd=received,
        sent_usd=sent,
        total_volume_usd=volume,
        transfer_count=transfer_count,
        participants=tuple(participant_rows),
        tokens=tuple(token_rows),
        flow_points=tuple(points),
    )
    logger.debug(
        "flow_stats_computed",
        transfer_count=transfer_count,
        participant_count=len(participant_rows),
        token_count=len(token_rows),
        has_actor=bool(actor_key),
    )
    return stats


def flow_window(
    points: Sequence[float],
    window: FlowWindow | int = "30",
    max_points: int = FLOW_SERIES_MAX_POINTS,
) -> list[float]:
    """Last N points ("30", "100", or an int; "all" keeps everything), downsampled to max_points."""
    if not points:
        return []
    if window == "all":
        recent = list(points)
    else:
        size = int(window)
        recent = list(points[-size:]) if size > 0 else []
    return downsample(recent, max_points)


def net_flow_by_participant(participants: Iterable[ParticipantFlow]) -> list[ParticipantFlow]:
    """
    Participants with non-trivial net flow, largest gain first.

    More than twelve candidates: the six largest gainers and the six largest losers.
    """
    ranked = sorted(
        (p for p in participants if abs(p.net_usd) > NET_FLOW_EPSILON),
        key=lambda p: p.net_usd,
        reverse=True,
    )
    if len(ranked) <= NET_FLOW_MAX_ROWS:
        return ranked
    gainers = [p for p in ranked if p.net_usd > 0]
    losers = [p for p in ranked if p.net_usd < 0]
    return gainers[:NET_FLOW_SIDE_ROWS] + losers[-NET_FLOW_SIDE_ROWS:]


def total_known_usd(
    asset_changes: Iterable[AssetChange] | None,
    exposure_changes: Iterable[ExposureChange] | None,
) -> float:
    """Sum of every parseable USD value across asset and exposure changes."""
    total = 0.0
    for change in list(asset_changes or ()) + list(exposure_changes or ()):
        total += parse_usd(change.dollar_value) or 0.0
    return total


def rank_by_usd(changes: Iterable[T]) -> list[tuple[T, float]]:
    """(change, |usd|) pairs, largest first; unparsable values rank as 0."""
    rows = [(c, usd_magnitude(getattr(c, "dollar_value", None))) for c in changes]
    rows.sort(key=lambda r: r[1], reverse=True)
    return rows


def rank_balance_changes(changes: Iterable[BalanceChange]) -> list[tuple[BalanceChange, float, int]]:
    """(change, |usd|, referenced transfer count), largest USD first."""
    rows = [(c, usd_magnitude(c.dollar_value), len(c.transfers or ())) for c in changes]
    rows.sort(key=lambda r: r[1], reverse=True)
    return rows
