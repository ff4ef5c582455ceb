# backend/analytics.py

import logging
import math
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from .schemas import CostSlice, DashboardView, EquityPoint

logger = logging.getLogger(__name__)

BASE_CAPITAL = 100000
TAX_SHARE = 0.4
BROKERAGE_SHARE = 0.6


def _field(note: Any, name: str):
    if isinstance(note, dict):
        return note.get(name)
    return getattr(note, name, None)


def _number(note: Any, name: str) -> float:
    """Numeric field of a summary, 0 when missing or not a finite number."""
    value = _field(note, name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return value


def _timestamp(note: Any) -> float:
    value = _field(note, "upload_date")
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0


def date_label(note: Any) -> str:
    value = _field(note, "upload_date")
    if not isinstance(value, datetime):
        return ""
    return f"{value.day} {value.strftime('%b')}"


def compute_dashboard(summaries: Iterable[Any]) -> DashboardView:
    """
    Derive the dashboard from a full snapshot of contract-note summaries.

    Recomputed from scratch each time; accepts models or plain dicts and
    treats missing or non-numeric fields as 0.
    """
    notes = list(summaries or [])
    if not notes:
        return DashboardView()

    total_net = sum(_number(n, "net_pnl") for n in notes)
    total_gross = sum(_number(n, "gross_pnl") for n in notes)
    total_charges = sum(_number(n, "total_charges") for n in notes)
    total_trades = int(sum(_number(n, "trade_count") for n in notes))

    winning_days = sum(1 for n in notes if _number(n, "net_pnl") > 0)
    losing_days = len(notes) - winning_days
    # half-up rounding
    win_rate = int(math.floor(winning_days / len(notes) * 100 + 0.5))

    profit_factor = f"{total_gross / total_charges:.2f}" if total_charges > 0 else "0.00"
    retained = (total_net / total_gross) * 100 if total_gross > 0 else 0

    equity_curve = []
    running = BASE_CAPITAL
    for note in sorted(notes, key=_timestamp):
        pnl = _number(note, "net_pnl")
        running += pnl
        equity_curve.append(EquityPoint(name=date_label(note), pnl=pnl, equity=running))

    cost_breakdown = [
        CostSlice(name="Total Charges", value=total_charges),
        CostSlice(name="Taxes (Est)", value=total_charges * TAX_SHARE),
        CostSlice(name="Brokerage (Est)", value=total_charges * BROKERAGE_SHARE),
    ]

    return DashboardView(
        has_data=True,
        note_count=len(notes),
        total_net_pnl=total_net,
        total_gross_pnl=total_gross,
        total_charges=total_charges,
        total_trades=total_trades,
        winning_days=winning_days,
        losing_days=losing_days,
        win_rate=win_rate,
        profit_factor=profit_factor,
        retained_profit_pct=retained,
        equity_curve=equity_curve,
        cost_breakdown=cost_breakdown,
    )


class LiveDashboard:
    """Dashboard view kept current by a store subscription."""

    def __init__(self, store, user_id: str, on_update: Optional[Callable[[DashboardView], None]] = None):
        self.user_id = user_id
        self.on_update = on_update
        self.view = DashboardView()
        self._unsubscribe = store.subscribe_summaries(user_id, self._refresh)

    def _refresh(self, summaries) -> None:
        self.view = compute_dashboard(summaries)
        logger.debug("Dashboard for %s recomputed over %d notes", self.user_id, self.view.note_count)
        if self.on_update is not None:
            self.on_update(self.view)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
