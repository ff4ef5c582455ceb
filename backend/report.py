# backend/report.py

from typing import List

from .analytics import date_label
from .schemas import ContractNoteSummary, DashboardView


def _money(value: float) -> str:
    return f"₹{value:,.2f}"


def render_report(view: DashboardView, summaries: List[ContractNoteSummary]) -> str:
    """Markdown export of the dashboard and the notes behind it."""
    lines = ["# Trading Report", ""]
    if not view.has_data:
        lines.append("No Data Available. Upload a contract note to see analytics.")
        return "\n".join(lines) + "\n"

    lines += [
        "## Overview",
        "",
        "| Metric | Value |",
        "| --- | --- |",
        f"| Net P&L | {_money(view.total_net_pnl)} |",
        f"| Gross P&L | {_money(view.total_gross_pnl)} |",
        f"| Total Charges | {_money(view.total_charges)} |",
        f"| Trades | {view.total_trades} |",
        f"| Win Rate (Days) | {view.win_rate}% ({view.winning_days}W / {view.losing_days}L) |",
        f"| Profit Factor | {view.profit_factor} |",
        f"| Profit Retained | {view.retained_profit_pct:.1f}% |",
        "",
        "## Contract Notes",
        "",
        "| Date | File | Trades | Gross P&L | Charges | Net P&L |",
        "| --- | --- | --- | --- | --- | --- |",
    ]
    for note in summaries:
        lines.append(
            f"| {date_label(note)} | {note.file_name} | {note.trade_count} | "
            f"{_money(note.gross_pnl)} | {_money(note.total_charges)} | {_money(note.net_pnl)} |"
        )
    return "\n".join(lines) + "\n"
