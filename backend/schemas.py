# backend/schemas.py

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Side = Literal["BUY", "SELL"]


# ---------------------------
# Extraction output
# ---------------------------

class Trade(BaseModel):
    model_config = ConfigDict(strict=True)

    symbol: str
    trade_type: Side
    quantity: float
    price: float
    order_value: float       # nominally quantity * price
    exchange: str

    @field_validator("quantity", "price")
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("must be ≥ 0")
        return v


class Charges(BaseModel):
    model_config = ConfigDict(strict=True)

    brokerage: float
    stt: float
    gst: float
    total_charges: float
    stamp_duty: Optional[float] = None
    exchange_charges: Optional[float] = None
    sebi_charges: Optional[float] = None

    def component_sum(self) -> float:
        return (
            self.brokerage
            + self.stt
            + self.gst
            + (self.stamp_duty or 0)
            + (self.exchange_charges or 0)
            + (self.sebi_charges or 0)
        )


class PnLSummary(BaseModel):
    model_config = ConfigDict(strict=True)

    gross_pnl: float
    net_pnl: float


class ExtractedData(BaseModel):
    model_config = ConfigDict(strict=True)

    trades: List[Trade]
    charges: Charges
    summary: PnLSummary


# ---------------------------
# Persisted records
# ---------------------------

class ContractNoteSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    file_name: str
    upload_date: Optional[datetime] = None
    gross_pnl: float = 0
    net_pnl: float = 0
    total_charges: float = 0
    trade_count: int = 0
    processed: bool = True


class TradeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_note_id: str
    symbol: str
    trade_type: str
    quantity: float
    price: float
    order_value: float
    exchange: str
    date: Optional[datetime] = None


class ChargesRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_note_id: str
    brokerage: float = 0
    stt: float = 0
    gst: float = 0
    stamp_duty: float = 0
    exchange_charges: float = 0
    sebi_charges: float = 0
    total_charges: float = 0
    date: Optional[datetime] = None


# ---------------------------
# Dashboard view
# ---------------------------

class EquityPoint(BaseModel):
    name: str        # e.g. "5 Jan"
    pnl: float
    equity: float


class CostSlice(BaseModel):
    name: str
    value: float


class DashboardView(BaseModel):
    has_data: bool = False
    note_count: int = 0
    total_net_pnl: float = 0
    total_gross_pnl: float = 0
    total_charges: float = 0
    total_trades: int = 0
    winning_days: int = 0
    losing_days: int = 0
    win_rate: int = 0
    profit_factor: str = "0.00"
    retained_profit_pct: float = 0
    equity_curve: List[EquityPoint] = Field(default_factory=list)
    cost_breakdown: List[CostSlice] = Field(default_factory=list)
