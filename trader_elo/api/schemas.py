"""
Pydantic schemas for ELO calculation requests

Accept camelCase wire payloads (openTime, realizedRR, equityHistory with
{date, equity} points, ...) as well as snake_case field names, and convert
them into the frozen scorer records.
"""
import math
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from trader_elo.scorer.models import AccountSnapshot, EquityPoint, TradeRecord


# =============================================================================
# TRADES
# =============================================================================

class TradeSchema(BaseModel):
    """Single closed trade"""
    open_time: datetime = Field(alias="openTime")
    close_time: datetime = Field(alias="closeTime")
    pnl: float

    entry_price: Optional[float] = Field(alias="entryPrice", default=None)
    exit_price: Optional[float] = Field(alias="exitPrice", default=None)
    stop_loss: Optional[float] = Field(alias="stopLoss", default=None)
    take_profit: Optional[float] = Field(alias="takeProfit", default=None)
    position_size: Optional[float] = Field(alias="positionSize", default=None)
    risk_percent: Optional[float] = Field(alias="riskPercent", default=None)
    duration_minutes: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("tradeDuration", "durationMinutes", "duration_minutes"),
    )
    realized_rr: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("realizedRR", "realizedRr", "realized_rr"),
    )

    class Config:
        populate_by_name = True

    @field_validator("pnl")
    @classmethod
    def check_pnl_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("pnl must be a finite number")
        return v

    @model_validator(mode="after")
    def check_close_after_open(self):
        try:
            closed_before_open = self.close_time < self.open_time
        except TypeError:
            raise ValueError("openTime/closeTime must both be timezone-aware or both naive")
        if closed_before_open:
            raise ValueError("closeTime must not be earlier than openTime")
        return self

    def to_record(self) -> TradeRecord:
        return TradeRecord(
            open_time=self.open_time,
            close_time=self.close_time,
            pnl=self.pnl,
            entry_price=self.entry_price,
            exit_price=self.exit_price,
            stop_loss=self.stop_loss,
            take_profit=self.take_profit,
            position_size=self.position_size,
            risk_percent=self.risk_percent,
            realized_rr=self.realized_rr,
            duration_minutes=self.duration_minutes,
        )


# =============================================================================
# ACCOUNT
# =============================================================================

class EquityPointSchema(BaseModel):
    """Equity or balance curve point ({date, equity} / {date, balance} / {date, value})"""
    date: datetime
    value: float = Field(validation_alias=AliasChoices("value", "equity", "balance"))

    def to_point(self) -> EquityPoint:
        return EquityPoint(date=self.date, value=self.value)


class AccountSchema(BaseModel):
    """Account snapshot"""
    initial_balance: float = Field(alias="initialBalance")
    equity_history: List[EquityPointSchema] = Field(alias="equityHistory", default_factory=list)
    balance_history: List[EquityPointSchema] = Field(alias="balanceHistory", default_factory=list)
    daily_returns: List[float] = Field(alias="dailyReturns", default_factory=list)
    monthly_returns: List[float] = Field(alias="monthlyReturns", default_factory=list)
    daily_returns_start: Optional[date] = Field(alias="dailyReturnsStart", default=None)
    leverage: Optional[float] = None
    account_age_days: Optional[float] = Field(alias="accountAgeDays", default=None)
    trades_per_week: Optional[float] = Field(alias="tradesPerWeek", default=None)

    class Config:
        populate_by_name = True

    def to_snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            initial_balance=self.initial_balance,
            equity_history=tuple(p.to_point() for p in self.equity_history),
            balance_history=tuple(p.to_point() for p in self.balance_history),
            daily_returns=tuple(self.daily_returns),
            monthly_returns=tuple(self.monthly_returns),
            daily_returns_start=self.daily_returns_start,
            leverage=self.leverage,
            account_age_days=self.account_age_days,
            trades_per_week=self.trades_per_week,
        )


# =============================================================================
# REQUEST
# =============================================================================

class ELOCalculationRequest(BaseModel):
    """ELO calculation request"""
    trader_id: str = Field(alias="traderId", min_length=1)
    trades: List[TradeSchema] = []
    account: AccountSchema

    class Config:
        populate_by_name = True

    def to_domain(self):
        """
        Convert into calculate_elo() arguments.

        Returns:
            Tuple of (trader_id, trades, account)
        """
        return (
            self.trader_id,
            [t.to_record() for t in self.trades],
            self.account.to_snapshot(),
        )


def parse_request(payload: Dict[str, Any]):
    """
    Validate a raw request payload.

    Args:
        payload: Dict decoded from JSON (camelCase or snake_case keys)

    Returns:
        Tuple of (trader_id, trades, account) ready for ELOCalculator.calculate_elo()

    Raises:
        pydantic.ValidationError: If the payload is malformed
    """
    return ELOCalculationRequest.model_validate(payload).to_domain()
