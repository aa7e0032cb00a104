"""
Global test fixtures for Trader ELO

Provides reusable trade/account/metric factories for all test modules.
"""

import pytest
import numpy as np
import pandas as pd
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from trader_elo.scorer.catalogue import dependencies_of
from trader_elo.scorer.models import (
    AccountSnapshot,
    EquityPoint,
    MetricResult,
    MetricStatus,
    TradeRecord,
)


@pytest.fixture
def make_trades():
    """
    Build a list of closed trades, one per day

    Usage:
        trades = make_trades(n=10, pnl=100.0)
        trades = make_trades(pnls=[100, -50, 80], position_size=2.0)
    """
    def _create(n=10, pnl=100.0, pnls=None, start=datetime(2024, 1, 1, 9, 0), **fields):
        values = list(pnls) if pnls is not None else [pnl] * n
        trades = []
        for i, value in enumerate(values):
            open_time = start + timedelta(days=i)
            trades.append(TradeRecord(
                open_time=open_time,
                close_time=open_time + timedelta(hours=2),
                pnl=value,
                **fields
            ))
        return trades

    return _create


@pytest.fixture
def make_account():
    """
    Build an account snapshot from a plain list of equity values

    Usage:
        account = make_account(equity=[10000, 11000], account_age_days=30)
    """
    def _create(initial_balance=10000.0, equity=None, balance=None,
                start=datetime(2024, 1, 1), **fields):
        equity_points = tuple(
            EquityPoint(date=start + timedelta(days=i), value=float(v))
            for i, v in enumerate(equity or [])
        )
        balance_points = tuple(
            EquityPoint(date=start + timedelta(days=i), value=float(v))
            for i, v in enumerate(balance or [])
        )
        return AccountSnapshot(
            initial_balance=initial_balance,
            equity_history=equity_points,
            balance_history=balance_points,
            **fields
        )

    return _create


@pytest.fixture
def make_metric():
    """
    Build a MetricResult directly (bypasses MetricCalculator)

    Usage:
        metric = make_metric('winRate', 60.0)
        missing = make_metric('riskSpike', None)
    """
    def _create(name, value, confidence=1.0):
        if value is None:
            return MetricResult(
                name=name,
                value=None,
                status=MetricStatus.MISSING_DATA,
                confidence=0.0,
                dependencies=dependencies_of(name),
                description=f"{name} (missing)",
            )
        return MetricResult(
            name=name,
            value=float(value),
            status=MetricStatus.AVAILABLE,
            confidence=confidence,
            dependencies=dependencies_of(name),
            description=name,
        )

    return _create


@pytest.fixture
def full_data():
    """
    Trader with every optional trade and account field populated

    40 trades (2 wins : 1 loss), varied hours, sizes and RR ratios;
    60 days of daily returns; 40-point rising equity curve.

    Returns:
        Tuple of (trades, account)
    """
    rng = np.random.default_rng(42)
    start = datetime(2024, 1, 1)

    trades = []
    for i in range(40):
        open_time = start + timedelta(days=i, hours=(9 + i * 5) % 24)
        entry = 100.0 + i
        trades.append(TradeRecord(
            open_time=open_time,
            close_time=open_time + timedelta(hours=2),
            pnl=-80.0 if i % 3 == 0 else 150.0,
            entry_price=entry,
            exit_price=entry * (0.98 if i % 3 == 0 else 1.03),
            stop_loss=entry * 0.98,
            take_profit=entry * 1.04,
            position_size=1.5 + 0.1 * i,
            risk_percent=1.0 + (i % 4) * 0.25,
            realized_rr=1.1 + (i % 5) * 0.3,
            duration_minutes=120.0,
        ))

    equity = 10000.0 + np.cumsum(rng.normal(50, 20, 40))
    dates = pd.date_range(start=start, periods=40, freq='D')
    equity_history = tuple(
        EquityPoint(date=d.to_pydatetime(), value=float(v)) for d, v in zip(dates, equity)
    )

    account = AccountSnapshot(
        initial_balance=10000.0,
        equity_history=equity_history,
        balance_history=equity_history,
        daily_returns=tuple(float(r) for r in rng.normal(0.002, 0.01, 60)),
        monthly_returns=(0.03, -0.01, 0.02),
        daily_returns_start=start.date(),
        leverage=2.0,
        account_age_days=400,
        trades_per_week=7.0,
    )

    return trades, account
