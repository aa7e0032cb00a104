"""
Metric Calculator - Dependency-Aware Performance Metrics

Computes every metric of the catalogue from raw trades and account data.

Rules:
- One MetricResult per metric per call, never more, never fewer
- A metric whose required fields are absent, or whose minimum sample size
  is not met, is MISSING_DATA (value None). It is never approximated,
  interpolated or defaulted
- Every returned value is finite and clamped to the metric's domain

No knowledge of blocks or final scoring (see BlockCalculator).
"""

import math
from collections import Counter
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from trader_elo.config import get_elo_config
from trader_elo.scorer.catalogue import METRIC_DEFINITIONS, dependencies_of
from trader_elo.scorer.models import (
    AccountSnapshot,
    MetricResult,
    MetricStatus,
    TradeRecord,
)
from trader_elo.utils.logger import get_logger

logger = get_logger(__name__)

# Catalogue names of optional trade fields -> TradeRecord attributes
OPTIONAL_TRADE_FIELDS = {
    'realizedRR': 'realized_rr',
    'stopLoss': 'stop_loss',
    'takeProfit': 'take_profit',
    'riskPercent': 'risk_percent',
    'positionSize': 'position_size',
}


class MetricCalculator:
    """
    Calculates performance, risk, consistency and anti-manipulation metrics.

    Stateless: holds only the minimum sample sizes below.

    Metric confidence is the fraction of the metric's optional dependencies
    present on the trades it was computed from.
    """

    MIN_EQUITY_POINTS_DRAWDOWN = 2
    MIN_DAILY_RETURNS_VOLATILITY = 2
    MIN_EQUITY_POINTS_SMOOTHNESS = 10
    MIN_TRADES_FREQUENCY = 10
    MIN_WEEKS_FREQUENCY = 4
    MIN_TRADES_CONCENTRATION = 10
    MIN_RISK_SAMPLES_SPIKE = 5
    MIN_TRADES_HUMAN = 10
    MIN_TRADES_REGIME = 20

    TOP_PROFIT_SHARE = 0.10  # Top 10% of trades by PnL
    REGIME_WINDOW_DAYS = 7
    TRADING_DAYS_PER_YEAR = 252

    def __init__(self, config=None):
        """
        Initialize metric calculator.

        Args:
            config: Config object or dict with an 'elo' section
                    (None = built-in defaults)

        Raises:
            KeyError: If a config without an 'elo' section is given (Fast Fail)
        """
        get_elo_config(config)

        logger.info(
            f"MetricCalculator initialized: {len(METRIC_DEFINITIONS)} metrics, "
            f"min_trades(frequency={self.MIN_TRADES_FREQUENCY}, human={self.MIN_TRADES_HUMAN}, "
            f"regime={self.MIN_TRADES_REGIME}, concentration={self.MIN_TRADES_CONCENTRATION})"
        )

    # =========================================================================
    # ENTRY POINT
    # =========================================================================
    def calculate_all(
        self,
        trades: Sequence[TradeRecord],
        account: AccountSnapshot
    ) -> List[MetricResult]:
        """
        Calculate every catalogue metric.

        Args:
            trades: Closed trades
            account: Account snapshot

        Returns:
            One MetricResult per catalogue metric, in catalogue order
        """
        win_rate = self.calculate_win_rate(trades)

        results = {
            'annualizedReturn': self.calculate_annualized_return(account),
            'winRate': win_rate,
            'averageRR': self.calculate_average_rr(trades),
            'expectancy': self.calculate_expectancy(trades, win_rate.value),
            'maxDrawdown': self.calculate_max_drawdown(account),
            'volatility': self.calculate_volatility(account),
            'averageRiskPerTrade': self.calculate_average_risk_per_trade(trades),
            'riskSpike': self.calculate_risk_spike(trades),
            'equitySmoothness': self.calculate_equity_smoothness(account),
            'monthlyPositiveRatio': self.calculate_monthly_positive_ratio(account),
            'tradeFrequencyStability': self.calculate_trade_frequency_stability(trades),
            'humanVariability': self.calculate_human_variability(trades),
            'marketRegimeBalance': self.calculate_market_regime_balance(trades, account),
            'profitConcentrationIndex': self.calculate_profit_concentration(trades),
            'accountAgeScore': self.calculate_account_age_score(account),
        }

        ordered = [results[name] for name in METRIC_DEFINITIONS]

        for metric in ordered:
            logger.debug(
                f"Metric {metric.name}: status={metric.status.value}, value={metric.value}"
            )

        return ordered

    # =========================================================================
    # PERFORMANCE METRICS
    # =========================================================================
    def calculate_annualized_return(self, account: AccountSnapshot) -> MetricResult:
        """
        Annualized return in percent, clamped to [-100, 1000].

        (1 + total_return) ^ (365 / account_age_days) - 1
        """
        name = 'annualizedReturn'
        initial = account.initial_balance
        final = account.final_balance
        days = account.account_age_days

        if initial is None or initial <= 0 or final is None or days is None or days <= 0:
            return self._missing(
                name,
                'Annualized Return requires initial balance, final balance, and account age'
            )

        growth = final / initial  # == 1 + total_return
        if growth <= 0:
            annualized = -100.0
        else:
            log_growth = (365.0 / days) * math.log(growth)
            if log_growth > math.log(11.0):
                # Beyond +1000%, also keeps exp() from overflowing
                annualized = 1000.0
            else:
                annualized = (math.exp(log_growth) - 1.0) * 100.0

        return self._available(name, _clamp(annualized, -100.0, 1000.0), 'Annualized Return (%)')

    def calculate_win_rate(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """Winning trades / total trades x 100."""
        name = 'winRate'
        if not trades:
            return self._missing(name, 'Win Rate requires trade data')

        winning = sum(1 for t in trades if t.is_win)
        return self._available(name, winning / len(trades) * 100.0, 'Win Rate (%)')

    def calculate_average_rr(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """
        Average risk/reward ratio.

        Realized RR is preferred; otherwise derived from SL/TP distances
        around the entry price.
        """
        name = 'averageRR'

        realized = [t for t in trades if t.realized_rr is not None and t.realized_rr > 0]
        if realized:
            return self._available(
                name,
                float(np.mean([t.realized_rr for t in realized])),
                'Average Risk-Reward Ratio (from realized data)',
                confidence=self._confidence(name, realized),
            )

        with_levels = [
            t for t in trades
            if t.stop_loss is not None and t.stop_loss > 0
            and t.take_profit is not None and t.take_profit > 0
            and t.entry_price is not None
        ]
        if not with_levels:
            return self._missing(
                name,
                'Average RR requires either realized RR data or stop loss/take profit levels'
            )

        ratios = []
        for t in with_levels:
            risk = abs(t.entry_price - t.stop_loss)
            reward = abs(t.take_profit - t.entry_price)
            ratios.append(reward / risk if risk > 0 else 0.0)

        return self._available(
            name,
            float(np.mean(ratios)),
            'Average Risk-Reward Ratio (calculated from SL/TP)',
            confidence=self._confidence(name, with_levels),
        )

    def calculate_expectancy(
        self,
        trades: Sequence[TradeRecord],
        win_rate: Optional[float]
    ) -> MetricResult:
        """
        Expected profit per trade in account currency.

        Formula: (win_rate x avg_win) - ((1 - win_rate) x avg_loss)

        Args:
            trades: Closed trades
            win_rate: Win rate in percent (None when winRate is missing)
        """
        name = 'expectancy'
        wins = [t.pnl for t in trades if t.is_win]
        losses = [t.pnl for t in trades if t.is_loss]

        if win_rate is None or not wins or not losses:
            return self._missing(name, 'Expectancy requires both winning and losing trades')

        avg_win = float(np.mean(wins))
        avg_loss = abs(float(np.mean(losses)))
        rate = win_rate / 100.0

        expectancy = rate * avg_win - (1.0 - rate) * avg_loss
        return self._available(name, expectancy, 'Expectancy (expected profit per trade)')

    # =========================================================================
    # RISK METRICS
    # =========================================================================
    def calculate_max_drawdown(self, account: AccountSnapshot) -> MetricResult:
        """
        Maximum drawdown of the equity curve, as percent of the running peak.
        """
        name = 'maxDrawdown'
        curve = account.equity_history
        if len(curve) < self.MIN_EQUITY_POINTS_DRAWDOWN:
            return self._missing(name, 'Max Drawdown requires equity history')

        equity = np.array([p.value for p in curve], dtype=float)
        running_max = np.maximum.accumulate(equity)
        drawdowns = running_max - equity

        max_dd = 0.0
        for i, dd in enumerate(drawdowns):
            if running_max[i] > 0:
                max_dd = max(max_dd, dd / running_max[i])

        return self._available(name, _clamp(max_dd * 100.0, 0.0, 100.0), 'Maximum Drawdown (%)')

    def calculate_volatility(self, account: AccountSnapshot) -> MetricResult:
        """Annualized volatility of daily returns, in percent."""
        name = 'volatility'
        returns = account.daily_returns
        if len(returns) < self.MIN_DAILY_RETURNS_VOLATILITY:
            return self._missing(name, 'Volatility requires daily returns data')

        std = float(np.std(np.asarray(returns, dtype=float)))
        volatility = std * math.sqrt(self.TRADING_DAYS_PER_YEAR) * 100.0
        return self._available(name, max(0.0, volatility), 'Annualized Volatility (%)')

    def calculate_average_risk_per_trade(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """
        Average risk per trade, in percent.

        risk_percent is used as-is when present; otherwise risk is derived
        from the stop distance relative to the entry price.
        """
        name = 'averageRiskPerTrade'

        declared = [t for t in trades if t.risk_percent is not None]
        if declared:
            return self._available(
                name,
                _clamp(float(np.mean([t.risk_percent for t in declared])), 0.0, 100.0),
                'Average Risk per Trade (%)',
                confidence=self._confidence(name, declared),
            )

        with_stops = [
            t for t in trades
            if t.stop_loss is not None and t.stop_loss > 0
            and t.position_size is not None and t.position_size > 0
            and t.entry_price is not None and t.entry_price > 0
        ]
        if not with_stops:
            return self._missing(
                name,
                'Average Risk requires either risk percent or stop loss + position size data'
            )

        return self._available(
            name,
            _clamp(
                float(np.mean([_derived_risk_fraction(t) for t in with_stops])) * 100.0, 0.0, 100.0
            ),
            'Average Risk per Trade (%)',
            confidence=self._confidence(name, with_stops),
        )

    def calculate_risk_spike(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """Ratio of the largest per-trade risk to the average per-trade risk."""
        name = 'riskSpike'

        risks = [r for r in (_trade_risk_percent(t) for t in trades) if r is not None and r > 0]
        if len(risks) < self.MIN_RISK_SAMPLES_SPIKE:
            return self._missing(name, 'Risk Spike requires sufficient risk data from trades')

        spike = max(risks) / float(np.mean(risks))
        return self._available(name, max(1.0, spike), 'Risk Spike (ratio of max risk to average risk)')

    # =========================================================================
    # CONSISTENCY METRICS
    # =========================================================================
    def calculate_equity_smoothness(self, account: AccountSnapshot) -> MetricResult:
        """1 / coefficient of variation of the equity curve (higher = smoother)."""
        name = 'equitySmoothness'
        curve = account.equity_history
        if len(curve) < self.MIN_EQUITY_POINTS_SMOOTHNESS:
            return self._missing(name, 'Equity Smoothness requires sufficient equity history')

        cv = _coefficient_of_variation([p.value for p in curve])
        smoothness = 1.0 / cv if cv > 0 else 0.0
        return self._available(name, smoothness, 'Equity Smoothness (higher = smoother growth)')

    def calculate_monthly_positive_ratio(self, account: AccountSnapshot) -> MetricResult:
        """Share of positive months, in percent."""
        name = 'monthlyPositiveRatio'
        months = account.monthly_returns
        if not months:
            return self._missing(name, 'Monthly Positive Ratio requires monthly returns data')

        positive = sum(1 for r in months if r > 0)
        return self._available(name, positive / len(months) * 100.0, 'Monthly Positive Ratio (%)')

    def calculate_trade_frequency_stability(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """
        Stability of weekly trade counts: 100 x (1 - CV(weekly counts)).

        Weeks are ISO calendar weeks of the trade open time.
        """
        name = 'tradeFrequencyStability'
        if len(trades) < self.MIN_TRADES_FREQUENCY:
            return self._missing(name, 'Trade Frequency Stability requires sufficient trade history')

        weeks = pd.DataFrame(
            [tuple(t.open_time.isocalendar())[:2] for t in trades],
            columns=['year', 'week']
        )
        weekly_counts = weeks.groupby(['year', 'week']).size().to_numpy(dtype=float)

        if len(weekly_counts) < self.MIN_WEEKS_FREQUENCY:
            return self._missing(name, 'Trade Frequency Stability requires data from multiple weeks')

        cv = _coefficient_of_variation(weekly_counts)
        stability = _clamp((1.0 - cv) * 100.0, 0.0, 100.0)
        return self._available(name, stability, 'Trade Frequency Stability (%)')

    def calculate_human_variability(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """
        Human variability score (0-100, higher = more human-like).

        Four automation signals, 25 points each:
        1. Repeated position sizes
        2. Repeated RR ratios (rounded to 2 decimals)
        3. Regular opening hours (low normalized hour entropy)
        4. Round-thousand position sizes
        """
        name = 'humanVariability'

        valid = [
            t for t in trades
            if t.open_time is not None
            and t.position_size
            and (t.realized_rr or (t.stop_loss and t.take_profit))
        ]
        if len(valid) < self.MIN_TRADES_HUMAN:
            return self._missing(
                name,
                'Human Variability requires sufficient trade data with timestamps and sizing'
            )

        automation = 0.0

        sizes = [t.position_size for t in valid]
        size_repetition = 1.0 - len(set(sizes)) / len(sizes)
        automation += size_repetition * 25

        rr_ratios = [rr for rr in (_trade_rr(t) for t in valid) if rr > 0]
        if rr_ratios:
            unique_rrs = {round(rr, 2) for rr in rr_ratios}
            rr_repetition = 1.0 - len(unique_rrs) / len(rr_ratios)
            automation += rr_repetition * 25

        hour_entropy = _normalized_entropy([t.open_time.hour for t in valid])
        automation += (1.0 - hour_entropy) * 25

        round_share = sum(1 for s in sizes if s % 1000 == 0) / len(sizes)
        automation += round_share * 25

        variability = _clamp(100.0 - automation, 0.0, 100.0)
        return self._available(
            name,
            variability,
            'Human Variability Score (higher = more human-like trading patterns)'
        )

    def calculate_market_regime_balance(
        self,
        trades: Sequence[TradeRecord],
        account: AccountSnapshot
    ) -> MetricResult:
        """
        Balance of trades between high- and low-volatility periods (0-100).

        A trade is in a high-volatility period when the sum of absolute daily
        returns within 7 days of its open date, divided by 7, exceeds the
        average absolute daily return. 100 = evenly split, 0 = one regime only.
        """
        name = 'marketRegimeBalance'
        returns = account.daily_returns
        if not returns or len(trades) < self.MIN_TRADES_REGIME:
            return self._missing(
                name,
                'Market Regime Balance requires volatility data and sufficient trades'
            )

        start = account.daily_returns_start or min(t.open_time for t in trades).date()
        abs_returns = pd.Series(
            np.abs(np.asarray(returns, dtype=float)),
            index=pd.date_range(start=pd.Timestamp(start), periods=len(returns), freq='D')
        )
        avg_volatility = float(abs_returns.mean())
        window = pd.Timedelta(days=self.REGIME_WINDOW_DAYS)

        high_volatility = 0
        for trade in trades:
            distance = abs_returns.index - pd.Timestamp(trade.open_time.date())
            in_window = (distance > -window) & (distance < window)
            recent = float(abs_returns[in_window].sum()) / self.REGIME_WINDOW_DAYS
            if recent > avg_volatility:
                high_volatility += 1

        ratio = high_volatility / len(trades)
        balance = min(ratio, 1.0 - ratio) * 2.0 * 100.0
        return self._available(
            name,
            _clamp(balance, 0.0, 100.0),
            'Market Regime Balance (optimal trading across volatility conditions)'
        )

    # =========================================================================
    # ACCOUNT HEALTH / LONGEVITY
    # =========================================================================
    def calculate_profit_concentration(self, trades: Sequence[TradeRecord]) -> MetricResult:
        """
        Share of total profit produced by the top 10% of trades by PnL.

        Lower = profits spread over many trades.
        """
        name = 'profitConcentrationIndex'
        if len(trades) < self.MIN_TRADES_CONCENTRATION:
            return self._missing(name, 'Profit Concentration requires sufficient trade data')

        pnls = sorted((t.pnl for t in trades), reverse=True)
        total_profit = float(sum(pnls))
        if total_profit <= 0:
            return self._missing(name, 'Profit Concentration requires positive total profit')

        top_count = max(1, math.floor(len(pnls) * self.TOP_PROFIT_SHARE))
        top_profit = float(sum(pnls[:top_count]))

        return self._available(
            name,
            max(0.0, top_profit / total_profit),
            'Profit Concentration Index (0-1, lower = better diversification)'
        )

    def calculate_account_age_score(self, account: AccountSnapshot) -> MetricResult:
        """Account age in days."""
        name = 'accountAgeScore'
        days = account.account_age_days
        if days is None or days <= 0:
            return self._missing(name, 'Account Age requires account age in days')

        return self._available(name, float(days), 'Account Age (days)')

    # =========================================================================
    # HELPERS
    # =========================================================================
    def _confidence(self, name: str, used_trades: Sequence[TradeRecord]) -> float:
        """
        Fraction of the metric's optional dependencies set on at least one of
        the trades it was computed from (1.0 when it declares none).
        """
        optional = dependencies_of(name).optional
        if not optional:
            return 1.0

        present = sum(
            1 for field_name in optional
            if any(getattr(t, OPTIONAL_TRADE_FIELDS[field_name]) is not None for t in used_trades)
        )
        return present / len(optional)

    def _missing(self, name: str, description: str) -> MetricResult:
        return MetricResult(
            name=name,
            value=None,
            status=MetricStatus.MISSING_DATA,
            confidence=0.0,
            dependencies=dependencies_of(name),
            description=description,
        )

    def _available(
        self,
        name: str,
        value: float,
        description: str,
        confidence: float = 1.0
    ) -> MetricResult:
        value = float(value)
        if not math.isfinite(value):
            logger.debug(f"Metric {name} produced non-finite value {value}, reporting missing")
            return self._missing(name, f"{description} could not be computed from the supplied data")

        return MetricResult(
            name=name,
            value=value,
            status=MetricStatus.AVAILABLE,
            confidence=_clamp(confidence, 0.0, 1.0),
            dependencies=dependencies_of(name),
            description=description,
        )


# =============================================================================
# MODULE HELPERS
# =============================================================================
def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _coefficient_of_variation(values) -> float:
    """Population stdev / mean; 0 when the mean is not positive."""
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean())
    if mean <= 0:
        return 0.0
    return float(arr.std()) / mean


def _normalized_entropy(values: Sequence[int]) -> float:
    """Shannon entropy (base 2) normalized by log2(distinct values), in [0, 1]."""
    counts = Counter(values)
    if len(counts) <= 1:
        return 0.0

    n = len(values)
    entropy = 0.0
    for count in counts.values():
        p = count / n
        entropy -= p * math.log2(p)

    return entropy / math.log2(len(counts))


def _derived_risk_fraction(trade: TradeRecord) -> float:
    """Stop distance relative to entry: (|entry - sl| x size) / (size x entry)."""
    risk_amount = abs(trade.entry_price - trade.stop_loss)
    position_value = trade.position_size * trade.entry_price
    return (risk_amount * trade.position_size) / position_value


def _trade_risk_percent(trade: TradeRecord) -> Optional[float]:
    """Per-trade risk in percent: declared risk_percent, else derived from the stop."""
    if trade.risk_percent:
        return trade.risk_percent
    if trade.stop_loss and trade.entry_price and trade.position_size:
        if trade.entry_price * trade.position_size <= 0:
            return 0.0
        return _derived_risk_fraction(trade) * 100.0
    return None


def _trade_rr(trade: TradeRecord) -> float:
    """Realized RR, else RR from SL/TP levels, else 0."""
    if trade.realized_rr:
        return trade.realized_rr
    if trade.stop_loss and trade.take_profit and trade.entry_price:
        risk = abs(trade.entry_price - trade.stop_loss)
        if risk == 0:
            return 0.0
        return abs(trade.take_profit - trade.entry_price) / risk
    return 0.0
