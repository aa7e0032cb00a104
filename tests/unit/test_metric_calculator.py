"""
Unit Tests for MetricCalculator

Every metric is tested on both paths:
- available: computed from real data, value in its domain
- missing_data: required data absent, value None (never defaulted)
"""

import copy
import math
from datetime import datetime, timedelta

import pytest

from trader_elo.config import DEFAULT_ELO_CONFIG
from trader_elo.scorer.block_calculator import BlockCalculator
from trader_elo.scorer.catalogue import METRIC_DEFINITIONS
from trader_elo.scorer.metric_calculator import MetricCalculator
from trader_elo.scorer.models import MetricStatus, TradeRecord


@pytest.fixture
def calc():
    return MetricCalculator()


def _trade(open_time, pnl=100.0, **fields):
    return TradeRecord(
        open_time=open_time,
        close_time=open_time + timedelta(hours=1),
        pnl=pnl,
        **fields
    )


class TestPerformanceMetrics:
    """Test annualizedReturn, winRate, averageRR, expectancy"""

    def test_annualized_return_one_year(self, calc, make_account):
        """10% growth over exactly one year annualizes to 10%"""
        account = make_account(equity=[10000, 11000], account_age_days=365)

        result = calc.calculate_annualized_return(account)

        assert result.status == MetricStatus.AVAILABLE
        assert result.value == pytest.approx(10.0)

    def test_annualized_return_uses_balance_when_no_equity(self, calc, make_account):
        """Final balance falls back to balance history"""
        account = make_account(balance=[10000, 12000], account_age_days=365)

        result = calc.calculate_annualized_return(account)

        assert result.value == pytest.approx(20.0)

    def test_annualized_return_clamped_high(self, calc, make_account):
        """Extreme short-period growth is capped at 1000%"""
        account = make_account(equity=[10000, 20000], account_age_days=10)

        result = calc.calculate_annualized_return(account)

        assert result.value == 1000.0

    def test_annualized_return_total_loss(self, calc, make_account):
        """Wiped-out account is -100%"""
        account = make_account(equity=[10000, 0], account_age_days=100)

        result = calc.calculate_annualized_return(account)

        assert result.value == -100.0

    def test_annualized_return_missing_without_age(self, calc, make_account):
        """No account age -> missing, not zero"""
        account = make_account(equity=[10000, 11000])

        result = calc.calculate_annualized_return(account)

        assert result.status == MetricStatus.MISSING_DATA
        assert result.value is None
        assert result.confidence == 0.0

    def test_win_rate(self, calc, make_trades):
        """7 wins out of 10 -> 70%"""
        trades = make_trades(pnls=[100] * 7 + [-50] * 3)

        result = calc.calculate_win_rate(trades)

        assert result.value == pytest.approx(70.0)

    def test_win_rate_breakeven_is_not_a_win(self, calc, make_trades):
        """pnl == 0 counts as neither win nor loss"""
        trades = make_trades(pnls=[100, 0])

        assert calc.calculate_win_rate(trades).value == pytest.approx(50.0)

    def test_win_rate_missing_without_trades(self, calc):
        result = calc.calculate_win_rate([])

        assert result.status == MetricStatus.MISSING_DATA

    def test_average_rr_prefers_realized(self, calc, make_trades):
        """Only positive realized RR values are averaged"""
        trades = [
            *make_trades(n=1, realized_rr=1.5),
            *make_trades(n=1, realized_rr=2.5),
            *make_trades(n=1, realized_rr=-1.0),
            *make_trades(n=1),
        ]

        result = calc.calculate_average_rr(trades)

        assert result.value == pytest.approx(2.0)
        assert 'realized' in result.description
        # realizedRR only: 1 of 3 optional dependencies (realizedRR, stopLoss, takeProfit)
        assert result.confidence == pytest.approx(1 / 3)

    def test_average_rr_from_levels(self, calc, make_trades):
        """RR derived from SL/TP distances around entry"""
        trades = make_trades(n=3, entry_price=100.0, stop_loss=98.0, take_profit=104.0)

        result = calc.calculate_average_rr(trades)

        assert result.value == pytest.approx(2.0)
        assert 'SL/TP' in result.description

    def test_average_rr_missing(self, calc, make_trades):
        result = calc.calculate_average_rr(make_trades(n=5))

        assert result.status == MetricStatus.MISSING_DATA
        assert result.value is None

    def test_expectancy(self, calc, make_trades):
        """0.5 x 150 - 0.5 x 50 = 50"""
        trades = make_trades(pnls=[100, 200, -50, -50])
        win_rate = calc.calculate_win_rate(trades).value

        result = calc.calculate_expectancy(trades, win_rate)

        assert result.value == pytest.approx(50.0)

    def test_expectancy_missing_without_losses(self, calc, make_trades):
        trades = make_trades(n=5, pnl=100.0)

        result = calc.calculate_expectancy(trades, 100.0)

        assert result.status == MetricStatus.MISSING_DATA


class TestRiskMetrics:
    """Test maxDrawdown, volatility, averageRiskPerTrade, riskSpike"""

    def test_max_drawdown(self, calc, make_account):
        """Peak 120 -> trough 90 = 25%"""
        account = make_account(equity=[100, 120, 90, 130])

        result = calc.calculate_max_drawdown(account)

        assert result.value == pytest.approx(25.0)

    def test_max_drawdown_rising_curve_is_zero(self, calc, make_account):
        """A computed zero is available, not missing"""
        account = make_account(equity=[100, 110, 120])

        result = calc.calculate_max_drawdown(account)

        assert result.status == MetricStatus.AVAILABLE
        assert result.value == 0.0

    def test_max_drawdown_missing_single_point(self, calc, make_account):
        account = make_account(equity=[100])

        assert calc.calculate_max_drawdown(account).status == MetricStatus.MISSING_DATA

    def test_volatility(self, calc, make_account):
        """Population std x sqrt(252) x 100"""
        account = make_account(equity=[100, 101], daily_returns=(0.01, -0.01))

        result = calc.calculate_volatility(account)

        assert result.value == pytest.approx(0.01 * math.sqrt(252) * 100)

    def test_volatility_missing(self, calc, make_account):
        account = make_account(equity=[100, 101], daily_returns=(0.01,))

        assert calc.calculate_volatility(account).status == MetricStatus.MISSING_DATA

    def test_average_risk_declared(self, calc, make_trades):
        trades = [
            *make_trades(n=1, risk_percent=1.0),
            *make_trades(n=1, risk_percent=2.0),
            *make_trades(n=1, risk_percent=3.0),
        ]

        result = calc.calculate_average_risk_per_trade(trades)

        assert result.value == pytest.approx(2.0)

    def test_average_risk_derived_from_stop(self, calc, make_trades):
        """Stop 2% below entry -> 2% risk"""
        trades = make_trades(n=3, entry_price=100.0, stop_loss=98.0, position_size=2.0)

        result = calc.calculate_average_risk_per_trade(trades)

        assert result.value == pytest.approx(2.0)

    def test_average_risk_missing(self, calc, make_trades):
        result = calc.calculate_average_risk_per_trade(make_trades(n=5))

        assert result.status == MetricStatus.MISSING_DATA

    def test_risk_spike(self, calc, make_trades):
        """max 6 / avg 2 = 3"""
        trades = [
            *[t for r in (1.0, 1.0, 1.0, 1.0) for t in make_trades(n=1, risk_percent=r)],
            *make_trades(n=1, risk_percent=6.0),
        ]

        result = calc.calculate_risk_spike(trades)

        assert result.value == pytest.approx(3.0)

    def test_risk_spike_uniform_risk_is_one(self, calc, make_trades):
        trades = make_trades(n=6, risk_percent=1.5)

        assert calc.calculate_risk_spike(trades).value == pytest.approx(1.0)

    def test_risk_spike_missing_few_samples(self, calc, make_trades):
        trades = make_trades(n=4, risk_percent=1.0)

        assert calc.calculate_risk_spike(trades).status == MetricStatus.MISSING_DATA


class TestConsistencyMetrics:
    """Test equitySmoothness, monthlyPositiveRatio, tradeFrequencyStability,
    humanVariability, marketRegimeBalance"""

    def test_equity_smoothness_flat_curve(self, calc, make_account):
        """Zero variation -> smoothness 0 (available)"""
        account = make_account(equity=[10000] * 12)

        result = calc.calculate_equity_smoothness(account)

        assert result.status == MetricStatus.AVAILABLE
        assert result.value == 0.0

    def test_equity_smoothness_positive(self, calc, make_account):
        account = make_account(equity=[10000 + 10 * i for i in range(12)])

        result = calc.calculate_equity_smoothness(account)

        assert result.value > 0

    def test_equity_smoothness_missing_short_curve(self, calc, make_account):
        account = make_account(equity=[10000] * 9)

        assert calc.calculate_equity_smoothness(account).status == MetricStatus.MISSING_DATA

    def test_monthly_positive_ratio(self, calc, make_account):
        """Zero-return month is not positive"""
        account = make_account(equity=[1, 2], monthly_returns=(0.1, -0.1, 0.2, 0.0))

        assert calc.calculate_monthly_positive_ratio(account).value == pytest.approx(50.0)

    def test_monthly_positive_ratio_missing(self, calc, make_account):
        account = make_account(equity=[1, 2])

        assert calc.calculate_monthly_positive_ratio(account).status == MetricStatus.MISSING_DATA

    def test_trade_frequency_stable_weeks(self, calc):
        """3 trades in each of 4 ISO weeks -> perfectly stable"""
        monday = datetime(2024, 1, 1, 10, 0)
        trades = [
            _trade(monday + timedelta(weeks=w, days=d))
            for w in range(4) for d in range(3)
        ]

        result = calc.calculate_trade_frequency_stability(trades)

        assert result.value == pytest.approx(100.0)

    def test_trade_frequency_unstable_weeks(self, calc):
        """Uneven weekly counts reduce stability"""
        monday = datetime(2024, 1, 1, 10, 0)
        counts = [1, 1, 1, 9]
        trades = [
            _trade(monday + timedelta(weeks=w, hours=h))
            for w, count in enumerate(counts) for h in range(count)
        ]

        result = calc.calculate_trade_frequency_stability(trades)

        assert 0.0 <= result.value < 50.0

    def test_trade_frequency_missing_few_weeks(self, calc):
        monday = datetime(2024, 1, 1, 10, 0)
        trades = [_trade(monday + timedelta(hours=h)) for h in range(12)]

        result = calc.calculate_trade_frequency_stability(trades)

        assert result.status == MetricStatus.MISSING_DATA

    def test_human_variability_bot_like(self, calc, make_trades):
        """Identical size, RR and hour, round-thousand sizes -> 5"""
        trades = make_trades(n=10, position_size=1000.0, realized_rr=2.0)

        result = calc.calculate_human_variability(trades)

        assert result.value == pytest.approx(5.0)

    def test_human_variability_human_like(self, calc, full_data):
        trades, _ = full_data

        result = calc.calculate_human_variability(trades)

        assert result.value > 50.0

    def test_human_variability_missing_without_sizing(self, calc, make_trades):
        trades = make_trades(n=20, realized_rr=2.0)

        assert calc.calculate_human_variability(trades).status == MetricStatus.MISSING_DATA

    def test_market_regime_balance_even_split(self, calc, make_account):
        """10 trades in a volatile month, 10 in a calm month -> 100"""
        returns = (0.05,) * 30 + (0.001,) * 30
        start = datetime(2024, 1, 1, 12, 0)
        trades = (
            [_trade(start + timedelta(days=d)) for d in range(5, 15)]
            + [_trade(start + timedelta(days=d)) for d in range(45, 55)]
        )
        account = make_account(equity=[1, 2], daily_returns=returns,
                               daily_returns_start=start.date())

        result = calc.calculate_market_regime_balance(trades, account)

        assert result.value == pytest.approx(100.0)

    def test_market_regime_balance_single_regime(self, calc, make_account):
        """All trades in the volatile period -> 0"""
        returns = (0.05,) * 30 + (0.001,) * 30
        start = datetime(2024, 1, 1, 12, 0)
        trades = [_trade(start + timedelta(days=d % 20 + 2)) for d in range(20)]
        account = make_account(equity=[1, 2], daily_returns=returns,
                               daily_returns_start=start.date())

        result = calc.calculate_market_regime_balance(trades, account)

        assert result.value == pytest.approx(0.0)

    def test_market_regime_balance_missing_few_trades(self, calc, make_trades, make_account):
        account = make_account(equity=[1, 2], daily_returns=(0.01,) * 30)

        result = calc.calculate_market_regime_balance(make_trades(n=19), account)

        assert result.status == MetricStatus.MISSING_DATA


class TestAccountMetrics:
    """Test profitConcentrationIndex and accountAgeScore"""

    def test_profit_concentration(self, calc, make_trades):
        """Top 10% (1 trade) holds 500 of 950"""
        trades = make_trades(pnls=[500] + [50] * 9)

        result = calc.calculate_profit_concentration(trades)

        assert result.value == pytest.approx(500 / 950)

    def test_profit_concentration_missing_on_net_loss(self, calc, make_trades):
        trades = make_trades(pnls=[100] + [-50] * 9)

        assert calc.calculate_profit_concentration(trades).status == MetricStatus.MISSING_DATA

    def test_profit_concentration_missing_few_trades(self, calc, make_trades):
        assert calc.calculate_profit_concentration(make_trades(n=9)).status == MetricStatus.MISSING_DATA

    def test_account_age(self, calc, make_account):
        account = make_account(equity=[1, 2], account_age_days=365)

        assert calc.calculate_account_age_score(account).value == 365.0

    def test_account_age_missing(self, calc, make_account):
        account = make_account(equity=[1, 2])

        assert calc.calculate_account_age_score(account).status == MetricStatus.MISSING_DATA


class TestCalculateAll:
    """Test calculate_all contract"""

    def test_one_result_per_metric_in_order(self, calc, make_trades, make_account):
        results = calc.calculate_all(make_trades(n=3), make_account(equity=[1, 2]))

        assert [r.name for r in results] == list(METRIC_DEFINITIONS)

    def test_values_consistent_with_status(self, calc, full_data):
        """Available -> finite value; missing -> None"""
        trades, account = full_data

        for result in calc.calculate_all(trades, account):
            if result.status == MetricStatus.AVAILABLE:
                assert math.isfinite(result.value)
                assert 0.0 <= result.confidence <= 1.0
            else:
                assert result.value is None

    def test_full_data_computes_every_metric(self, calc, full_data):
        trades, account = full_data

        results = calc.calculate_all(trades, account)

        assert all(r.is_available for r in results)


class TestMetricConfidence:
    """Confidence = share of optional dependencies present on the trades used"""

    def test_average_rr_levels_only(self, calc, make_trades):
        """stopLoss + takeProfit, no realizedRR -> 2/3"""
        trades = make_trades(n=3, entry_price=100.0, stop_loss=98.0, take_profit=104.0)

        assert calc.calculate_average_rr(trades).confidence == pytest.approx(2 / 3)

    def test_average_rr_all_optional_fields(self, calc, make_trades):
        trades = make_trades(n=3, entry_price=100.0, stop_loss=98.0,
                             take_profit=104.0, realized_rr=1.8)

        result = calc.calculate_average_rr(trades)

        assert result.value == pytest.approx(1.8)
        assert result.confidence == pytest.approx(1.0)

    def test_only_trades_used_count(self, calc, make_trades):
        """Levels on a trade without realized RR do not raise realized-path confidence"""
        trades = [
            *make_trades(n=2, realized_rr=2.0),
            *make_trades(n=2, entry_price=100.0, stop_loss=98.0, take_profit=104.0),
        ]

        assert calc.calculate_average_rr(trades).confidence == pytest.approx(1 / 3)

    def test_average_risk_declared_only(self, calc, make_trades):
        """riskPercent only: 1 of (riskPercent, stopLoss, positionSize)"""
        result = calc.calculate_average_risk_per_trade(make_trades(n=3, risk_percent=1.0))

        assert result.confidence == pytest.approx(1 / 3)

    def test_average_risk_derived(self, calc, make_trades):
        trades = make_trades(n=3, entry_price=100.0, stop_loss=98.0, position_size=2.0)

        assert calc.calculate_average_risk_per_trade(trades).confidence == pytest.approx(2 / 3)

    def test_no_optional_dependencies_full_confidence(self, calc, make_trades):
        assert calc.calculate_win_rate(make_trades(n=3)).confidence == 1.0

    def test_confidence_weights_block_score(self, calc, make_trades):
        """winRate 75 (x1), averageRR 2.0 -> 50 (x1/3), expectancy 50 -> 100 (x1)"""
        trades = make_trades(pnls=[100.0, 100.0, 100.0, -100.0], realized_rr=2.0)
        metrics = [
            calc.calculate_win_rate(trades),
            calc.calculate_average_rr(trades),
            calc.calculate_expectancy(trades, 75.0),
        ]

        block = BlockCalculator().compute_block('performance', metrics)

        assert block.score == pytest.approx(575.0 / 7.0)


class TestConstruction:
    """Test MetricCalculator construction from config"""

    def test_default_config(self):
        assert MetricCalculator().MIN_TRADES_REGIME == 20

    def test_accepts_config(self):
        calc = MetricCalculator({'elo': copy.deepcopy(DEFAULT_ELO_CONFIG)})

        assert calc.calculate_win_rate([]).status == MetricStatus.MISSING_DATA

    def test_missing_elo_section_fails_fast(self):
        with pytest.raises(KeyError):
            MetricCalculator({'logging': {}})
