"""
Trader ELO Calculator - Scoring Pipeline Entry Point

Single pass, no retries, no state kept between calls:

    validate minimal data -> metrics -> available metrics -> blocks
    -> raw score -> x reliability -> x confidence -> penalties
    -> clamp + classify -> report

Reliability (statistical sample size):
    reliability = min(1, sqrt(total_trades / 300))

Confidence (catalogue coverage):
    confidence = 0.5 + 0.5 x (available metrics / catalogue metrics)

Penalties (only when the triggering metric was computed from real data):
    profitConcentration  index > 0.6            -> -15
    riskSpike            ratio > 5 / ratio > 3  -> -30 / -15
    botProbability       humanVariability < 30  -> -clamp((30 - v) / 2, 10, 25)

Categories:
    >= 90 Elite | >= 80 Professional | >= 65 Consistent | >= 50 Unstable |
    else Speculative | Insufficient_Data when every block is excluded

calculate_elo() never raises: failures come back as
ELOCalculationResponse(success=False, error="<ErrorCode>: ...").
"""

import math
import numbers
from datetime import datetime, UTC
from typing import List, Sequence

from trader_elo.config import get_elo_config
from trader_elo.scorer.block_calculator import BlockCalculator
from trader_elo.scorer.catalogue import TOTAL_METRIC_COUNT
from trader_elo.scorer.metric_calculator import MetricCalculator
from trader_elo.scorer.models import (
    AccountSnapshot,
    BlockResult,
    ConfidenceTier,
    DataQuality,
    ELOCalculationResponse,
    ErrorCode,
    MetricResult,
    PenaltyResult,
    ReliabilityFactors,
    ScoreReport,
    TradeRecord,
    TraderCategory,
)
from trader_elo.utils.logger import get_logger

logger = get_logger(__name__)

TRADE_OPTIONAL_FIELDS = (
    'entry_price', 'exit_price', 'stop_loss', 'take_profit',
    'position_size', 'risk_percent', 'duration_minutes', 'realized_rr',
)
ACCOUNT_OPTIONAL_FIELDS = (
    'equity_history', 'balance_history', 'daily_returns',
    'monthly_returns', 'leverage', 'account_age_days',
)


class ELOCalculator:
    """
    Orchestrates MetricCalculator and BlockCalculator into a ScoreReport.

    Holds only constant thresholds; safe to share between threads.
    """

    def __init__(self, config=None):
        """
        Initialize ELO calculator.

        Args:
            config: Config object or dict with an 'elo' section
                    (None = built-in defaults)

        Raises:
            KeyError: If required config sections are missing (Fast Fail)
        """
        elo_config = get_elo_config(config)

        self.metric_calculator = MetricCalculator(config)
        self.block_calculator = BlockCalculator(config)

        reliability = elo_config['reliability']
        self.full_reliability_trades = reliability['full_trades']
        self.base_confidence = reliability['base_confidence']

        penalties = elo_config['penalties']
        concentration = penalties['profit_concentration']
        self.concentration_threshold = concentration['threshold']
        self.concentration_points = concentration['points']

        spike = penalties['risk_spike']
        self.spike_severe_threshold = spike['severe_threshold']
        self.spike_severe_points = spike['severe_points']
        self.spike_moderate_threshold = spike['moderate_threshold']
        self.spike_moderate_points = spike['moderate_points']

        bot = penalties['bot_probability']
        self.bot_threshold = bot['human_variability_threshold']
        self.bot_min_points = bot['min_points']
        self.bot_max_points = bot['max_points']

        self.category_thresholds = elo_config['categories']

        logger.info(
            f"ELOCalculator initialized: full_reliability_trades={self.full_reliability_trades}, "
            f"base_confidence={self.base_confidence}, categories={self.category_thresholds}"
        )

    def calculate_elo(
        self,
        trader_id: str,
        trades: Sequence[TradeRecord],
        account: AccountSnapshot
    ) -> ELOCalculationResponse:
        """
        Calculate the ELO score of a trader.

        Args:
            trader_id: Caller-supplied trader identifier
            trades: Closed trades
            account: Account snapshot

        Returns:
            ELOCalculationResponse with elo on success, error otherwise
        """
        try:
            # 1. Minimal data check
            if not self._has_required_fields(trades, account):
                logger.warning(f"Trader {trader_id}: insufficient data for ELO calculation")
                return ELOCalculationResponse.fail(
                    ErrorCode.INSUFFICIENT_DATA,
                    'Missing required fields for ELO calculation'
                )

            # 2-3. All metrics, then available ones only
            all_metrics = self.metric_calculator.calculate_all(trades, account)
            available_metrics = [m for m in all_metrics if m.is_available]

            # 4-5. Blocks with dynamic reweighting, raw score
            blocks = self.block_calculator.compute_all_blocks(available_metrics)
            raw_score = self.block_calculator.compute_final_score(blocks)

            # 6-9. Reliability and confidence discounts
            reliability = self.calculate_reliability_factors(len(trades), blocks)
            score_after_reliability = raw_score * reliability.reliability_multiplier
            score_after_confidence = score_after_reliability * reliability.confidence_coefficient

            # 10. Penalties (only from verifiable data)
            penalties = self.calculate_penalties(available_metrics)
            total_penalty = sum(p.value for p in penalties)

            # 11-12. Final score and category
            elo_score = _clamp(score_after_confidence + total_penalty, 0.0, 100.0)
            if all(b.is_excluded for b in blocks):
                category = TraderCategory.INSUFFICIENT_DATA
            else:
                category = self.determine_category(elo_score)

            # 13. Report
            report = ScoreReport(
                trader_id=trader_id,
                elo_score=elo_score,
                raw_score=raw_score,
                reliability=reliability,
                blocks=tuple(blocks),
                penalties=tuple(penalties),
                missing_metrics=tuple(m.name for m in all_metrics if not m.is_available),
                low_confidence_blocks=tuple(
                    b.name for b in blocks
                    if b.confidence_tier in (ConfidenceTier.LOW, ConfidenceTier.EXCLUDED)
                ),
                category=category,
                calculated_at=datetime.now(UTC),
                data_quality=self.build_data_quality(trades, account),
            )

            logger.info(
                f"Trader {trader_id}: elo={elo_score:.1f} ({category.value}), raw={raw_score:.1f}, "
                f"trades={reliability.total_trades}, "
                f"reliability={reliability.reliability_multiplier:.2f}, "
                f"confidence={reliability.confidence_coefficient:.2f}, "
                f"penalties={total_penalty:.0f}"
            )

            return ELOCalculationResponse.ok(report)

        except Exception as e:
            logger.error(f"Trader {trader_id}: ELO calculation failed: {e}", exc_info=True)
            return ELOCalculationResponse.fail(ErrorCode.CALCULATION_FAILED, str(e) or type(e).__name__)

    # =========================================================================
    # PIPELINE STEPS
    # =========================================================================
    def calculate_reliability_factors(
        self,
        total_trades: int,
        blocks: Sequence[BlockResult]
    ) -> ReliabilityFactors:
        """
        Reliability multiplier from trade count, confidence from block coverage.

        Data coverage is measured by the block layer: available metrics over
        the catalogue size, summed across all blocks.
        """
        reliability_multiplier = min(1.0, math.sqrt(total_trades / self.full_reliability_trades))

        available = sum(b.available_metric_count for b in blocks)
        total = sum(b.total_metric_count for b in blocks) or TOTAL_METRIC_COUNT

        return self.update_reliability_with_actual_data(
            ReliabilityFactors(
                total_trades=total_trades,
                reliability_multiplier=reliability_multiplier,
                data_coverage=0.0,
                confidence_coefficient=self.base_confidence,
            ),
            available,
            total,
        )

    def update_reliability_with_actual_data(
        self,
        reliability: ReliabilityFactors,
        available_metrics_count: int,
        total_metrics_count: int
    ) -> ReliabilityFactors:
        """
        Recompute data coverage and confidence coefficient from metric counts.

        Returns:
            New ReliabilityFactors (the input is not modified)
        """
        if total_metrics_count <= 0:
            data_coverage = 0.0
        else:
            data_coverage = _clamp(available_metrics_count / total_metrics_count, 0.0, 1.0)

        confidence_coefficient = self.base_confidence + (1 - self.base_confidence) * data_coverage

        return ReliabilityFactors(
            total_trades=reliability.total_trades,
            reliability_multiplier=reliability.reliability_multiplier,
            data_coverage=data_coverage,
            confidence_coefficient=confidence_coefficient,
        )

    def calculate_penalties(self, available_metrics: Sequence[MetricResult]) -> List[PenaltyResult]:
        """
        Penalties triggered by available anti-manipulation metrics.

        A metric that is missing never triggers (or waives) a penalty.
        """
        by_name = {m.name: m for m in available_metrics if m.is_available and m.value is not None}
        penalties: List[PenaltyResult] = []

        concentration = by_name.get('profitConcentrationIndex')
        if concentration is not None and concentration.value > self.concentration_threshold:
            penalties.append(PenaltyResult(
                name='profitConcentration',
                value=-float(self.concentration_points),
                reason=(
                    f"Top 10% of trades account for more than "
                    f"{self.concentration_threshold:.0%} of profits"
                ),
            ))

        spike = by_name.get('riskSpike')
        if spike is not None:
            if spike.value > self.spike_severe_threshold:
                penalties.append(PenaltyResult(
                    name='riskSpike',
                    value=-float(self.spike_severe_points),
                    reason=f"Risk spike ratio exceeds {self.spike_severe_threshold}x average",
                ))
            elif spike.value > self.spike_moderate_threshold:
                penalties.append(PenaltyResult(
                    name='riskSpike',
                    value=-float(self.spike_moderate_points),
                    reason=f"Risk spike ratio exceeds {self.spike_moderate_threshold}x average",
                ))

        human = by_name.get('humanVariability')
        if human is not None and human.value < self.bot_threshold:
            points = _clamp(
                (self.bot_threshold - human.value) / 2,
                self.bot_min_points,
                self.bot_max_points
            )
            penalties.append(PenaltyResult(
                name='botProbability',
                value=-float(points),
                reason=f"Low human variability score: {human.value:.1f}",
            ))

        for penalty in penalties:
            logger.debug(f"Penalty {penalty.name}: {penalty.value:.1f} ({penalty.reason})")

        return penalties

    def determine_category(self, score: float) -> TraderCategory:
        """Classify a final ELO score."""
        if score >= self.category_thresholds['elite']:
            return TraderCategory.ELITE
        if score >= self.category_thresholds['professional']:
            return TraderCategory.PROFESSIONAL
        if score >= self.category_thresholds['consistent']:
            return TraderCategory.CONSISTENT
        if score >= self.category_thresholds['unstable']:
            return TraderCategory.UNSTABLE
        return TraderCategory.SPECULATIVE

    def build_data_quality(
        self,
        trades: Sequence[TradeRecord],
        account: AccountSnapshot
    ) -> DataQuality:
        """Summary of data completeness across optional trade and account fields."""
        total_fields = 0
        available_fields = 0

        for trade in trades:
            for field_name in TRADE_OPTIONAL_FIELDS:
                total_fields += 1
                if getattr(trade, field_name) is not None:
                    available_fields += 1

        for field_name in ACCOUNT_OPTIONAL_FIELDS:
            total_fields += 1
            value = getattr(account, field_name)
            if isinstance(value, tuple):
                if value:
                    available_fields += 1
            elif value is not None:
                available_fields += 1

        return DataQuality(
            has_required_fields=True,
            total_trades=len(trades),
            data_completeness=available_fields / total_fields if total_fields else 0.0,
            account_age_days=account.account_age_days,
            winning_trades=sum(1 for t in trades if t.is_win),
            losing_trades=sum(1 for t in trades if t.is_loss),
        )

    # =========================================================================
    # VALIDATION
    # =========================================================================
    def _has_required_fields(self, trades: Sequence[TradeRecord], account: AccountSnapshot) -> bool:
        """
        Minimal data requirements.

        Every trade needs open/close times (ordered) and a finite numeric
        PnL; the account needs an initial balance and an equity or balance
        history.
        """
        if not trades or account is None:
            return False

        for trade in trades:
            if trade.open_time is None or trade.close_time is None:
                return False
            if trade.close_time < trade.open_time:
                return False
            if not _is_finite_number(trade.pnl):
                return False

        if not _is_finite_number(account.initial_balance):
            return False

        return bool(account.equity_history) or bool(account.balance_history)


def _is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
