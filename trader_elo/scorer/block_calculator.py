"""
Block Calculator - Coverage-Based Exclusion and Dynamic Reweighting

Groups metric results into the five weighted blocks:

    performance 0.40 | riskControl 0.30 | consistency 0.15 |
    accountHealth 0.10 | longevity 0.05

Per block:
    coverage = available metrics / catalogue metrics x 100
    coverage < 30  -> EXCLUDED (score 0, adjusted weight 0)
    coverage >= 50 -> HIGH, >= 35 -> MEDIUM, else LOW
    score = confidence-weighted mean of normalized metric values (0-100)

Weight of excluded blocks is redistributed to the included blocks in
proportion to their original weight, so the included weights always sum
to the full original total.
"""

from dataclasses import replace
from typing import List, Sequence

from trader_elo.config import get_elo_config
from trader_elo.scorer.catalogue import BLOCK_ORDER, METRIC_DEFINITIONS, metrics_in_block
from trader_elo.scorer.models import BlockResult, ConfidenceTier, MetricResult
from trader_elo.utils.logger import get_logger

logger = get_logger(__name__)


class BlockCalculator:
    """
    Calculates block scores from available metrics.

    Depends only on the MetricResult shape, not on how metrics are computed.
    """

    def __init__(self, config=None):
        """
        Initialize block calculator.

        Args:
            config: Config object or dict with an 'elo' section
                    (None = built-in defaults)

        Raises:
            KeyError: If required config sections are missing (Fast Fail)
        """
        elo_config = get_elo_config(config)

        self.block_weights = dict(elo_config['block_weights'])

        tiers = elo_config['tiers']
        self.exclusion_coverage = tiers['exclusion_coverage']
        self.medium_coverage = tiers['medium_coverage']
        self.high_coverage = tiers['high_coverage']

        self.neutral_score = float(elo_config['neutral_block_score'])

        logger.info(
            f"BlockCalculator initialized: weights={self.block_weights}, "
            f"exclusion<{self.exclusion_coverage}%, medium>={self.medium_coverage}%, "
            f"high>={self.high_coverage}%"
        )

    def compute_block(self, block_name: str, available_metrics: Sequence[MetricResult]) -> BlockResult:
        """
        Calculate one block from the available metrics.

        Args:
            block_name: One of the five block names
            available_metrics: Metric results (non-available ones are ignored)

        Returns:
            BlockResult with adjusted_weight == original_weight (or 0 when
            excluded); compute_all_blocks() performs redistribution
        """
        original_weight = self.block_weights[block_name]

        block_metrics = tuple(
            m for m in available_metrics
            if m.is_available
            and m.value is not None
            and METRIC_DEFINITIONS.get(m.name, {}).get('block') == block_name
        )

        total = len(metrics_in_block(block_name))
        available = len(block_metrics)
        coverage = available / total * 100.0 if total > 0 else 0.0

        # Block exclusion rule
        if coverage < self.exclusion_coverage:
            return BlockResult(
                name=block_name,
                score=0.0,
                confidence_tier=ConfidenceTier.EXCLUDED,
                available_metric_count=available,
                total_metric_count=total,
                coverage_percent=coverage,
                original_weight=original_weight,
                adjusted_weight=0.0,
                metrics=block_metrics,
            )

        tier = self._tier_for(coverage)

        if not block_metrics:
            # Only reachable with exclusion_coverage configured to 0
            score = self.neutral_score
        else:
            total_confidence = sum(m.confidence for m in block_metrics)
            if total_confidence > 0:
                weighted = sum(
                    self.normalize_metric_value(m.name, m.value) * m.confidence
                    for m in block_metrics
                )
                score = weighted / total_confidence
            else:
                score = self.neutral_score

        return BlockResult(
            name=block_name,
            score=_clamp(score, 0.0, 100.0),
            confidence_tier=tier,
            available_metric_count=available,
            total_metric_count=total,
            coverage_percent=coverage,
            original_weight=original_weight,
            adjusted_weight=original_weight,
            metrics=block_metrics,
        )

    def compute_all_blocks(self, available_metrics: Sequence[MetricResult]) -> List[BlockResult]:
        """
        Calculate all blocks and redistribute the weight of excluded blocks.

        adjusted = original + W_excluded x (original / W_included)

        Args:
            available_metrics: Metric results

        Returns:
            Blocks in fixed order (performance, riskControl, consistency,
            accountHealth, longevity)
        """
        blocks = [self.compute_block(name, available_metrics) for name in BLOCK_ORDER]

        included = [b for b in blocks if not b.is_excluded]
        excluded = [b for b in blocks if b.is_excluded]

        total_excluded_weight = sum(b.original_weight for b in excluded)
        total_included_weight = sum(b.original_weight for b in included)

        if excluded and included and total_included_weight > 0:
            blocks = [
                b if b.is_excluded else replace(
                    b,
                    adjusted_weight=b.original_weight
                    + total_excluded_weight * (b.original_weight / total_included_weight)
                )
                for b in blocks
            ]

        for block in blocks:
            logger.debug(
                f"Block {block.name}: score={block.score:.2f}, tier={block.confidence_tier.value}, "
                f"coverage={block.coverage_percent:.0f}% "
                f"({block.available_metric_count}/{block.total_metric_count}), "
                f"weight {block.original_weight:.3f}->{block.adjusted_weight:.3f}"
            )

        return blocks

    def compute_final_score(self, blocks: Sequence[BlockResult]) -> float:
        """
        Weighted mean of included block scores.

        Returns:
            Score 0-100 (0 when every block is excluded)
        """
        included = [b for b in blocks if not b.is_excluded]
        if not included:
            return 0.0

        total_weight = sum(b.adjusted_weight for b in included)
        if total_weight <= 0:
            return 0.0

        return sum(b.score * b.adjusted_weight for b in included) / total_weight

    def normalize_metric_value(self, metric_name: str, value: float) -> float:
        """
        Normalize a raw metric value to the 0-100 scale.

        Each metric clamps its input to a fixed range first so that outliers
        cannot dominate the block mean.
        """
        # Performance (higher = better)
        if metric_name == 'annualizedReturn':
            # -50% .. +200%, shifted around 50
            return _clamp(50 + _clamp(value, -50, 200), 0, 100)

        if metric_name == 'averageRR':
            # RR 0..4 mapped linearly
            return _clamp(value, 0, 4) / 4 * 100

        if metric_name == 'expectancy':
            return _clamp(50 + _clamp(value, -2, 2) * 25, 0, 100)

        # Risk (lower = better)
        if metric_name == 'maxDrawdown':
            # 50% drawdown or worse scores 0
            return _clamp(100 - _clamp(value, 0, 50) * 2, 0, 100)

        if metric_name == 'volatility':
            return _clamp(100 - _clamp(value, 0, 100), 0, 100)

        if metric_name == 'averageRiskPerTrade':
            # 10% risk per trade or more scores 0
            return _clamp(100 - _clamp(value, 0, 10) * 10, 0, 100)

        if metric_name == 'riskSpike':
            return _clamp(100 / _clamp(value, 0.1, 10) * 10, 0, 100)

        # Consistency
        if metric_name == 'equitySmoothness':
            return _clamp(value * 20, 0, 100)

        # Anti-manipulation (lower concentration = better)
        if metric_name == 'profitConcentrationIndex':
            return _clamp(100 - _clamp(value, 0, 1) * 100, 0, 100)

        # Longevity: two years of history scores 100
        if metric_name == 'accountAgeScore':
            return _clamp(value, 0, 730) / 730 * 100

        # winRate, monthlyPositiveRatio, tradeFrequencyStability,
        # humanVariability, marketRegimeBalance are already percentages
        return _clamp(value, 0, 100)

    def _tier_for(self, coverage: float) -> ConfidenceTier:
        if coverage >= self.high_coverage:
            return ConfidenceTier.HIGH
        if coverage >= self.medium_coverage:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
