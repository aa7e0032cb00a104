"""
SCORER Module - Trader ELO Score Calculation

Single Responsibility: Turn a trader's trade history and account snapshot
into one explainable 0-100 score

Components:
- MetricCalculator: 15 raw metrics, each flagged available or missing_data
- BlockCalculator: Metrics grouped into 5 weighted blocks, coverage-based
  exclusion and weight redistribution
- ELOCalculator: Reliability + confidence discounts, penalties, category
- rank_reports / summarize_reports: Leaderboard over calculated reports

Score Formula:
    raw   = sum(block_score x adjusted_weight) / sum(adjusted_weight)
    ELO   = clamp(raw x reliability x confidence + penalties, 0, 100)
"""

from trader_elo.scorer.block_calculator import BlockCalculator
from trader_elo.scorer.elo_calculator import ELOCalculator
from trader_elo.scorer.leaderboard import rank_reports, summarize_reports
from trader_elo.scorer.metric_calculator import MetricCalculator

__all__ = [
    'BlockCalculator',
    'ELOCalculator',
    'MetricCalculator',
    'rank_reports',
    'summarize_reports',
]
