"""
Leaderboard and aggregate statistics over calculated ELO reports.

Pure functions over ScoreReport objects; persistence of reports is left to
the embedding application.
"""

from collections import Counter
from typing import Dict, List, Sequence

from trader_elo.scorer.models import ScoreReport, TraderCategory
from trader_elo.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LEADERBOARD_LIMIT = 50
DEFAULT_TOP_PERFORMERS = 10


def rank_reports(
    reports: Sequence[ScoreReport],
    limit: int = DEFAULT_LEADERBOARD_LIMIT
) -> List[ScoreReport]:
    """
    Rank reports by ELO score (highest first).

    Ties are broken by trader_id so the ordering is deterministic.

    Args:
        reports: Calculated reports
        limit: Max number of entries returned (must be positive)

    Returns:
        Ranked list of at most `limit` reports

    Raises:
        ValueError: If limit is not positive
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")

    ranked = sorted(reports, key=lambda r: (-r.elo_score, r.trader_id))
    return ranked[:limit]


def summarize_reports(
    reports: Sequence[ScoreReport],
    top_n: int = DEFAULT_TOP_PERFORMERS
) -> Dict:
    """
    Aggregate statistics across reports.

    Returns:
        Dict with:
            total_traders: Number of reports
            average_elo: Mean ELO score (0.0 when empty)
            top_performers: trader_id/elo_score/category of the best `top_n`
            category_distribution: Count per category (every category listed)
    """
    if not reports:
        return {
            'total_traders': 0,
            'average_elo': 0.0,
            'top_performers': [],
            'category_distribution': {c.value: 0 for c in TraderCategory},
        }

    counts = Counter(r.category.value for r in reports)
    distribution = {c.value: counts.get(c.value, 0) for c in TraderCategory}

    average = sum(r.elo_score for r in reports) / len(reports)

    top = []
    if top_n > 0:
        top = [
            {
                'trader_id': r.trader_id,
                'elo_score': r.elo_score,
                'category': r.category.value,
            }
            for r in rank_reports(reports, limit=top_n)
        ]

    logger.debug(f"Summarized {len(reports)} reports: average ELO {average:.1f}")

    return {
        'total_traders': len(reports),
        'average_elo': average,
        'top_performers': top,
        'category_distribution': distribution,
    }
