"""
Metric Catalogue - Fixed Constant Tables

Block order and the metric catalogue (metric -> block, declared
dependencies). Block weights are configuration (elo.block_weights). Block
coverage is always measured against this catalogue, so its size per block
is part of the scoring contract.

Blocks:
    performance    annualizedReturn, winRate, averageRR, expectancy
    riskControl    maxDrawdown, volatility, averageRiskPerTrade, riskSpike
    consistency    equitySmoothness, monthlyPositiveRatio,
                   tradeFrequencyStability, humanVariability,
                   marketRegimeBalance
    accountHealth  profitConcentrationIndex
    longevity      accountAgeScore
"""

from typing import Dict, List

from trader_elo.scorer.models import MetricDependency


PERFORMANCE = 'performance'
RISK_CONTROL = 'riskControl'
CONSISTENCY = 'consistency'
ACCOUNT_HEALTH = 'accountHealth'
LONGEVITY = 'longevity'

# Block order of every ScoreReport
BLOCK_ORDER = (PERFORMANCE, RISK_CONTROL, CONSISTENCY, ACCOUNT_HEALTH, LONGEVITY)

# Insertion order is the order MetricCalculator.calculate_all() emits results
METRIC_DEFINITIONS: Dict[str, dict] = {
    # Performance
    'annualizedReturn': {
        'block': PERFORMANCE,
        'dependencies': MetricDependency(
            required=('initialBalance', 'finalBalance', 'accountAgeDays'),
        ),
    },
    'winRate': {
        'block': PERFORMANCE,
        'dependencies': MetricDependency(required=('totalTrades', 'winningTrades')),
    },
    'averageRR': {
        # Either realizedRR or (stopLoss + takeProfit + entryPrice)
        'block': PERFORMANCE,
        'dependencies': MetricDependency(optional=('realizedRR', 'stopLoss', 'takeProfit')),
    },
    'expectancy': {
        'block': PERFORMANCE,
        'dependencies': MetricDependency(required=('winRate', 'avgWin', 'avgLoss')),
    },

    # Risk control
    'maxDrawdown': {
        'block': RISK_CONTROL,
        'dependencies': MetricDependency(required=('equityCurve',)),
    },
    'volatility': {
        'block': RISK_CONTROL,
        'dependencies': MetricDependency(required=('dailyReturns',)),
    },
    'averageRiskPerTrade': {
        # Either riskPercent or (stopLoss + positionSize + entryPrice)
        'block': RISK_CONTROL,
        'dependencies': MetricDependency(optional=('riskPercent', 'stopLoss', 'positionSize')),
    },
    'riskSpike': {
        'block': RISK_CONTROL,
        'dependencies': MetricDependency(required=('maxRisk', 'avgRisk')),
    },

    # Consistency
    'equitySmoothness': {
        'block': CONSISTENCY,
        'dependencies': MetricDependency(required=('equityCurve',)),
    },
    'monthlyPositiveRatio': {
        'block': CONSISTENCY,
        'dependencies': MetricDependency(required=('monthlyReturns',)),
    },
    'tradeFrequencyStability': {
        'block': CONSISTENCY,
        'dependencies': MetricDependency(required=('tradesPerWeek',)),
    },
    'humanVariability': {
        'block': CONSISTENCY,
        'dependencies': MetricDependency(
            required=('tradeTimestamps', 'positionSizes', 'rrPerTrade'),
        ),
    },
    'marketRegimeBalance': {
        'block': CONSISTENCY,
        'dependencies': MetricDependency(required=('tradeTimestamps', 'volatilityData')),
    },

    # Account health (anti-manipulation)
    'profitConcentrationIndex': {
        'block': ACCOUNT_HEALTH,
        'dependencies': MetricDependency(required=('pnlPerTrade',)),
    },

    # Longevity
    'accountAgeScore': {
        'block': LONGEVITY,
        'dependencies': MetricDependency(required=('accountAgeDays',)),
    },
}

TOTAL_METRIC_COUNT = len(METRIC_DEFINITIONS)


def dependencies_of(metric_name: str) -> MetricDependency:
    return METRIC_DEFINITIONS[metric_name]['dependencies']


def metrics_in_block(block_name: str) -> List[str]:
    return [
        name for name, definition in METRIC_DEFINITIONS.items()
        if definition['block'] == block_name
    ]
