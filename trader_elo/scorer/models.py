"""
Trader ELO Data Models

Closed record types exchanged between the ingestion layer, the three
calculators and the persistence/dashboard layer.

All records are frozen: a calculation never mutates its inputs, and a
ScoreReport is never modified after it is emitted.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# =============================================================================
# ENUMERATIONS
# =============================================================================
class MetricStatus(str, Enum):
    """Whether a metric could be computed from the supplied data."""
    AVAILABLE = "available"
    MISSING_DATA = "missing_data"


class ConfidenceTier(str, Enum):
    """
    Block confidence tier, derived from block coverage.

    HIGH: coverage >= 50%
    MEDIUM: coverage >= 35%
    LOW: coverage >= 30%
    EXCLUDED: coverage < 30% (score forced to 0, weight redistributed)
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    EXCLUDED = "excluded"


class TraderCategory(str, Enum):
    """Final classification of a trader by ELO score."""
    ELITE = "Elite"
    PROFESSIONAL = "Professional"
    CONSISTENT = "Consistent"
    UNSTABLE = "Unstable"
    SPECULATIVE = "Speculative"
    INSUFFICIENT_DATA = "Insufficient_Data"


class ErrorCode(str, Enum):
    """Pipeline failure taxonomy."""
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    CALCULATION_FAILED = "CALCULATION_FAILED"


# =============================================================================
# INPUT RECORDS
# =============================================================================
@dataclass(frozen=True)
class TradeRecord:
    """
    One closed trade.

    REQUIRED:
        - open_time, close_time (close_time >= open_time)
        - pnl: signed profit/loss in account currency

    OPTIONAL (None when the broker/statement did not provide it):
        - entry_price, exit_price, stop_loss, take_profit
        - position_size: units traded
        - risk_percent: risk taken on the trade, in percent of the account
        - realized_rr: realized risk/reward ratio
        - duration_minutes
    """
    open_time: datetime
    close_time: datetime
    pnl: float

    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    position_size: Optional[float] = None
    risk_percent: Optional[float] = None
    realized_rr: Optional[float] = None
    duration_minutes: Optional[float] = None

    @property
    def is_win(self) -> bool:
        return self.pnl > 0

    @property
    def is_loss(self) -> bool:
        return self.pnl < 0


@dataclass(frozen=True)
class EquityPoint:
    """Single point of an equity or balance curve."""
    date: datetime
    value: float


@dataclass(frozen=True)
class AccountSnapshot:
    """
    Account-level time series.

    daily_returns / monthly_returns are signed fractions (0.01 = +1%).
    daily_returns_start dates the first daily return; the series is read as
    consecutive calendar days from there.
    """
    initial_balance: float
    equity_history: Tuple[EquityPoint, ...] = ()
    balance_history: Tuple[EquityPoint, ...] = ()
    daily_returns: Tuple[float, ...] = ()
    monthly_returns: Tuple[float, ...] = ()
    daily_returns_start: Optional[date] = None
    leverage: Optional[float] = None
    account_age_days: Optional[float] = None
    trades_per_week: Optional[float] = None

    @property
    def final_balance(self) -> Optional[float]:
        """Latest equity point, falling back to the latest balance point."""
        if self.equity_history:
            return self.equity_history[-1].value
        if self.balance_history:
            return self.balance_history[-1].value
        return None


# =============================================================================
# METRIC / BLOCK RESULTS
# =============================================================================
@dataclass(frozen=True)
class MetricDependency:
    """Field names a metric needs (required) or can use (optional)."""
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricResult:
    """
    Outcome of one metric calculation.

    value is None exactly when status is MISSING_DATA; a computed zero is a
    real value.
    """
    name: str
    value: Optional[float]
    status: MetricStatus
    confidence: float
    dependencies: MetricDependency
    description: str

    @property
    def is_available(self) -> bool:
        return self.status == MetricStatus.AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'value': self.value,
            'status': self.status.value,
            'confidence': self.confidence,
            'dependencies': {
                'required': list(self.dependencies.required),
                'optional': list(self.dependencies.optional),
            },
            'description': self.description,
        }


@dataclass(frozen=True)
class BlockResult:
    """Weighted group of metrics contributing to the final score."""
    name: str
    score: float
    confidence_tier: ConfidenceTier
    available_metric_count: int
    total_metric_count: int
    coverage_percent: float
    original_weight: float
    adjusted_weight: float
    metrics: Tuple[MetricResult, ...] = ()

    @property
    def is_excluded(self) -> bool:
        return self.confidence_tier == ConfidenceTier.EXCLUDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'score': self.score,
            'confidence': self.confidence_tier.value,
            'availableMetrics': self.available_metric_count,
            'totalMetrics': self.total_metric_count,
            'coveragePercent': self.coverage_percent,
            'metrics': [m.to_dict() for m in self.metrics],
            'originalWeight': self.original_weight,
            'adjustedWeight': self.adjusted_weight,
        }


@dataclass(frozen=True)
class ReliabilityFactors:
    """Trust discounts applied to the raw block score."""
    total_trades: int
    reliability_multiplier: float  # min(1, sqrt(total_trades / 300))
    data_coverage: float  # available metrics / catalogue size
    confidence_coefficient: float  # 0.5 + 0.5 * data_coverage

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalTrades': self.total_trades,
            'reliabilityMultiplier': self.reliability_multiplier,
            'dataCoverage': self.data_coverage,
            'confidenceCoefficient': self.confidence_coefficient,
        }


@dataclass(frozen=True)
class PenaltyResult:
    """Deduction triggered by verifiable data (value is negative points)."""
    name: str
    value: float
    reason: str
    applied: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'value': self.value,
            'reason': self.reason,
            'applied': self.applied,
        }


@dataclass(frozen=True)
class DataQuality:
    """Summary of how complete the supplied data was."""
    has_required_fields: bool
    total_trades: int
    data_completeness: float
    account_age_days: Optional[float] = None
    winning_trades: Optional[int] = None
    losing_trades: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hasRequiredFields': self.has_required_fields,
            'totalTrades': self.total_trades,
            'accountAgeDays': self.account_age_days,
            'dataCompleteness': self.data_completeness,
            'winningTrades': self.winning_trades,
            'losingTrades': self.losing_trades,
        }


# =============================================================================
# REPORT / RESPONSE
# =============================================================================
@dataclass(frozen=True)
class ScoreReport:
    """Terminal output of one ELO calculation."""
    trader_id: str
    elo_score: float
    raw_score: float
    reliability: ReliabilityFactors
    blocks: Tuple[BlockResult, ...]
    penalties: Tuple[PenaltyResult, ...]
    missing_metrics: Tuple[str, ...]
    low_confidence_blocks: Tuple[str, ...]
    category: TraderCategory
    calculated_at: datetime
    data_quality: DataQuality

    def get_block(self, name: str) -> Optional[BlockResult]:
        for block in self.blocks:
            if block.name == name:
                return block
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase field names the dashboard consumes."""
        return {
            'traderId': self.trader_id,
            'eloScore': self.elo_score,
            'rawScore': self.raw_score,
            'reliability': self.reliability.to_dict(),
            'blocks': [b.to_dict() for b in self.blocks],
            'penalties': [p.to_dict() for p in self.penalties],
            'missingMetrics': list(self.missing_metrics),
            'lowConfidenceBlocks': list(self.low_confidence_blocks),
            'category': self.category.value,
            'calculatedAt': self.calculated_at.isoformat(),
            'dataQuality': self.data_quality.to_dict(),
        }


@dataclass(frozen=True)
class ELOCalculationResponse:
    """
    Discriminated result of ELOCalculator.calculate_elo().

    success=True carries elo; success=False carries error, prefixed with an
    ErrorCode value ("INSUFFICIENT_DATA: ...").
    """
    success: bool
    elo: Optional[ScoreReport] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls, elo: ScoreReport, warnings: Tuple[str, ...] = ()) -> 'ELOCalculationResponse':
        return cls(success=True, elo=elo, warnings=tuple(warnings))

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> 'ELOCalculationResponse':
        return cls(success=False, error=f"{code.value}: {message}")

    @property
    def error_code(self) -> Optional[ErrorCode]:
        if self.error is None:
            return None
        return ErrorCode(self.error.split(':', 1)[0])

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            result: Dict[str, Any] = {'success': True, 'elo': self.elo.to_dict()}
        else:
            result = {'success': False, 'error': self.error}
        if self.warnings:
            result['warnings'] = list(self.warnings)
        return result
