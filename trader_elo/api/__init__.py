"""
API boundary for Trader ELO

Request payload validation and conversion into scorer records.
"""

from trader_elo.api.schemas import (
    AccountSchema,
    ELOCalculationRequest,
    EquityPointSchema,
    TradeSchema,
    parse_request,
)

__all__ = [
    'AccountSchema',
    'ELOCalculationRequest',
    'EquityPointSchema',
    'TradeSchema',
    'parse_request',
]
