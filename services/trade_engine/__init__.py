"""
Trade Engine Service

Validates BUY/SELL orders and applies them to the ledger as one atomic unit.
"""

from .service import TradeEngine, average_cost, parse_quantity, parse_side

__all__ = [
    'TradeEngine',
    'average_cost',
    'parse_quantity',
    'parse_side',
]
