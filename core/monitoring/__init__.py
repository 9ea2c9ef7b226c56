"""
Monitoring components for the marketplace ledger
"""

from .prometheus_metrics import LedgerMetrics

__all__ = ['LedgerMetrics']
