"""Trip settlement rules and the finance engine."""

from .engine import FinanceEngine, FinanceResult, ReconcileResult
from .rules import compute_net_amount, financial_status_for, rule_for_status

__all__ = [
    "FinanceEngine",
    "FinanceResult",
    "ReconcileResult",
    "compute_net_amount",
    "financial_status_for",
    "rule_for_status",
]
