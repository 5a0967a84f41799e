"""SQLAlchemy models package."""

from statement_recon.models.payment import Payment
from statement_recon.models.statement import (
    BankStatement,
    BankStatementTransaction,
    ReconciliationMethod,
    ReconciliationStatus,
    StatementStatus,
    TransactionDirection,
)

__all__ = [
    "BankStatement",
    "BankStatementTransaction",
    "Payment",
    "ReconciliationMethod",
    "ReconciliationStatus",
    "StatementStatus",
    "TransactionDirection",
]
