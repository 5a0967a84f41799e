"""Services package."""

from statement_recon.services.batch import apply_batch, auto_match_statement
from statement_recon.services.exceptions import (
    DuplicateImportError,
    InvalidTransitionError,
    NoTransactionsError,
    NotFoundError,
    PaymentAlreadyLinkedError,
    ReconciliationError,
)
from statement_recon.services.ingestion import IngestionResult, compute_file_hash, ingest_statement
from statement_recon.services.matching import (
    ReconciliationConfig,
    load_reconciliation_config,
    rank_suggestions,
    suggest_for_statement,
    suggest_matches,
)
from statement_recon.services.payment_ledger import PaymentCandidate, PaymentLedger, SqlPaymentLedger
from statement_recon.services.reconciliation import (
    can_transition,
    ignore_transaction,
    reconcile_transaction,
    unlink_transaction,
)
from statement_recon.services.summary import (
    close_statement,
    get_statement,
    list_statements,
    refresh_statement_status,
    summarize_statement,
)

__all__ = [
    "DuplicateImportError",
    "IngestionResult",
    "InvalidTransitionError",
    "NoTransactionsError",
    "NotFoundError",
    "PaymentAlreadyLinkedError",
    "PaymentCandidate",
    "PaymentLedger",
    "ReconciliationConfig",
    "ReconciliationError",
    "SqlPaymentLedger",
    "apply_batch",
    "auto_match_statement",
    "can_transition",
    "close_statement",
    "compute_file_hash",
    "get_statement",
    "ignore_transaction",
    "ingest_statement",
    "list_statements",
    "load_reconciliation_config",
    "rank_suggestions",
    "reconcile_transaction",
    "refresh_statement_status",
    "suggest_for_statement",
    "suggest_matches",
    "summarize_statement",
    "unlink_transaction",
]
