from statement_recon.schemas.base import ListResponse
from statement_recon.schemas.reconciliation import (
    BatchFailure,
    BatchIgnoreItem,
    BatchMatchItem,
    BatchRequest,
    BatchResult,
    IgnoreRequest,
    MatchSuggestion,
    ReconcileRequest,
    StatementSuggestionsResponse,
    TransactionSuggestionsResponse,
)
from statement_recon.schemas.statement import (
    ImportStatementRequest,
    ImportStatementResponse,
    ParsedStatement,
    ParsedTransaction,
    StatementDetailResponse,
    StatementListResponse,
    StatementResponse,
    StatementSummary,
    TransactionResponse,
)

__all__ = [
    "BatchFailure",
    "BatchIgnoreItem",
    "BatchMatchItem",
    "BatchRequest",
    "BatchResult",
    "IgnoreRequest",
    "ImportStatementRequest",
    "ImportStatementResponse",
    "ListResponse",
    "MatchSuggestion",
    "ParsedStatement",
    "ParsedTransaction",
    "ReconcileRequest",
    "StatementDetailResponse",
    "StatementListResponse",
    "StatementResponse",
    "StatementSuggestionsResponse",
    "StatementSummary",
    "TransactionResponse",
    "TransactionSuggestionsResponse",
]
