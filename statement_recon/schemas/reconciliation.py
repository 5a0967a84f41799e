"""Pydantic schemas for reconciliation API."""

from datetime import date
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class MatchSuggestion(BaseModel):
    """Scored candidate payment for one bank transaction. Never persisted."""

    payment_id: UUID
    payment_date: date
    amount: Decimal
    payment_type: str
    order_number: str | None = None
    customer_name: str | None = None
    score: int = Field(..., ge=0, le=100)
    reason: str
    date_diff_days: int
    amount_diff: Decimal


class ReconcileRequest(BaseModel):
    """Link a transaction to a payment."""

    payment_id: UUID


class IgnoreRequest(BaseModel):
    """Mark a transaction as having no counterpart."""

    note: str | None = None


class BatchMatchItem(BaseModel):
    transaction_id: UUID
    payment_id: UUID


class BatchIgnoreItem(BaseModel):
    transaction_id: UUID
    note: str | None = None


class BatchRequest(BaseModel):
    """Independent reconcile/ignore decisions applied item by item."""

    matches: list[BatchMatchItem] = Field(default_factory=list)
    ignores: list[BatchIgnoreItem] = Field(default_factory=list)


class BatchFailure(BaseModel):
    """One batch item that could not be applied."""

    action: Literal["match", "ignore"]
    transaction_id: UUID
    payment_id: UUID | None = None
    error: str
    message: str


class BatchResult(BaseModel):
    """Per-item outcome of a batch."""

    matched: int = 0
    ignored: int = 0
    failed: int = 0
    failures: list[BatchFailure] = Field(default_factory=list)


class TransactionSuggestionsResponse(BaseModel):
    transaction_id: UUID
    suggestions: list[MatchSuggestion]


class StatementSuggestionsResponse(BaseModel):
    """Suggestions keyed by unmatched credit transaction id."""

    statement_id: UUID
    suggestions: dict[UUID, list[MatchSuggestion]]
