"""Pydantic schemas for statement import and read models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field, model_validator

from statement_recon.models.statement import (
    ReconciliationMethod,
    ReconciliationStatus,
    StatementStatus,
    TransactionDirection,
)
from statement_recon.schemas.base import ListResponse

# --- Parser output (ingestion input) ---


class ParsedTransaction(BaseModel):
    """One normalized line produced by the statement parser."""

    txn_date: date
    posting_date: date | None = None
    amount: Decimal = Field(..., description="Signed amount; credits positive, debits negative")
    direction: TransactionDirection | None = None
    description: str = ""
    bank_identifier: str | None = Field(None, max_length=100)
    reference: str | None = Field(None, max_length=100)
    category_hint: str | None = Field(None, max_length=100)

    @model_validator(mode="after")
    def _fill_defaults(self) -> "ParsedTransaction":
        signed_direction = TransactionDirection.CREDIT if self.amount >= 0 else TransactionDirection.DEBIT
        if self.direction is None:
            self.direction = signed_direction
        elif self.amount != 0 and self.direction != signed_direction:
            raise ValueError(f"direction {self.direction.value} contradicts the sign of amount {self.amount}")
        if self.posting_date is None:
            self.posting_date = self.txn_date
        if self.bank_identifier is not None:
            self.bank_identifier = self.bank_identifier.strip() or None
        return self


class ParsedStatement(BaseModel):
    """Statement-level metadata plus parsed lines."""

    period_start: date | None = None
    period_end: date | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    transactions: list[ParsedTransaction] = Field(default_factory=list)


# --- Request Schemas ---


class ImportStatementRequest(BaseModel):
    """Import a parsed statement together with the raw file bytes."""

    account_ref: str = Field(..., min_length=1, max_length=100)
    original_filename: str | None = Field(None, max_length=255)
    file_content: Base64Bytes = Field(..., description="Raw statement file, base64 encoded")
    statement: ParsedStatement


# --- Response Schemas ---


class TransactionResponse(BaseModel):
    """Single statement line with its reconciliation state."""

    id: UUID
    statement_id: UUID
    txn_date: date
    posting_date: date
    amount: Decimal
    direction: TransactionDirection
    description: str
    bank_identifier: str | None
    reference: str | None
    category_hint: str | None
    status: ReconciliationStatus
    linked_payment_id: UUID | None
    reconciliation_method: ReconciliationMethod | None
    reconciled_at: datetime | None
    note: str | None

    model_config = ConfigDict(from_attributes=True)


class StatementResponse(BaseModel):
    """Statement metadata."""

    id: UUID
    account_ref: str
    original_filename: str | None
    file_hash: str
    imported_at: datetime
    period_start: date | None
    period_end: date | None
    opening_balance: Decimal | None
    closing_balance: Decimal | None
    status: StatementStatus
    closed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class StatementDetailResponse(StatementResponse):
    """Statement with its transactions."""

    transactions: list[TransactionResponse] = Field(default_factory=list)


class ImportStatementResponse(BaseModel):
    """Result of a successful import."""

    statement: StatementResponse
    created: int
    skipped_duplicates: int


class StatementSummary(BaseModel):
    """Aggregate reconciliation counters for one statement."""

    total: int
    reconciled: int
    pending: int
    ignored: int
    percent_reconciled: float


StatementListResponse = ListResponse[StatementResponse]
