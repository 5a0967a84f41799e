"""Bank statement models for imported statement files."""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from statement_recon.database import Base
from statement_recon.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin


class StatementStatus(str, Enum):
    """Statement processing status."""

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"


class TransactionDirection(str, Enum):
    """Money flow direction as seen by the bank account."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class ReconciliationStatus(str, Enum):
    """Transaction reconciliation status."""

    NAO_CONCILIADA = "NAO_CONCILIADA"  # Unmatched (initial)
    CONCILIADA = "CONCILIADA"  # Linked to exactly one payment
    IGNORADA = "IGNORADA"  # Explicitly marked as having no counterpart


class ReconciliationMethod(str, Enum):
    """How a reconciliation link was created."""

    AUTO = "AUTO"
    MANUAL = "MANUAL"


class BankStatement(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """One imported bank statement file."""

    __tablename__ = "bank_statements"
    __table_args__ = (
        UniqueConstraint("tenant_id", "file_hash", name="uq_bank_statements_tenant_file_hash"),
    )

    # File metadata
    account_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # Declared statement details (None when the file does not carry them)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    opening_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    closing_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    # Processing
    status: Mapped[StatementStatus] = mapped_column(
        SQLEnum(StatementStatus, name="statement_status_enum"),
        nullable=False,
        default=StatementStatus.PENDING,
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    transactions: Mapped[list["BankStatementTransaction"]] = relationship(
        "BankStatementTransaction",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="BankStatementTransaction.txn_date",
    )


class BankStatementTransaction(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Individual line of an imported statement."""

    __tablename__ = "bank_statement_transactions"
    __table_args__ = (
        UniqueConstraint(
            "statement_id",
            "bank_identifier",
            name="uq_bank_statement_transactions_statement_bank_identifier",
        ),
        # linked_payment_id is only set while CONCILIADA, so this is the
        # storage-level guard against linking one payment twice.
        UniqueConstraint(
            "tenant_id",
            "linked_payment_id",
            name="uq_bank_statement_transactions_tenant_payment",
        ),
        CheckConstraint(
            "(status = 'CONCILIADA' AND linked_payment_id IS NOT NULL"
            " AND reconciliation_method IS NOT NULL AND reconciled_at IS NOT NULL)"
            " OR (status != 'CONCILIADA' AND linked_payment_id IS NULL"
            " AND reconciliation_method IS NULL AND reconciled_at IS NULL)",
            name="ck_bank_statement_transactions_link_consistency",
        ),
    )

    statement_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bank_statements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Transaction details (immutable after import)
    txn_date: Mapped[date] = mapped_column(Date, nullable=False)
    posting_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)  # signed
    direction: Mapped[TransactionDirection] = mapped_column(
        SQLEnum(TransactionDirection, name="transaction_direction_enum"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    bank_identifier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category_hint: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Reconciliation state (mutated only by services/reconciliation.py)
    status: Mapped[ReconciliationStatus] = mapped_column(
        SQLEnum(ReconciliationStatus, name="reconciliation_status_enum"),
        nullable=False,
        default=ReconciliationStatus.NAO_CONCILIADA,
        index=True,
    )
    linked_payment_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    reconciliation_method: Mapped[ReconciliationMethod | None] = mapped_column(
        SQLEnum(ReconciliationMethod, name="reconciliation_method_enum"),
        nullable=True,
    )
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    statement: Mapped["BankStatement"] = relationship(
        "BankStatement",
        back_populates="transactions",
    )

    @property
    def absolute_amount(self) -> Decimal:
        """Unsigned amount used for matching against payments."""
        return abs(self.amount)
