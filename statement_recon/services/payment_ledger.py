"""Read-only access to the payment ledger used by reconciliation.

The matching engine and the state machine only need two lookups from the
ledger, so they depend on the ``PaymentLedger`` protocol. ``SqlPaymentLedger``
implements it against the local ``payments`` table.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.models import (
    BankStatementTransaction,
    Payment,
    ReconciliationStatus,
    TransactionDirection,
)


@dataclass(frozen=True)
class PaymentCandidate:
    """Ledger payment as seen by the matching engine."""

    id: UUID
    payment_date: date
    amount: Decimal
    direction: TransactionDirection
    payment_type: str
    order_number: str | None = None
    customer_name: str | None = None

    @classmethod
    def from_model(cls, payment: Payment) -> "PaymentCandidate":
        return cls(
            id=payment.id,
            payment_date=payment.payment_date,
            amount=payment.amount,
            direction=payment.direction,
            payment_type=payment.payment_type,
            order_number=payment.order_number,
            customer_name=payment.customer_name,
        )


class PaymentLedger(Protocol):
    """Lookups the reconciliation core needs from a payment ledger."""

    async def find_candidates(
        self,
        tenant_id: UUID,
        *,
        direction: TransactionDirection,
        amount: Decimal,
        txn_date: date,
        amount_tolerance: Decimal,
        date_tolerance_days: int,
    ) -> list[PaymentCandidate]: ...

    async def get_payment(self, tenant_id: UUID, payment_id: UUID) -> PaymentCandidate | None: ...


class SqlPaymentLedger:
    """PaymentLedger backed by the ``payments`` table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_candidates(
        self,
        tenant_id: UUID,
        *,
        direction: TransactionDirection,
        amount: Decimal,
        txn_date: date,
        amount_tolerance: Decimal,
        date_tolerance_days: int,
    ) -> list[PaymentCandidate]:
        """Return unlinked payments inside the amount and date windows.

        ``amount`` is the unsigned transaction amount. Payments already linked
        to a CONCILIADA transaction of the tenant are excluded.
        """
        linked = select(BankStatementTransaction.linked_payment_id).where(
            BankStatementTransaction.tenant_id == tenant_id,
            BankStatementTransaction.status == ReconciliationStatus.CONCILIADA,
            BankStatementTransaction.linked_payment_id.isnot(None),
        )
        window = timedelta(days=date_tolerance_days)
        result = await self.db.execute(
            select(Payment)
            .where(Payment.tenant_id == tenant_id)
            .where(Payment.direction == direction)
            .where(Payment.amount >= amount - amount_tolerance)
            .where(Payment.amount <= amount + amount_tolerance)
            .where(Payment.payment_date >= txn_date - window)
            .where(Payment.payment_date <= txn_date + window)
            .where(Payment.id.notin_(linked))
            .order_by(Payment.payment_date, Payment.id)
        )
        return [PaymentCandidate.from_model(payment) for payment in result.scalars().all()]

    async def get_payment(self, tenant_id: UUID, payment_id: UUID) -> PaymentCandidate | None:
        result = await self.db.execute(
            select(Payment).where(Payment.id == payment_id).where(Payment.tenant_id == tenant_id)
        )
        payment = result.scalar_one_or_none()
        return PaymentCandidate.from_model(payment) if payment else None
