"""Reconciliation state machine for bank statement transactions.

Every transition runs inside its own SAVEPOINT. The row is locked with
``SELECT ... FOR UPDATE`` and written with an ``UPDATE`` guarded by the
expected current status, so a concurrent change turns into an
``InvalidTransitionError`` instead of a lost update. Callers own the outer
commit.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.logger import get_logger
from statement_recon.models import (
    BankStatementTransaction,
    ReconciliationMethod,
    ReconciliationStatus,
)
from statement_recon.services.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PaymentAlreadyLinkedError,
)
from statement_recon.services.payment_ledger import PaymentLedger, SqlPaymentLedger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[ReconciliationStatus, frozenset[ReconciliationStatus]] = {
    ReconciliationStatus.NAO_CONCILIADA: frozenset({ReconciliationStatus.CONCILIADA, ReconciliationStatus.IGNORADA}),
    ReconciliationStatus.CONCILIADA: frozenset({ReconciliationStatus.NAO_CONCILIADA}),
    ReconciliationStatus.IGNORADA: frozenset({ReconciliationStatus.NAO_CONCILIADA}),
}


def can_transition(current: ReconciliationStatus, target: ReconciliationStatus) -> bool:
    """Return True if ``current -> target`` is a legal transition."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


async def _lock_transaction(db: AsyncSession, tenant_id: UUID, transaction_id: UUID) -> BankStatementTransaction:
    result = await db.execute(
        select(BankStatementTransaction)
        .where(BankStatementTransaction.id == transaction_id)
        .where(BankStatementTransaction.tenant_id == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise NotFoundError("Transaction", transaction_id)
    return transaction


async def find_linked_transaction(db: AsyncSession, tenant_id: UUID, payment_id: UUID) -> UUID | None:
    """Return the id of the CONCILIADA transaction holding ``payment_id``, if any."""
    result = await db.execute(
        select(BankStatementTransaction.id)
        .where(BankStatementTransaction.tenant_id == tenant_id)
        .where(BankStatementTransaction.linked_payment_id == payment_id)
        .where(BankStatementTransaction.status == ReconciliationStatus.CONCILIADA)
    )
    return result.scalars().first()


async def _apply_transition(
    db: AsyncSession,
    transaction: BankStatementTransaction,
    target: ReconciliationStatus,
    values: dict[str, Any],
) -> None:
    expected = transaction.status
    if not can_transition(expected, target):
        raise InvalidTransitionError(
            f"Transaction {transaction.id} cannot move from {expected.value} to {target.value}"
        )

    result = await db.execute(
        update(BankStatementTransaction)
        .where(BankStatementTransaction.id == transaction.id)
        .where(BankStatementTransaction.tenant_id == transaction.tenant_id)
        .where(BankStatementTransaction.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransitionError(
            f"Transaction {transaction.id} changed state concurrently; expected {expected.value}"
        )


def _log_transition(
    tenant_id: UUID,
    transaction_id: UUID,
    from_status: ReconciliationStatus,
    to_status: ReconciliationStatus,
    **extra: Any,
) -> None:
    logger.info(
        "Transaction reconciliation status changed",
        tenant_id=str(tenant_id),
        transaction_id=str(transaction_id),
        from_status=from_status.value,
        to_status=to_status.value,
        **extra,
    )


async def reconcile_transaction(
    db: AsyncSession,
    tenant_id: UUID,
    transaction_id: UUID,
    payment_id: UUID,
    method: ReconciliationMethod = ReconciliationMethod.MANUAL,
    *,
    ledger: PaymentLedger | None = None,
) -> BankStatementTransaction:
    """Link an unmatched transaction to a payment.

    Raises:
        NotFoundError: transaction or payment does not exist for the tenant.
        InvalidTransitionError: transaction is not NAO_CONCILIADA.
        PaymentAlreadyLinkedError: payment is held by another CONCILIADA transaction.
    """
    ledger = ledger or SqlPaymentLedger(db)

    try:
        async with db.begin_nested():
            transaction = await _lock_transaction(db, tenant_id, transaction_id)
            if transaction.status == ReconciliationStatus.CONCILIADA:
                holder = "this payment" if transaction.linked_payment_id == payment_id else "a different payment"
                raise InvalidTransitionError(f"Transaction {transaction_id} is already reconciled with {holder}")
            if transaction.status != ReconciliationStatus.NAO_CONCILIADA:
                raise InvalidTransitionError(
                    f"Transaction {transaction_id} cannot be reconciled from {transaction.status.value}"
                )

            payment = await ledger.get_payment(tenant_id, payment_id)
            if payment is None:
                raise NotFoundError("Payment", payment_id)

            linked_to = await find_linked_transaction(db, tenant_id, payment_id)
            if linked_to is not None:
                raise PaymentAlreadyLinkedError(payment_id, linked_to)

            from_status = transaction.status
            await _apply_transition(
                db,
                transaction,
                ReconciliationStatus.CONCILIADA,
                {
                    "linked_payment_id": payment_id,
                    "reconciliation_method": method,
                    "reconciled_at": datetime.now(UTC),
                },
            )
    except IntegrityError as exc:
        logger.warning(
            "Payment link rejected by unique constraint",
            tenant_id=str(tenant_id),
            transaction_id=str(transaction_id),
            payment_id=str(payment_id),
        )
        raise PaymentAlreadyLinkedError(payment_id) from exc

    await db.refresh(transaction)
    _log_transition(
        tenant_id,
        transaction_id,
        from_status,
        ReconciliationStatus.CONCILIADA,
        payment_id=str(payment_id),
        method=method.value,
    )
    return transaction


async def ignore_transaction(
    db: AsyncSession,
    tenant_id: UUID,
    transaction_id: UUID,
    note: str | None = None,
) -> BankStatementTransaction:
    """Mark an unmatched transaction as having no ledger counterpart."""
    async with db.begin_nested():
        transaction = await _lock_transaction(db, tenant_id, transaction_id)
        from_status = transaction.status
        await _apply_transition(db, transaction, ReconciliationStatus.IGNORADA, {"note": note})

    await db.refresh(transaction)
    _log_transition(tenant_id, transaction_id, from_status, ReconciliationStatus.IGNORADA)
    return transaction


async def unlink_transaction(
    db: AsyncSession,
    tenant_id: UUID,
    transaction_id: UUID,
) -> BankStatementTransaction:
    """Return a reconciled or ignored transaction to NAO_CONCILIADA."""
    async with db.begin_nested():
        transaction = await _lock_transaction(db, tenant_id, transaction_id)
        from_status = transaction.status
        previous_payment_id = transaction.linked_payment_id
        await _apply_transition(
            db,
            transaction,
            ReconciliationStatus.NAO_CONCILIADA,
            {
                "linked_payment_id": None,
                "reconciliation_method": None,
                "reconciled_at": None,
                "note": None,
            },
        )

    await db.refresh(transaction)
    _log_transition(
        tenant_id,
        transaction_id,
        from_status,
        ReconciliationStatus.NAO_CONCILIADA,
        payment_id=str(previous_payment_id) if previous_payment_id else None,
    )
    return transaction
