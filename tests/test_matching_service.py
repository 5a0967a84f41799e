"""Tests for suggestion queries against the payment ledger."""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from statement_recon.models import ReconciliationMethod, ReconciliationStatus, TransactionDirection
from statement_recon.services.exceptions import NotFoundError
from statement_recon.services.matching import suggest_for_statement, suggest_matches
from statement_recon.services.payment_ledger import PaymentCandidate, SqlPaymentLedger
from tests.factories import BankStatementFactory, BankStatementTransactionFactory, PaymentFactory


async def _statement_with_txn(db, tenant_id, **txn_kwargs):
    statement = await BankStatementFactory.create_async(db, tenant_id=tenant_id)
    txn = await BankStatementTransactionFactory.create_async(
        db, tenant_id=tenant_id, statement_id=statement.id, **txn_kwargs
    )
    return statement, txn


@pytest.mark.asyncio
async def test_suggest_matches_worked_example(db, tenant_id):
    """GIVEN: tx 150.00 / 2025-03-10 and payments A (exact), B (148.00, +2 days), C (500.00)
    WHEN: requesting suggestions
    THEN: A then B are returned with scores 100 and 82, C is not a candidate"""
    _, txn = await _statement_with_txn(db, tenant_id)
    a = await PaymentFactory.create_async(db, tenant_id=tenant_id)
    b = await PaymentFactory.create_async(
        db, tenant_id=tenant_id, amount=Decimal("148.00"), payment_date=date(2025, 3, 12)
    )
    await PaymentFactory.create_async(db, tenant_id=tenant_id, amount=Decimal("500.00"))

    suggestions = await suggest_matches(db, tenant_id, txn.id)

    assert [(s.payment_id, s.score) for s in suggestions] == [(a.id, 100), (b.id, 82)]
    assert suggestions[0].order_number == a.order_number
    assert suggestions[0].customer_name == a.customer_name
    assert suggestions[0].payment_type == "PIX"


@pytest.mark.asyncio
async def test_suggest_matches_excludes_linked_payments(db, tenant_id):
    statement, txn = await _statement_with_txn(db, tenant_id)
    taken = await PaymentFactory.create_async(db, tenant_id=tenant_id)
    free = await PaymentFactory.create_async(db, tenant_id=tenant_id, payment_date=date(2025, 3, 11))
    await BankStatementTransactionFactory.create_async(
        db,
        tenant_id=tenant_id,
        statement_id=statement.id,
        status=ReconciliationStatus.CONCILIADA,
        linked_payment_id=taken.id,
        reconciliation_method=ReconciliationMethod.MANUAL,
        reconciled_at=datetime.now(UTC),
    )

    suggestions = await suggest_matches(db, tenant_id, txn.id)

    assert [s.payment_id for s in suggestions] == [free.id]


@pytest.mark.asyncio
async def test_suggest_matches_scoped_to_tenant_and_direction(db, tenant_id, other_tenant_id):
    _, txn = await _statement_with_txn(db, tenant_id)
    await PaymentFactory.create_async(db, tenant_id=other_tenant_id)
    await PaymentFactory.create_async(db, tenant_id=tenant_id, direction=TransactionDirection.DEBIT)

    assert await suggest_matches(db, tenant_id, txn.id) == []


@pytest.mark.asyncio
async def test_suggest_matches_respects_max_results(db, tenant_id):
    _, txn = await _statement_with_txn(db, tenant_id)
    for _ in range(4):
        await PaymentFactory.create_async(db, tenant_id=tenant_id)

    assert len(await suggest_matches(db, tenant_id, txn.id, max_results=2)) == 2


@pytest.mark.asyncio
async def test_suggest_matches_empty_for_settled_transaction(db, tenant_id):
    _, txn = await _statement_with_txn(db, tenant_id, status=ReconciliationStatus.IGNORADA, note="fee")
    await PaymentFactory.create_async(db, tenant_id=tenant_id)

    assert await suggest_matches(db, tenant_id, txn.id) == []


@pytest.mark.asyncio
async def test_suggest_matches_unknown_or_foreign_transaction(db, tenant_id, other_tenant_id):
    _, txn = await _statement_with_txn(db, tenant_id)

    with pytest.raises(NotFoundError):
        await suggest_matches(db, tenant_id, uuid4())
    with pytest.raises(NotFoundError):
        await suggest_matches(db, other_tenant_id, txn.id)


@pytest.mark.asyncio
async def test_suggest_matches_is_read_only(db, tenant_id):
    _, txn = await _statement_with_txn(db, tenant_id)
    await PaymentFactory.create_async(db, tenant_id=tenant_id)

    await suggest_matches(db, tenant_id, txn.id)
    await db.refresh(txn)

    assert txn.status == ReconciliationStatus.NAO_CONCILIADA
    assert txn.linked_payment_id is None


@pytest.mark.asyncio
async def test_suggest_matches_uses_injected_ledger(db, tenant_id):
    """GIVEN: a custom PaymentLedger implementation
    WHEN: suggesting matches with it
    THEN: its candidates are scored instead of the payments table"""
    _, txn = await _statement_with_txn(db, tenant_id)
    external = PaymentCandidate(
        id=uuid4(),
        payment_date=date(2025, 3, 10),
        amount=Decimal("150.00"),
        direction=TransactionDirection.CREDIT,
        payment_type="BOLETO",
    )

    class StaticLedger:
        def __init__(self):
            self.calls = []

        async def find_candidates(self, tenant_id, **kwargs):
            self.calls.append((tenant_id, kwargs))
            return [external]

        async def get_payment(self, tenant_id, payment_id):
            return external if payment_id == external.id else None

    ledger = StaticLedger()
    suggestions = await suggest_matches(db, tenant_id, txn.id, ledger=ledger)

    assert [s.payment_id for s in suggestions] == [external.id]
    called_tenant, kwargs = ledger.calls[0]
    assert called_tenant == tenant_id
    assert kwargs["amount"] == Decimal("150.00")
    assert kwargs["direction"] == TransactionDirection.CREDIT


@pytest.mark.asyncio
async def test_sql_ledger_window_bounds(db, tenant_id):
    inside = await PaymentFactory.create_async(
        db, tenant_id=tenant_id, amount=Decimal("155.00"), payment_date=date(2025, 3, 13)
    )
    await PaymentFactory.create_async(db, tenant_id=tenant_id, amount=Decimal("155.01"))
    await PaymentFactory.create_async(db, tenant_id=tenant_id, payment_date=date(2025, 3, 14))

    candidates = await SqlPaymentLedger(db).find_candidates(
        tenant_id,
        direction=TransactionDirection.CREDIT,
        amount=Decimal("150.00"),
        txn_date=date(2025, 3, 10),
        amount_tolerance=Decimal("5.00"),
        date_tolerance_days=3,
    )

    assert [c.id for c in candidates] == [inside.id]


@pytest.mark.asyncio
async def test_suggest_for_statement_only_unmatched_credits(db, tenant_id):
    statement, credit = await _statement_with_txn(db, tenant_id)
    lonely = await BankStatementTransactionFactory.create_async(
        db, tenant_id=tenant_id, statement_id=statement.id, amount=Decimal("999.00")
    )
    debit = await BankStatementTransactionFactory.create_async(
        db, tenant_id=tenant_id, statement_id=statement.id, amount=Decimal("-150.00")
    )
    ignored = await BankStatementTransactionFactory.create_async(
        db, tenant_id=tenant_id, statement_id=statement.id, status=ReconciliationStatus.IGNORADA
    )
    payment = await PaymentFactory.create_async(db, tenant_id=tenant_id)

    suggestions = await suggest_for_statement(db, tenant_id, statement.id)

    assert set(suggestions) == {credit.id, lonely.id}
    assert debit.id not in suggestions
    assert ignored.id not in suggestions
    assert [s.payment_id for s in suggestions[credit.id]] == [payment.id]
    assert suggestions[lonely.id] == []


@pytest.mark.asyncio
async def test_suggest_for_statement_unknown_statement(db, tenant_id, other_tenant_id):
    statement, _ = await _statement_with_txn(db, tenant_id)

    with pytest.raises(NotFoundError):
        await suggest_for_statement(db, other_tenant_id, statement.id)
