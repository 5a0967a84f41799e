"""Tests for statement ingestion and deduplication.

GIVEN: parsed statements and the raw file bytes they came from
WHEN: importing them for a tenant
THEN: files are imported once, lines are deduplicated by bank identifier
"""

import hashlib
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from statement_recon.models import (
    BankStatement,
    BankStatementTransaction,
    ReconciliationStatus,
    StatementStatus,
    TransactionDirection,
)
from statement_recon.schemas.statement import ParsedStatement, ParsedTransaction
from statement_recon.services import ingestion
from statement_recon.services.exceptions import DuplicateImportError, NoTransactionsError
from statement_recon.services.ingestion import compute_file_hash, ingest_statement
from tests.factories import BankStatementFactory

FILE_BYTES = b"OFXHEADER:100\n<STMTTRN><TRNAMT>150.00</STMTTRN>"


def _parsed(*lines: ParsedTransaction) -> ParsedStatement:
    return ParsedStatement(
        period_start=date(2025, 3, 1),
        period_end=date(2025, 3, 31),
        opening_balance=Decimal("1000.00"),
        closing_balance=Decimal("1100.00"),
        transactions=list(lines),
    )


def _line(amount: str, identifier: str | None, day: int = 10) -> ParsedTransaction:
    return ParsedTransaction(
        txn_date=date(2025, 3, day),
        amount=Decimal(amount),
        description=f"PIX {identifier}",
        bank_identifier=identifier,
    )


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def test_compute_file_hash_is_sha256():
    assert compute_file_hash(FILE_BYTES) == hashlib.sha256(FILE_BYTES).hexdigest()
    assert len(compute_file_hash(b"")) == 64


def test_parsed_transaction_defaults():
    credit = ParsedTransaction(txn_date=date(2025, 3, 10), amount=Decimal("0"), bank_identifier="  ")
    debit = ParsedTransaction(txn_date=date(2025, 3, 10), amount=Decimal("-12.30"))

    assert credit.direction == TransactionDirection.CREDIT
    assert credit.posting_date == date(2025, 3, 10)
    assert credit.bank_identifier is None
    assert debit.direction == TransactionDirection.DEBIT


def test_parsed_transaction_rejects_direction_against_sign():
    """GIVEN: a line labelled CREDIT with a negative amount
    WHEN: parsing it
    THEN: validation fails instead of importing a mislabelled debit"""
    with pytest.raises(ValidationError, match="contradicts the sign"):
        ParsedTransaction(
            txn_date=date(2025, 3, 10),
            amount=Decimal("-150.00"),
            direction=TransactionDirection.CREDIT,
        )
    with pytest.raises(ValidationError):
        ParsedTransaction(
            txn_date=date(2025, 3, 10),
            amount=Decimal("20.00"),
            direction=TransactionDirection.DEBIT,
        )

    zero = ParsedTransaction(txn_date=date(2025, 3, 10), amount=Decimal("0"), direction=TransactionDirection.DEBIT)
    assert zero.direction == TransactionDirection.DEBIT


@pytest.mark.asyncio
async def test_ingest_creates_statement_and_transactions(db, tenant_id):
    result = await ingest_statement(
        db,
        tenant_id=tenant_id,
        account_ref="001-1234",
        file_bytes=FILE_BYTES,
        parsed=_parsed(_line("150.00", "A1"), _line("-20.00", "A2", day=11)),
        original_filename="march.ofx",
    )

    statement = result.statement
    assert result.created == 2
    assert result.skipped_duplicates == 0
    assert statement.status == StatementStatus.PENDING
    assert statement.file_hash == compute_file_hash(FILE_BYTES)
    assert statement.opening_balance == Decimal("1000.00")

    rows = (
        (await db.execute(select(BankStatementTransaction).where(BankStatementTransaction.statement_id == statement.id)))
        .scalars()
        .all()
    )
    assert len(rows) == 2
    assert all(row.status == ReconciliationStatus.NAO_CONCILIADA for row in rows)
    assert all(row.linked_payment_id is None for row in rows)
    assert {row.direction for row in rows} == {TransactionDirection.CREDIT, TransactionDirection.DEBIT}


@pytest.mark.asyncio
async def test_reimport_same_file_is_rejected(db, tenant_id):
    """GIVEN: a file already imported by the tenant
    WHEN: importing the same bytes again
    THEN: DuplicateImportError is raised and nothing new is written"""
    parsed = _parsed(_line("150.00", "A1"))
    first = await ingest_statement(db, tenant_id=tenant_id, account_ref="001", file_bytes=FILE_BYTES, parsed=parsed)

    with pytest.raises(DuplicateImportError) as exc_info:
        await ingest_statement(db, tenant_id=tenant_id, account_ref="001", file_bytes=FILE_BYTES, parsed=parsed)

    assert exc_info.value.existing_statement_id == first.statement.id
    assert await _count(db, BankStatement) == 1
    assert await _count(db, BankStatementTransaction) == 1


@pytest.mark.asyncio
async def test_same_file_for_another_tenant_is_accepted(db, tenant_id, other_tenant_id):
    parsed = _parsed(_line("150.00", "A1"))
    await ingest_statement(db, tenant_id=tenant_id, account_ref="001", file_bytes=FILE_BYTES, parsed=parsed)
    await ingest_statement(db, tenant_id=other_tenant_id, account_ref="001", file_bytes=FILE_BYTES, parsed=parsed)

    assert await _count(db, BankStatement) == 2


@pytest.mark.asyncio
async def test_empty_statement_is_rejected(db, tenant_id):
    with pytest.raises(NoTransactionsError):
        await ingest_statement(db, tenant_id=tenant_id, account_ref="001", file_bytes=FILE_BYTES, parsed=_parsed())

    assert await _count(db, BankStatement) == 0


@pytest.mark.asyncio
async def test_repeated_bank_identifier_is_skipped(db, tenant_id):
    result = await ingest_statement(
        db,
        tenant_id=tenant_id,
        account_ref="001",
        file_bytes=FILE_BYTES,
        parsed=_parsed(_line("150.00", "A1"), _line("150.00", "A1"), _line("30.00", "A2")),
    )

    assert result.created == 2
    assert result.skipped_duplicates == 1
    assert await _count(db, BankStatementTransaction) == 2


@pytest.mark.asyncio
async def test_lines_without_identifier_are_kept(db, tenant_id):
    result = await ingest_statement(
        db,
        tenant_id=tenant_id,
        account_ref="001",
        file_bytes=FILE_BYTES,
        parsed=_parsed(_line("10.00", None), _line("10.00", None)),
    )

    assert result.created == 2
    assert result.skipped_duplicates == 0


@pytest.mark.asyncio
async def test_concurrent_import_race_maps_to_duplicate(db, tenant_id, monkeypatch):
    """GIVEN: another import stored the same file after the duplicate check ran
    WHEN: the insert hits the unique constraint
    THEN: DuplicateImportError is raised and the session stays usable"""
    await BankStatementFactory.create_async(db, tenant_id=tenant_id, file_hash=compute_file_hash(FILE_BYTES))

    async def _no_existing(*args, **kwargs):
        return None

    monkeypatch.setattr(ingestion, "find_statement_by_hash", _no_existing)

    with pytest.raises(DuplicateImportError):
        await ingest_statement(
            db, tenant_id=tenant_id, account_ref="001", file_bytes=FILE_BYTES, parsed=_parsed(_line("1.00", "A1"))
        )

    assert await _count(db, BankStatement) == 1
    assert await _count(db, BankStatementTransaction) == 0
