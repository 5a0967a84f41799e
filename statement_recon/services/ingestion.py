"""Statement ingestion with file-level and line-level deduplication."""

import hashlib
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.logger import get_logger
from statement_recon.models import (
    BankStatement,
    BankStatementTransaction,
    ReconciliationStatus,
    StatementStatus,
)
from statement_recon.schemas.statement import ParsedStatement
from statement_recon.services.exceptions import DuplicateImportError, NoTransactionsError

logger = get_logger(__name__)


@dataclass
class IngestionResult:
    """Outcome of a successful import."""

    statement: BankStatement
    created: int
    skipped_duplicates: int


def compute_file_hash(file_bytes: bytes) -> str:
    """Return the SHA-256 hex digest identifying a statement file."""
    return hashlib.sha256(file_bytes).hexdigest()


async def find_statement_by_hash(db: AsyncSession, tenant_id: UUID, file_hash: str) -> UUID | None:
    result = await db.execute(
        select(BankStatement.id).where(BankStatement.tenant_id == tenant_id).where(BankStatement.file_hash == file_hash)
    )
    return result.scalar_one_or_none()


async def ingest_statement(
    db: AsyncSession,
    *,
    tenant_id: UUID,
    account_ref: str,
    file_bytes: bytes,
    parsed: ParsedStatement,
    original_filename: str | None = None,
) -> IngestionResult:
    """Persist a parsed statement and its transactions.

    The statement and every transaction are written in one savepoint, so a
    failure leaves nothing behind. Lines repeating a bank identifier already
    seen in the same file are skipped. Matching is not triggered here.

    Raises:
        NoTransactionsError: the parsed statement has no lines.
        DuplicateImportError: the tenant already imported a file with the same hash.
    """
    if not parsed.transactions:
        raise NoTransactionsError()

    file_hash = compute_file_hash(file_bytes)
    existing_id = await find_statement_by_hash(db, tenant_id, file_hash)
    if existing_id is not None:
        logger.info(
            "Duplicate statement import rejected",
            tenant_id=str(tenant_id),
            file_hash=file_hash,
            existing_statement_id=str(existing_id),
        )
        raise DuplicateImportError(file_hash, existing_id)

    statement = BankStatement(
        id=uuid4(),
        tenant_id=tenant_id,
        account_ref=account_ref,
        original_filename=original_filename,
        file_hash=file_hash,
        period_start=parsed.period_start,
        period_end=parsed.period_end,
        opening_balance=parsed.opening_balance,
        closing_balance=parsed.closing_balance,
        status=StatementStatus.PENDING,
    )

    rows: list[BankStatementTransaction] = []
    seen_identifiers: set[str] = set()
    skipped = 0
    for line in parsed.transactions:
        if line.bank_identifier is not None:
            if line.bank_identifier in seen_identifiers:
                skipped += 1
                continue
            seen_identifiers.add(line.bank_identifier)
        rows.append(
            BankStatementTransaction(
                id=uuid4(),
                tenant_id=tenant_id,
                statement_id=statement.id,
                txn_date=line.txn_date,
                posting_date=line.posting_date or line.txn_date,
                amount=line.amount,
                direction=line.direction,
                description=line.description,
                bank_identifier=line.bank_identifier,
                reference=line.reference,
                category_hint=line.category_hint,
                status=ReconciliationStatus.NAO_CONCILIADA,
            )
        )

    try:
        async with db.begin_nested():
            db.add(statement)
            await db.flush()
            db.add_all(rows)
            await db.flush()
    except IntegrityError as exc:
        # Lost a race against a concurrent import of the same file.
        logger.warning(
            "Statement import hit unique constraint",
            tenant_id=str(tenant_id),
            file_hash=file_hash,
            error=str(exc.orig),
        )
        raise DuplicateImportError(file_hash) from exc

    logger.info(
        "Statement imported",
        tenant_id=str(tenant_id),
        statement_id=str(statement.id),
        account_ref=account_ref,
        created=len(rows),
        skipped_duplicates=skipped,
    )
    return IngestionResult(statement=statement, created=len(rows), skipped_duplicates=skipped)
