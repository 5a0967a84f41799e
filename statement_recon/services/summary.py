"""Statement queries, status recompute and reconciliation summary."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from statement_recon.logger import get_logger
from statement_recon.models import (
    BankStatement,
    BankStatementTransaction,
    ReconciliationStatus,
    StatementStatus,
)
from statement_recon.schemas.statement import StatementSummary
from statement_recon.services.exceptions import NotFoundError

logger = get_logger(__name__)


async def _load_statement(
    db: AsyncSession,
    tenant_id: UUID,
    statement_id: UUID,
    *,
    with_transactions: bool = False,
) -> BankStatement:
    query = (
        select(BankStatement)
        .where(BankStatement.id == statement_id)
        .where(BankStatement.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    if with_transactions:
        query = query.options(selectinload(BankStatement.transactions))
    result = await db.execute(query)
    statement = result.scalar_one_or_none()
    if statement is None:
        raise NotFoundError("Statement", statement_id)
    return statement


async def _count_by_status(db: AsyncSession, tenant_id: UUID, statement_id: UUID) -> dict[ReconciliationStatus, int]:
    result = await db.execute(
        select(BankStatementTransaction.status, func.count())
        .where(BankStatementTransaction.statement_id == statement_id)
        .where(BankStatementTransaction.tenant_id == tenant_id)
        .group_by(BankStatementTransaction.status)
    )
    return {status: count for status, count in result.all()}


async def summarize_statement(db: AsyncSession, tenant_id: UUID, statement_id: UUID) -> StatementSummary:
    """Aggregate reconciliation counters for a statement."""
    await _load_statement(db, tenant_id, statement_id)
    counts = await _count_by_status(db, tenant_id, statement_id)

    reconciled = counts.get(ReconciliationStatus.CONCILIADA, 0)
    pending = counts.get(ReconciliationStatus.NAO_CONCILIADA, 0)
    ignored = counts.get(ReconciliationStatus.IGNORADA, 0)
    total = reconciled + pending + ignored
    percent = round(reconciled / total * 100, 2) if total else 0.0

    return StatementSummary(
        total=total,
        reconciled=reconciled,
        pending=pending,
        ignored=ignored,
        percent_reconciled=percent,
    )


async def refresh_statement_status(db: AsyncSession, tenant_id: UUID, statement_id: UUID) -> BankStatement:
    """Recompute PENDING/PROCESSED from the transactions' current state.

    A statement is PROCESSED once it was explicitly closed or no transaction
    is left in NAO_CONCILIADA.
    """
    statement = await _load_statement(db, tenant_id, statement_id)
    counts = await _count_by_status(db, tenant_id, statement_id)

    pending = counts.get(ReconciliationStatus.NAO_CONCILIADA, 0)
    target = StatementStatus.PROCESSED if statement.closed_at or pending == 0 else StatementStatus.PENDING
    if statement.status != target:
        logger.info(
            "Statement status changed",
            tenant_id=str(tenant_id),
            statement_id=str(statement_id),
            from_status=statement.status.value,
            to_status=target.value,
            pending=pending,
        )
        statement.status = target
        await db.flush()
    return statement


async def close_statement(db: AsyncSession, tenant_id: UUID, statement_id: UUID) -> BankStatement:
    """Explicitly close a statement. Closing twice keeps the first timestamp."""
    statement = await _load_statement(db, tenant_id, statement_id)
    if statement.closed_at is None:
        statement.closed_at = datetime.now(UTC)
    statement.status = StatementStatus.PROCESSED
    await db.flush()
    logger.info("Statement closed", tenant_id=str(tenant_id), statement_id=str(statement_id))
    return statement


async def list_statements(
    db: AsyncSession,
    tenant_id: UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[BankStatement], int]:
    """Return a page of the tenant's statements, newest first, and the total count."""
    result = await db.execute(
        select(BankStatement)
        .where(BankStatement.tenant_id == tenant_id)
        .order_by(BankStatement.imported_at.desc(), BankStatement.id)
        .limit(limit)
        .offset(offset)
    )
    statements = list(result.scalars().all())

    total_result = await db.execute(
        select(func.count()).select_from(BankStatement).where(BankStatement.tenant_id == tenant_id)
    )
    total = total_result.scalar() or 0
    return statements, total


async def get_statement(db: AsyncSession, tenant_id: UUID, statement_id: UUID) -> BankStatement:
    """Return a statement with its transactions loaded."""
    return await _load_statement(db, tenant_id, statement_id, with_transactions=True)
