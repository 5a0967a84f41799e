"""Transaction-level reconciliation API."""

from uuid import UUID

from fastapi import APIRouter, Query
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.deps import CurrentTenantId, DbSession
from statement_recon.models import BankStatementTransaction
from statement_recon.schemas import (
    BatchRequest,
    BatchResult,
    IgnoreRequest,
    ReconcileRequest,
    TransactionResponse,
    TransactionSuggestionsResponse,
)
from statement_recon.services.batch import apply_batch
from statement_recon.services.exceptions import ReconciliationError
from statement_recon.services.matching import suggest_matches
from statement_recon.services.reconciliation import (
    ignore_transaction,
    reconcile_transaction,
    unlink_transaction,
)
from statement_recon.services.summary import refresh_statement_status
from statement_recon.utils.exceptions import raise_for_reconciliation_error

router = APIRouter(tags=["reconciliation"])


async def _finish(db: AsyncSession, tenant_id: UUID, transaction: BankStatementTransaction) -> TransactionResponse:
    await refresh_statement_status(db, tenant_id, transaction.statement_id)
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.get("/transactions/{transaction_id}/suggestions", response_model=TransactionSuggestionsResponse)
async def get_transaction_suggestions(
    transaction_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
    limit: int | None = Query(None, ge=1, le=50),
) -> TransactionSuggestionsResponse:
    """Ranked payment suggestions; empty once the transaction is settled."""
    try:
        suggestions = await suggest_matches(db, tenant_id, transaction_id, max_results=limit)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    return TransactionSuggestionsResponse(transaction_id=transaction_id, suggestions=suggestions)


@router.post("/transactions/{transaction_id}/reconcile", response_model=TransactionResponse)
async def reconcile(
    transaction_id: UUID,
    payload: ReconcileRequest,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> TransactionResponse:
    try:
        transaction = await reconcile_transaction(db, tenant_id, transaction_id, payload.payment_id)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    return await _finish(db, tenant_id, transaction)


@router.post("/transactions/{transaction_id}/ignore", response_model=TransactionResponse)
async def ignore(
    transaction_id: UUID,
    payload: IgnoreRequest,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> TransactionResponse:
    try:
        transaction = await ignore_transaction(db, tenant_id, transaction_id, payload.note)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    return await _finish(db, tenant_id, transaction)


@router.post("/transactions/{transaction_id}/unlink", response_model=TransactionResponse)
async def unlink(
    transaction_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> TransactionResponse:
    try:
        transaction = await unlink_transaction(db, tenant_id, transaction_id)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    return await _finish(db, tenant_id, transaction)


@router.post("/reconciliation/batch", response_model=BatchResult)
async def batch(
    payload: BatchRequest,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> BatchResult:
    """Apply operator-confirmed matches and ignores; failures are reported per item."""
    result = await apply_batch(db, tenant_id, payload.matches, payload.ignores)
    await db.commit()
    return result
