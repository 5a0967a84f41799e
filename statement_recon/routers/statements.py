"""Bank statement import and statement-level reconciliation API."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from statement_recon.deps import CurrentTenantId, DbSession
from statement_recon.logger import get_logger
from statement_recon.schemas import (
    BatchResult,
    ImportStatementRequest,
    ImportStatementResponse,
    StatementDetailResponse,
    StatementListResponse,
    StatementResponse,
    StatementSuggestionsResponse,
    StatementSummary,
)
from statement_recon.services.batch import auto_match_statement
from statement_recon.services.exceptions import ReconciliationError
from statement_recon.services.ingestion import ingest_statement
from statement_recon.services.matching import suggest_for_statement
from statement_recon.services.summary import (
    close_statement,
    get_statement,
    list_statements,
    summarize_statement,
)
from statement_recon.utils.exceptions import raise_for_reconciliation_error

router = APIRouter(prefix="/statements", tags=["statements"])
logger = get_logger(__name__)


@router.post("", response_model=ImportStatementResponse, status_code=status.HTTP_201_CREATED)
async def import_statement(
    payload: ImportStatementRequest,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> ImportStatementResponse:
    """Import a parsed statement. Re-importing the same file is rejected with 409."""
    logger.info(
        "Statement import request received",
        tenant_id=str(tenant_id),
        account_ref=payload.account_ref,
        filename=payload.original_filename,
        lines=len(payload.statement.transactions),
    )
    try:
        result = await ingest_statement(
            db,
            tenant_id=tenant_id,
            account_ref=payload.account_ref,
            file_bytes=payload.file_content,
            parsed=payload.statement,
            original_filename=payload.original_filename,
        )
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    await db.commit()

    return ImportStatementResponse(
        statement=StatementResponse.model_validate(result.statement),
        created=result.created,
        skipped_duplicates=result.skipped_duplicates,
    )


@router.get("", response_model=StatementListResponse)
async def list_statements_endpoint(
    db: DbSession,
    tenant_id: CurrentTenantId,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> StatementListResponse:
    """List the tenant's statements, newest first."""
    statements, total = await list_statements(db, tenant_id, limit=limit, offset=offset)
    return StatementListResponse(
        items=[StatementResponse.model_validate(s) for s in statements],
        total=total,
    )


@router.get("/{statement_id}", response_model=StatementDetailResponse)
async def get_statement_endpoint(
    statement_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> StatementDetailResponse:
    try:
        statement = await get_statement(db, tenant_id, statement_id)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    return StatementDetailResponse.model_validate(statement)


@router.get("/{statement_id}/summary", response_model=StatementSummary)
async def get_statement_summary(
    statement_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> StatementSummary:
    try:
        return await summarize_statement(db, tenant_id, statement_id)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)


@router.get("/{statement_id}/suggestions", response_model=StatementSuggestionsResponse)
async def get_statement_suggestions(
    statement_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
    limit: int | None = Query(None, ge=1, le=50),
) -> StatementSuggestionsResponse:
    """Suggestions for every unmatched credit of the statement."""
    try:
        suggestions = await suggest_for_statement(db, tenant_id, statement_id, max_results=limit)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    return StatementSuggestionsResponse(statement_id=statement_id, suggestions=suggestions)


@router.post("/{statement_id}/auto-match", response_model=BatchResult)
async def auto_match(
    statement_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> BatchResult:
    """Reconcile high-confidence suggestions automatically."""
    try:
        result = await auto_match_statement(db, tenant_id, statement_id)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    await db.commit()
    return result


@router.post("/{statement_id}/close", response_model=StatementResponse)
async def close_statement_endpoint(
    statement_id: UUID,
    db: DbSession,
    tenant_id: CurrentTenantId,
) -> StatementResponse:
    try:
        statement = await close_statement(db, tenant_id, statement_id)
    except ReconciliationError as exc:
        raise_for_reconciliation_error(exc)
    await db.commit()
    return StatementResponse.model_validate(statement)
