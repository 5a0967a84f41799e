"""Batch reconciliation: operator-confirmed batches and auto-matching."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.logger import get_logger, log_exception
from statement_recon.models import ReconciliationMethod
from statement_recon.schemas.reconciliation import (
    BatchFailure,
    BatchIgnoreItem,
    BatchMatchItem,
    BatchResult,
)
from statement_recon.services.exceptions import ReconciliationError
from statement_recon.services.matching import (
    ReconciliationConfig,
    load_reconciliation_config,
    suggest_for_statement,
)
from statement_recon.services.payment_ledger import PaymentLedger, SqlPaymentLedger
from statement_recon.services.reconciliation import ignore_transaction, reconcile_transaction
from statement_recon.services.summary import refresh_statement_status

logger = get_logger(__name__)

BATCH_IGNORE_NOTE = "Ignored in batch"


def _failure(action: str, transaction_id: UUID, exc: Exception, payment_id: UUID | None = None) -> BatchFailure:
    return BatchFailure(
        action=action,
        transaction_id=transaction_id,
        payment_id=payment_id,
        error=type(exc).__name__,
        message=str(exc),
    )


async def apply_batch(
    db: AsyncSession,
    tenant_id: UUID,
    matches: Sequence[BatchMatchItem] = (),
    ignores: Sequence[BatchIgnoreItem] = (),
    *,
    ledger: PaymentLedger | None = None,
) -> BatchResult:
    """Apply independent reconcile/ignore decisions.

    Matches run first, then ignores, each in input order. A failing item is
    recorded and does not undo earlier successes. Statements touched by a
    successful item get their status recomputed at the end.
    """
    ledger = ledger or SqlPaymentLedger(db)
    result = BatchResult()
    touched_statements: set[UUID] = set()

    for item in matches:
        try:
            transaction = await reconcile_transaction(
                db,
                tenant_id,
                item.transaction_id,
                item.payment_id,
                ReconciliationMethod.MANUAL,
                ledger=ledger,
            )
        except (ReconciliationError, SQLAlchemyError) as exc:
            log_exception(
                logger,
                exc,
                "Batch match failed",
                level="warning",
                include_traceback=False,
                tenant_id=str(tenant_id),
                transaction_id=str(item.transaction_id),
                payment_id=str(item.payment_id),
            )
            result.failures.append(_failure("match", item.transaction_id, exc, item.payment_id))
            continue
        result.matched += 1
        touched_statements.add(transaction.statement_id)

    for item in ignores:
        try:
            transaction = await ignore_transaction(db, tenant_id, item.transaction_id, item.note or BATCH_IGNORE_NOTE)
        except (ReconciliationError, SQLAlchemyError) as exc:
            log_exception(
                logger,
                exc,
                "Batch ignore failed",
                level="warning",
                include_traceback=False,
                tenant_id=str(tenant_id),
                transaction_id=str(item.transaction_id),
            )
            result.failures.append(_failure("ignore", item.transaction_id, exc))
            continue
        result.ignored += 1
        touched_statements.add(transaction.statement_id)

    result.failed = len(result.failures)

    for statement_id in touched_statements:
        await refresh_statement_status(db, tenant_id, statement_id)

    logger.info(
        "Reconciliation batch applied",
        tenant_id=str(tenant_id),
        matched=result.matched,
        ignored=result.ignored,
        failed=result.failed,
        statements=len(touched_statements),
    )
    return result


async def auto_match_statement(
    db: AsyncSession,
    tenant_id: UUID,
    statement_id: UUID,
    *,
    ledger: PaymentLedger | None = None,
    config: ReconciliationConfig | None = None,
) -> BatchResult:
    """Reconcile unmatched credits whose best suggestion clears the auto-match threshold.

    Transactions with the strongest top suggestion claim their payment first;
    a payment is never claimed twice within one run.
    """
    config = config or load_reconciliation_config()
    ledger = ledger or SqlPaymentLedger(db)

    suggestions = await suggest_for_statement(db, tenant_id, statement_id, ledger=ledger, config=config)
    ordered = sorted(
        (item for item in suggestions.items() if item[1]),
        key=lambda item: (-item[1][0].score, str(item[0])),
    )

    result = BatchResult()
    claimed: set[UUID] = set()
    for transaction_id, candidates in ordered:
        choice = next(
            (
                suggestion
                for suggestion in candidates
                if suggestion.payment_id not in claimed and suggestion.score >= config.auto_match_threshold
            ),
            None,
        )
        if choice is None:
            continue
        try:
            await reconcile_transaction(
                db,
                tenant_id,
                transaction_id,
                choice.payment_id,
                ReconciliationMethod.AUTO,
                ledger=ledger,
            )
        except (ReconciliationError, SQLAlchemyError) as exc:
            result.failures.append(_failure("match", transaction_id, exc, choice.payment_id))
            continue
        claimed.add(choice.payment_id)
        result.matched += 1

    result.failed = len(result.failures)
    await refresh_statement_status(db, tenant_id, statement_id)

    logger.info(
        "Statement auto-match finished",
        tenant_id=str(tenant_id),
        statement_id=str(statement_id),
        threshold=config.auto_match_threshold,
        candidates=len(suggestions),
        matched=result.matched,
        failed=result.failed,
    )
    return result
