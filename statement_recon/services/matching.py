"""Matching engine: scores ledger payments against bank transactions."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from uuid import UUID

import yaml
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.config import settings
from statement_recon.logger import async_log_timing, get_logger
from statement_recon.models import (
    BankStatement,
    BankStatementTransaction,
    ReconciliationStatus,
    TransactionDirection,
)
from statement_recon.schemas.reconciliation import MatchSuggestion
from statement_recon.services.exceptions import NotFoundError
from statement_recon.services.payment_ledger import PaymentCandidate, PaymentLedger, SqlPaymentLedger

logger = get_logger(__name__)

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class ReconciliationConfig:
    """Runtime configuration for reconciliation scoring."""

    amount_tolerance: Decimal
    date_tolerance_days: int
    weight_amount: Decimal
    weight_date: Decimal
    # Points lost at the edge of each tolerance window
    amount_edge_penalty: Decimal
    date_edge_penalty: Decimal
    max_suggestions: int
    min_score: int
    auto_match_threshold: int


DEFAULT_CONFIG = ReconciliationConfig(
    amount_tolerance=Decimal("5.00"),
    date_tolerance_days=3,
    weight_amount=Decimal("0.70"),
    weight_date=Decimal("0.30"),
    amount_edge_penalty=Decimal("40"),
    date_edge_penalty=Decimal("35"),
    max_suggestions=5,
    min_score=50,
    auto_match_threshold=90,
)

_config_cache: ReconciliationConfig | None = None


def _config_from_settings() -> ReconciliationConfig:
    return replace(
        DEFAULT_CONFIG,
        amount_tolerance=settings.reconciliation_amount_tolerance,
        date_tolerance_days=settings.reconciliation_date_tolerance_days,
        weight_amount=settings.reconciliation_weight_amount,
        weight_date=settings.reconciliation_weight_date,
        max_suggestions=settings.reconciliation_max_suggestions,
        auto_match_threshold=settings.reconciliation_auto_match_threshold,
    )


def load_reconciliation_config(force_reload: bool = False) -> ReconciliationConfig:
    """Load reconciliation configuration.

    Settings provide the base values, an optional YAML file at
    ``RECONCILIATION_CONFIG_PATH`` overrides them, and the
    ``RECONCILIATION_AUTO_MATCH_THRESHOLD`` env var wins last.
    Caches the result to avoid repeated disk I/O.
    """
    global _config_cache
    if _config_cache is not None and not force_reload:
        return _config_cache

    config = _config_from_settings()
    config_path = os.getenv("RECONCILIATION_CONFIG_PATH") or settings.reconciliation_config_path

    if config_path and Path(config_path).exists():
        try:
            raw = yaml.safe_load(Path(config_path).read_text()) or {}
            tolerances = raw.get("tolerances", {})
            weights = raw.get("weights", {})
            penalties = raw.get("penalties", {})
            limits = raw.get("limits", {})

            config = ReconciliationConfig(
                amount_tolerance=Decimal(str(tolerances.get("amount", config.amount_tolerance))),
                date_tolerance_days=int(tolerances.get("date_days", config.date_tolerance_days)),
                weight_amount=Decimal(str(weights.get("amount", config.weight_amount))),
                weight_date=Decimal(str(weights.get("date", config.weight_date))),
                amount_edge_penalty=Decimal(str(penalties.get("amount_edge", config.amount_edge_penalty))),
                date_edge_penalty=Decimal(str(penalties.get("date_edge", config.date_edge_penalty))),
                max_suggestions=int(limits.get("max_suggestions", config.max_suggestions)),
                min_score=int(limits.get("min_score", config.min_score)),
                auto_match_threshold=int(limits.get("auto_match_threshold", config.auto_match_threshold)),
            )
        except Exception as e:
            logger.warning(
                "Failed to load reconciliation config - using defaults",
                config_path=str(config_path),
                error=str(e),
                error_type=type(e).__name__,
            )

    auto_match_env = os.getenv("RECONCILIATION_AUTO_MATCH_THRESHOLD")
    if auto_match_env:
        config = replace(config, auto_match_threshold=int(auto_match_env))

    _config_cache = config
    return config


def _linear_score(diff: Decimal, tolerance: Decimal, edge_penalty: Decimal) -> Decimal:
    if tolerance <= 0:
        return HUNDRED if diff == 0 else Decimal("0")
    if diff > tolerance:
        return Decimal("0")
    return max(Decimal("0"), HUNDRED - edge_penalty * diff / tolerance)


def score_amount(txn_amount: Decimal, payment_amount: Decimal, config: ReconciliationConfig) -> Decimal:
    """Score amount proximity (0-100). Amounts are compared unsigned."""
    diff = abs(abs(txn_amount) - abs(payment_amount))
    return _linear_score(diff, config.amount_tolerance, config.amount_edge_penalty)


def score_date(days_apart: int, config: ReconciliationConfig) -> Decimal:
    """Score date proximity (0-100)."""
    return _linear_score(
        Decimal(abs(days_apart)),
        Decimal(config.date_tolerance_days),
        config.date_edge_penalty,
    )


def weighted_total(amount_score: Decimal, date_score: Decimal, config: ReconciliationConfig) -> int:
    """Combine component scores into a 0-100 integer, rounding half up."""
    total = config.weight_amount * amount_score + config.weight_date * date_score
    rounded = int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(100, max(0, rounded))


def describe_match(amount_diff: Decimal, days_apart: int) -> str:
    """Human readable explanation of a suggestion."""
    days = abs(days_apart)
    day_label = "day" if days == 1 else "days"
    diff_label = f"{abs(amount_diff).quantize(CENT)}"
    if amount_diff == 0 and days == 0:
        return "Exact amount and date"
    if amount_diff == 0:
        return f"Exact amount, {days} {day_label} apart"
    if days == 0:
        return f"Same date, amount differs by {diff_label}"
    return f"Amount differs by {diff_label}, {days} {day_label} apart"


def rank_suggestions(
    transaction: BankStatementTransaction,
    candidates: Iterable[PaymentCandidate],
    config: ReconciliationConfig,
    max_results: int | None = None,
) -> list[MatchSuggestion]:
    """Score and order candidate payments for one transaction.

    Pure function. Candidates outside either tolerance window, of another
    direction or scoring below ``min_score`` are dropped. Ordering is score
    descending, then date distance ascending, then payment id.
    """
    limit = config.max_suggestions if max_results is None else max_results
    if limit <= 0:
        return []

    txn_amount = transaction.absolute_amount
    scored: list[tuple[int, int, str, MatchSuggestion]] = []
    for candidate in candidates:
        if candidate.direction != transaction.direction:
            continue
        amount_diff = abs(txn_amount - abs(candidate.amount))
        days_apart = abs((candidate.payment_date - transaction.txn_date).days)
        if amount_diff > config.amount_tolerance or days_apart > config.date_tolerance_days:
            continue

        score = weighted_total(
            score_amount(txn_amount, candidate.amount, config),
            score_date(days_apart, config),
            config,
        )
        if score < config.min_score:
            continue

        suggestion = MatchSuggestion(
            payment_id=candidate.id,
            payment_date=candidate.payment_date,
            amount=candidate.amount,
            payment_type=candidate.payment_type,
            order_number=candidate.order_number,
            customer_name=candidate.customer_name,
            score=score,
            reason=describe_match(amount_diff, days_apart),
            date_diff_days=days_apart,
            amount_diff=amount_diff,
        )
        scored.append((-score, days_apart, str(candidate.id), suggestion))

    scored.sort(key=lambda item: item[:3])
    return [item[3] for item in scored[:limit]]


async def _suggest(
    transaction: BankStatementTransaction,
    ledger: PaymentLedger,
    config: ReconciliationConfig,
    max_results: int | None,
) -> list[MatchSuggestion]:
    candidates = await ledger.find_candidates(
        transaction.tenant_id,
        direction=transaction.direction,
        amount=transaction.absolute_amount,
        txn_date=transaction.txn_date,
        amount_tolerance=config.amount_tolerance,
        date_tolerance_days=config.date_tolerance_days,
    )
    return rank_suggestions(transaction, candidates, config, max_results)


async def suggest_matches(
    db: AsyncSession,
    tenant_id: UUID,
    transaction_id: UUID,
    *,
    ledger: PaymentLedger | None = None,
    max_results: int | None = None,
    config: ReconciliationConfig | None = None,
) -> list[MatchSuggestion]:
    """Return ranked payment suggestions for one transaction.

    Returns an empty list when the transaction is already reconciled or
    ignored. Never writes.
    """
    config = config or load_reconciliation_config()
    ledger = ledger or SqlPaymentLedger(db)

    result = await db.execute(
        select(BankStatementTransaction)
        .where(BankStatementTransaction.id == transaction_id)
        .where(BankStatementTransaction.tenant_id == tenant_id)
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise NotFoundError("Transaction", transaction_id)
    if transaction.status != ReconciliationStatus.NAO_CONCILIADA:
        return []

    suggestions = await _suggest(transaction, ledger, config, max_results)
    logger.debug(
        "Computed match suggestions",
        tenant_id=str(tenant_id),
        transaction_id=str(transaction_id),
        suggestions=len(suggestions),
    )
    return suggestions


async def suggest_for_statement(
    db: AsyncSession,
    tenant_id: UUID,
    statement_id: UUID,
    *,
    ledger: PaymentLedger | None = None,
    max_results: int | None = None,
    config: ReconciliationConfig | None = None,
) -> dict[UUID, list[MatchSuggestion]]:
    """Suggestions for every unmatched credit transaction of a statement."""
    config = config or load_reconciliation_config()
    ledger = ledger or SqlPaymentLedger(db)

    statement_found = await db.execute(
        select(BankStatement.id).where(BankStatement.id == statement_id).where(BankStatement.tenant_id == tenant_id)
    )
    if statement_found.scalar_one_or_none() is None:
        raise NotFoundError("Statement", statement_id)

    result = await db.execute(
        select(BankStatementTransaction)
        .where(BankStatementTransaction.statement_id == statement_id)
        .where(BankStatementTransaction.tenant_id == tenant_id)
        .where(BankStatementTransaction.status == ReconciliationStatus.NAO_CONCILIADA)
        .where(BankStatementTransaction.direction == TransactionDirection.CREDIT)
        .order_by(BankStatementTransaction.txn_date, BankStatementTransaction.id)
    )
    transactions = result.scalars().all()

    suggestions: dict[UUID, list[MatchSuggestion]] = {}
    async with async_log_timing(
        "suggest_for_statement",
        logger=logger,
        tenant_id=str(tenant_id),
        statement_id=str(statement_id),
    ) as timing:
        for transaction in transactions:
            suggestions[transaction.id] = await _suggest(transaction, ledger, config, max_results)
        timing["transactions"] = len(transactions)
        timing["with_suggestions"] = sum(1 for items in suggestions.values() if items)
    return suggestions
