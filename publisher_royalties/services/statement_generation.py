"""
Statement generation workflow.

For each author/title pair in a period:
1. Load the contract, co-author stakes, period sales, approved returns and
   (for lifetime contracts) lifetime sales before the period
2. Assemble the StatementCalculations document
3. Persist a Statement and, when anything was recouped, an
   AdvanceLedgerEntry referencing it

Co-authored titles take their rate tables from the primary author's
contract; the advance is always the statement author's own.

Batch runs isolate failures per pair: an engine error on one author is
recorded and the others continue. Database errors abort the batch.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from publisher_royalties.core.exceptions import CalculationError, DataIntegrityError, RoyaltyEngineError
from publisher_royalties.models.advance_ledger import AdvanceLedgerEntry, LedgerEntryType
from publisher_royalties.models.contract import Contract, ContractStatus, RateMode
from publisher_royalties.models.statement import Statement, StatementStatus
from publisher_royalties.schemas.statements import StatementCalculations
from publisher_royalties.services import royalty_queries
from publisher_royalties.services.lifetime_sales import QueryScope, get_lifetime_sales_by_format_before_date
from publisher_royalties.services.royalty_periods import RoyaltyPeriod
from publisher_royalties.services.splits import ReconciliationPolicy, owners_from_records
from publisher_royalties.services.statement_assembler import (
    AuthorContext,
    ContractTerms,
    FormatActivity,
    TitleContext,
    assemble_statement,
    contract_terms_from_tiers,
)

logger = logging.getLogger(__name__)


@dataclass
class StatementFailure:
    """An author/title pair the batch could not produce a statement for."""
    author_id: UUID
    title_id: UUID
    error_code: str
    message: str


@dataclass
class BatchResult:
    """Result of a batch statement run."""
    period: RoyaltyPeriod
    statements: List[Statement] = field(default_factory=list)
    failures: List[StatementFailure] = field(default_factory=list)
    total_net_payable: Decimal = Decimal("0")

    @property
    def success_count(self) -> int:
        return len(self.statements)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


@dataclass
class StatementInputs:
    contract: Contract
    author: AuthorContext
    title: TitleContext
    terms: ContractTerms
    activity: List[FormatActivity]


class StatementGenerator:
    """Loads inputs, assembles and persists author statements."""

    def __init__(self, policy: ReconciliationPolicy = ReconciliationPolicy.PRIMARY_AUTHOR):
        self.policy = policy

    async def load_inputs(
        self,
        db: AsyncSession,
        scope: QueryScope,
        author_id: UUID,
        title_id: UUID,
        period: RoyaltyPeriod,
    ) -> StatementInputs:
        """
        Gather everything the assembler needs for one author/title/period.

        Raises:
            CalculationError: no active contract for the author or, on a
                co-authored title, for the primary author
        """
        contract = await royalty_queries.get_contract(db, scope, author_id, title_id)
        if contract is None:
            raise CalculationError(
                f"No active contract for author {author_id} on title {title_id}",
                author_id=str(author_id),
                title_id=str(title_id),
            )

        owners = owners_from_records(await royalty_queries.get_title_authors(db, scope, title_id))
        title = TitleContext(title_id=title_id, co_authors=tuple(owners))

        rate_contract = contract
        if title.is_co_authored:
            primary = next((o for o in owners if o.is_primary), owners[0])
            if primary.author_id != author_id:
                rate_contract = await royalty_queries.get_contract(db, scope, primary.author_id, title_id)
                if rate_contract is None:
                    raise CalculationError(
                        f"No active contract for primary author {primary.author_id} on title {title_id}",
                        title_id=str(title_id),
                    )

        previously_recouped = await royalty_queries.get_recouped_to_date(db, scope, contract.id)
        terms = contract_terms_from_tiers(
            rate_contract.tier_calculation_mode,
            rate_contract.tiers,
            original_advance=contract.advance_amount,
            previously_recouped=previously_recouped,
        )

        sales = await royalty_queries.get_period_sales_by_format(db, scope, title_id, period)
        returns = await royalty_queries.get_period_returns_by_format(db, scope, title_id, period)

        lifetime = {}
        if terms.rate_mode == RateMode.LIFETIME:
            lifetime = await get_lifetime_sales_by_format_before_date(db, scope, title_id, period.start_date)

        activity = []
        for fmt in sorted(set(sales) | set(returns), key=lambda f: f.value):
            kwargs = {}
            if fmt in sales:
                kwargs["sales"] = sales[fmt]
            if fmt in returns:
                kwargs["returns"] = returns[fmt]
            if terms.rate_mode == RateMode.LIFETIME:
                history = lifetime.get(fmt)
                kwargs["lifetime_units_before"] = history.lifetime_quantity if history else 0
            activity.append(FormatActivity(format=fmt, **kwargs))

        return StatementInputs(
            contract=contract,
            author=AuthorContext(author_id=author_id),
            title=title,
            terms=terms,
            activity=activity,
        )

    async def _ensure_not_issued(
        self,
        db: AsyncSession,
        scope: QueryScope,
        contract: Contract,
        period: RoyaltyPeriod,
    ) -> None:
        stmt = select(Statement.id).where(
            Statement.contract_id == contract.id,
            Statement.period_start == period.start_date,
            Statement.period_end == period.end_date,
        )
        result = await db.execute(scope.apply(stmt, Statement))
        existing = result.scalars().first()
        if existing is not None:
            # A second statement would recoup the same royalty twice
            raise DataIntegrityError(
                f"Statement {existing} already issued for contract {contract.id} in {period}",
                statement_id=str(existing),
            )

    async def generate_statement(
        self,
        db: AsyncSession,
        scope: QueryScope,
        author_id: UUID,
        title_id: UUID,
        period: RoyaltyPeriod,
    ) -> Statement:
        """
        Generate and persist one author's statement for a title and period.

        Returns:
            The new (flushed, not committed) Statement
        """
        inputs = await self.load_inputs(db, scope, author_id, title_id, period)
        await self._ensure_not_issued(db, scope, inputs.contract, period)

        calculations: StatementCalculations = assemble_statement(
            inputs.author,
            inputs.title,
            period,
            inputs.terms,
            inputs.activity,
            policy=self.policy,
        )

        statement = Statement(
            id=uuid.uuid4(),
            tenant_id=inputs.contract.tenant_id,
            author_id=author_id,
            title_id=title_id,
            contract_id=inputs.contract.id,
            period_start=period.start_date,
            period_end=period.end_date,
            currency=inputs.contract.currency,
            status=StatementStatus.DRAFT,
            total_royalty_earned=calculations.gross_royalty,
            recoupment=calculations.advance_recoupment.this_period_recoupment,
            net_payable=calculations.net_payable,
            is_split_calculation=calculations.split_calculation is not None,
            calculations=calculations.to_document(),
        )
        db.add(statement)

        recouped = calculations.advance_recoupment.this_period_recoupment
        if recouped > 0:
            db.add(AdvanceLedgerEntry(
                tenant_id=inputs.contract.tenant_id,
                contract_id=inputs.contract.id,
                entry_type=LedgerEntryType.RECOUPMENT,
                amount=recouped,
                currency=inputs.contract.currency,
                statement_id=statement.id,
                effective_date=period.end_date,
                description=f"Recoupment from statement {statement.id}",
            ))

        await db.flush()

        logger.info(
            f"Generated statement {statement.id} for author {author_id} title {title_id} {period}: "
            f"net_payable={statement.net_payable}"
        )
        return statement

    async def _active_pairs(self, db: AsyncSession, scope: QueryScope) -> List[Tuple[UUID, UUID]]:
        stmt = (
            select(Contract.author_id, Contract.title_id)
            .where(Contract.status == ContractStatus.ACTIVE)
            .order_by(Contract.title_id, Contract.author_id)
        )
        result = await db.execute(scope.apply(stmt, Contract))
        return [(author_id, title_id) for author_id, title_id in result.all()]

    async def generate_batch(
        self,
        db: AsyncSession,
        scope: QueryScope,
        period: RoyaltyPeriod,
        pairs: Optional[Iterable[Tuple[UUID, UUID]]] = None,
    ) -> BatchResult:
        """
        Generate statements for many author/title pairs.

        Args:
            db: Database session
            scope: Tenant or admin scope
            period: Royalty period
            pairs: (author_id, title_id) pairs; defaults to every active
                contract visible in the scope

        Returns:
            BatchResult with the statements produced and the failures
        """
        if pairs is None:
            pairs = await self._active_pairs(db, scope)
        pairs = list(pairs)

        logger.info(f"Starting statement batch for {period}: {len(pairs)} author/title pairs")
        result = BatchResult(period=period)

        for author_id, title_id in pairs:
            try:
                statement = await self.generate_statement(db, scope, author_id, title_id, period)
            except RoyaltyEngineError as e:
                logger.error(f"Statement failed for author {author_id} title {title_id}: {e.code} {e.message}")
                result.failures.append(StatementFailure(
                    author_id=author_id,
                    title_id=title_id,
                    error_code=e.code,
                    message=e.message,
                ))
                continue

            result.statements.append(statement)
            result.total_net_payable += statement.net_payable

        logger.info(
            f"Statement batch completed for {period}: "
            f"{result.success_count} generated, {result.failure_count} failed, "
            f"total_net_payable={result.total_net_payable}"
        )
        return result
