"""
stock_services.operations -- StockOperations, the public API of the engine.

Responsibility:
    One method per operation.  Each method opens exactly one transaction
    (session_scope), binds the log context (correlation id, business,
    actor, operation), checks the product type is enabled, and delegates
    to the allocation, commit, reconciliation and intake services.

Architecture position:
    Services -- outermost layer.  Owns transaction boundaries; everything
    below flushes inside the transaction opened here.

Invariants enforced:
    - Atomicity: an operation's writes commit together or not at all.
    - Explicit tenancy: every call takes a TenantContext; nothing is read
      from ambient state.
    - plan_and_commit replans and retries on ConcurrencyError up to
      ``allocation.max_commit_attempts``; every attempt is its own
      transaction.

Failure modes:
    - ValidationError subclasses: bad input, nothing written.
    - NotFoundError subclasses: missing or already reconciled records.
    - ConcurrencyError: another transaction changed the same lots or load;
      safe to retry from planning.
    - StorageError: the database failed; safe to retry the whole call.

Usage:
    config = get_active_config()
    ops = StockOperations.bootstrap(config)

    ctx = TenantContext(business_id=business_id, actor_id=user_id)
    plan = ops.plan_allocation(ctx, ProductType.RICE, Decimal("70"))
    load = ops.commit_load(ctx, [plan], Assignee("rep-1", "Nimal"))
    report = ops.reconcile(ctx, load.load_id, {"rice": Decimal("20")})
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from stock_config import get_active_config
from stock_config.schema import EngineConfig
from stock_engines.allocation import AllocationPlanner
from stock_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    AllocationPlan,
    AllocationRequest,
    Assignee,
    Load,
    LoadReport,
    Lot,
    PriceTier,
    StockAuditResult,
    StockTotals,
    TenantContext,
)
from stock_kernel.domain.values import ProductType
from stock_kernel.exceptions import ConcurrencyError, ProductTypeNotEnabledError
from stock_kernel.logging_config import LogContext, configure_logging, get_logger
from stock_kernel.selectors.ledger_selector import LedgerSelector
from stock_kernel.selectors.load_selector import LoadSelector
from stock_kernel.selectors.report_selector import ReportSelector
from stock_services.allocation_service import AllocationService
from stock_services.intake_service import IntakeService
from stock_services.load_committer import LoadCommitter
from stock_services.reconciliation_service import ReconciliationService

logger = get_logger("services.operations")


class StockOperations:
    """
    Transactional facade over the stock engine.

    Contract:
        Every public method is one transaction.  Returned values are frozen
        DTOs, safe to use after the session has closed.

    Non-goals:
        - No caching: every read goes to the store.
        - No authorisation: the caller decides who may act for a business.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self._config = config if config is not None else get_active_config()
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._planner = AllocationPlanner(self._config.allocation.ordering)

    @classmethod
    def bootstrap(
        cls,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ) -> StockOperations:
        """Configure logging, connect to the configured database and create tables."""
        config = config if config is not None else get_active_config()
        configure_logging(level=config.logging.level_number)
        db = config.database
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            sqlite_timeout=db.sqlite_timeout,
        )
        create_tables()
        return cls(config=config, session_factory=get_session_factory(), clock=clock)

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def list_price_tiers(
        self, ctx: TenantContext, product_type: ProductType | str
    ) -> list[PriceTier]:
        product_type = self._enabled(product_type)
        with self._transaction(ctx, "list_price_tiers") as session:
            return AllocationService(session, self._planner).price_tiers(ctx, product_type)

    def plan_allocation(
        self,
        ctx: TenantContext,
        product_type: ProductType | str,
        quantity: Decimal | str | int,
        price_tier: Decimal | str | int | None = None,
    ) -> AllocationPlan:
        product_type = self._enabled(product_type)
        with self._transaction(ctx, "plan_allocation") as session:
            return AllocationService(session, self._planner).plan(
                ctx, product_type, quantity, price_tier
            )

    def commit_load(
        self,
        ctx: TenantContext,
        plans: Sequence[AllocationPlan],
        assignee: Assignee,
        notes: str = "",
    ) -> Load:
        for plan in plans:
            self._enabled(plan.product_type)
        with self._transaction(ctx, "commit_load") as session:
            return LoadCommitter(session, self._clock).commit(ctx, plans, assignee, notes)

    def plan_and_commit(
        self,
        ctx: TenantContext,
        requests: Sequence[AllocationRequest],
        assignee: Assignee,
        notes: str = "",
    ) -> Load:
        """Plan every request and commit them as one load, replanning on conflict."""
        requests = [
            AllocationRequest(self._enabled(r.product_type), r.quantity, r.price_tier)
            for r in requests
        ]
        max_attempts = self._config.allocation.max_commit_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                with self._transaction(ctx, "plan_and_commit") as session:
                    allocation = AllocationService(session, self._planner)
                    plans = [
                        allocation.plan(ctx, r.product_type, r.quantity, r.price_tier)
                        for r in requests
                    ]
                    return LoadCommitter(session, self._clock).commit(
                        ctx, plans, assignee, notes
                    )
            except ConcurrencyError as exc:
                if attempt == max_attempts:
                    logger.warning(
                        "commit_retries_exhausted",
                        extra={"attempts": attempt, "error_code": exc.code},
                    )
                    raise
                logger.info(
                    "commit_retry",
                    extra={"attempt": attempt, "error_code": exc.code},
                )
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(
        self,
        ctx: TenantContext,
        load_id: UUID,
        remaining_by_line: Mapping[ProductType | str, object],
    ) -> LoadReport:
        with self._transaction(ctx, "reconcile", load_id=load_id) as session:
            return ReconciliationService(session, self._clock).reconcile(
                ctx, load_id, remaining_by_line
            )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def bag_stock(
        self,
        ctx: TenantContext,
        product_type: ProductType | str,
        bag_weight: Decimal | str | int,
        bag_count: int,
        price: Decimal | str | int,
    ) -> list[Lot]:
        product_type = self._enabled(product_type)
        with self._transaction(ctx, "bag_stock") as session:
            return IntakeService(session, self._clock).bag_stock(
                ctx, product_type, bag_weight, bag_count, price
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_stock_totals(
        self, ctx: TenantContext, product_type: ProductType | str
    ) -> StockTotals:
        product_type = ProductType.parse(product_type)
        with self._transaction(ctx, "get_stock_totals") as session:
            return LedgerSelector(session).totals(ctx.business_id, product_type)

    def list_stock_totals(self, ctx: TenantContext) -> list[StockTotals]:
        """Totals for every enabled product type, zeros where nothing was bagged."""
        with self._transaction(ctx, "list_stock_totals") as session:
            selector = LedgerSelector(session)
            return [
                selector.totals(ctx.business_id, product_type)
                for product_type in ProductType
                if self._config.is_enabled(product_type)
            ]

    def get_load(self, ctx: TenantContext, load_id: UUID) -> Load:
        with self._transaction(ctx, "get_load", load_id=load_id) as session:
            return LoadSelector(session).get(ctx.business_id, load_id)

    def list_prepared_loads(
        self, ctx: TenantContext, assignee_id: str | None = None
    ) -> list[Load]:
        with self._transaction(ctx, "list_prepared_loads") as session:
            return LoadSelector(session).list_prepared(ctx.business_id, assignee_id)

    def get_load_report(self, ctx: TenantContext, report_id: UUID) -> LoadReport:
        with self._transaction(ctx, "get_load_report") as session:
            return ReportSelector(session).get(ctx.business_id, report_id)

    def list_load_reports(
        self,
        ctx: TenantContext,
        since: datetime | None = None,
        until: datetime | None = None,
        assignee_id: str | None = None,
    ) -> list[LoadReport]:
        with self._transaction(ctx, "list_load_reports") as session:
            return ReportSelector(session).list_reports(
                ctx.business_id, since, until, assignee_id
            )

    def audit_stock(self, ctx: TenantContext) -> StockAuditResult:
        enabled = [p for p in ProductType if self._config.is_enabled(p)]
        with self._transaction(ctx, "audit_stock") as session:
            return LedgerSelector(session).audit(ctx.business_id, enabled)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enabled(self, product_type: ProductType | str) -> ProductType:
        parsed = ProductType.parse(product_type)
        if not self._config.is_enabled(parsed):
            raise ProductTypeNotEnabledError(parsed.value)
        return parsed

    @contextmanager
    def _transaction(
        self,
        ctx: TenantContext,
        operation: str,
        load_id: UUID | None = None,
    ) -> Iterator[Session]:
        with LogContext.bind(
            correlation_id=uuid4(),
            business_id=ctx.business_id,
            actor_id=ctx.actor_id,
            operation=operation,
            load_id=load_id,
        ):
            with session_scope(self._session_factory) as session:
                yield session
