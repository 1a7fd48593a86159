"""
Module: stock_engines.allocation
Responsibility:
    Group available lots into price tiers, pick the tier an operator asked
    for, and select lots from it to cover a requested weight exactly.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel/domain and stock_kernel/exceptions.

Invariants enforced:
    - Exact allocation: the weights used by a plan sum to the requested
      quantity; only the last lot in consumption order may be partial.
    - Deterministic ordering: lots are ordered by created_at in the
      configured direction, ties broken by lot id ascending.  Identical
      inputs always produce identical plans.
    - Single price: every lot in a plan comes from one price tier.

Failure modes:
    - InvalidQuantityError when quantity <= 0 or not a number.
    - PriceTierNotFoundError when the selected tier has no available lots.
    - AmbiguousPriceTierError when several tiers exist and none is selected.
    - InsufficientStockError when the tier holds less than the quantity.

Usage:
    from stock_engines.allocation import AllocationPlanner

    planner = AllocationPlanner(AllocationOrdering.OLDEST_FIRST)
    plan = planner.plan(
        business_id=ctx.business_id,
        product_type=ProductType.RICE,
        quantity=Decimal("70"),
        lots=available_rice_lots,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from stock_engines.tracer import traced_engine
from stock_kernel.domain.dtos import AllocationPlan, Lot, PlannedLotUse, PriceTier
from stock_kernel.domain.values import (
    ZERO,
    AllocationOrdering,
    LotStatus,
    ProductType,
    positive,
    price_key,
    to_decimal,
)
from stock_kernel.exceptions import (
    AmbiguousPriceTierError,
    InsufficientStockError,
    PriceTierNotFoundError,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


def order_lots(lots: Sequence[Lot], ordering: AllocationOrdering) -> list[Lot]:
    """Consumption order: created_at per ``ordering``, then lot id ascending."""
    by_id = sorted(lots, key=lambda lot: str(lot.lot_id))
    return sorted(
        by_id,
        key=lambda lot: lot.created_at,
        reverse=ordering is AllocationOrdering.NEWEST_FIRST,
    )


class AllocationPlanner:
    """
    Plan which lots satisfy a requested weight.

    Contract:
        Pure functions over a snapshot of lots.  No I/O, no clock.
    Guarantees:
        - Lots not ``available`` or of another product type are ignored.
        - Tiers are listed by ascending price.
    Non-goals:
        - Does not lock or mutate lots; a plan is only a proposal that the
          load committer re-validates lot by lot.
    """

    def __init__(self, ordering: AllocationOrdering = AllocationOrdering.OLDEST_FIRST):
        self.ordering = ordering

    def price_tiers(self, product_type: ProductType, lots: Sequence[Lot]) -> list[PriceTier]:
        """Group the available lots of ``product_type`` by price."""
        grouped: dict[str, list[Lot]] = {}
        prices: dict[str, Decimal] = {}
        for lot in lots:
            if lot.product_type is not product_type or lot.status is not LotStatus.AVAILABLE:
                continue
            key = price_key(lot.price)
            grouped.setdefault(key, []).append(lot)
            prices.setdefault(key, lot.price)

        tiers = [
            PriceTier(
                product_type=product_type,
                price=prices[key],
                lots=tuple(order_lots(members, self.ordering)),
            )
            for key, members in grouped.items()
        ]
        tiers.sort(key=lambda tier: tier.price)
        return tiers

    def select_tier(
        self,
        product_type: ProductType,
        tiers: Sequence[PriceTier],
        price_tier: Decimal | str | int | None = None,
    ) -> PriceTier:
        """
        Resolve a tier selector against the available tiers.

        ``price_tier`` may be a price (``100``, ``"100.00"``) or a tier id
        (``"rice@100"``).  With no selector, a single tier is chosen
        implicitly.
        """
        available = [tier.tier_id for tier in tiers]

        if price_tier is None:
            if len(tiers) == 1:
                return tiers[0]
            if not tiers:
                raise InsufficientStockError(product_type.value, ZERO, ZERO)
            raise AmbiguousPriceTierError(product_type.value, available)

        wanted = self._selector_key(product_type, price_tier, available)
        for tier in tiers:
            if price_key(tier.price) == wanted:
                return tier
        raise PriceTierNotFoundError(product_type.value, str(price_tier), available)

    @traced_engine(
        "allocation",
        "1.0",
        fingerprint_fields=("product_type", "quantity", "price_tier"),
    )
    def plan(
        self,
        *,
        business_id: UUID,
        product_type: ProductType,
        quantity: Decimal | str | int,
        lots: Sequence[Lot],
        price_tier: Decimal | str | int | None = None,
    ) -> AllocationPlan:
        """
        Build an exact allocation plan.

        Postconditions:
            - sum(use.weight_used) == quantity.
            - Every use but the last consumes its lot whole.
        """
        quantity = positive(quantity, "quantity")
        tiers = self.price_tiers(product_type, lots)
        if not tiers and price_tier is None:
            raise InsufficientStockError(product_type.value, quantity, ZERO)
        tier = self.select_tier(product_type, tiers, price_tier)

        if quantity > tier.total_weight:
            logger.info(
                "allocation_insufficient_stock",
                extra={
                    "product_type": product_type.value,
                    "tier_id": tier.tier_id,
                    "requested": str(quantity),
                    "available": str(tier.total_weight),
                },
            )
            raise InsufficientStockError(
                product_type.value, quantity, tier.total_weight, tier.tier_id
            )

        uses: list[PlannedLotUse] = []
        remaining = quantity
        for lot in tier.lots:
            if remaining <= ZERO:
                break
            used = lot.weight if remaining >= lot.weight else remaining
            uses.append(
                PlannedLotUse(
                    lot_id=lot.lot_id,
                    lot_weight=lot.weight,
                    weight_used=used,
                    expected_version=lot.version,
                )
            )
            remaining -= used

        plan = AllocationPlan(
            business_id=business_id,
            product_type=product_type,
            price=tier.price,
            quantity=quantity,
            ordering=self.ordering,
            uses=tuple(uses),
        )
        logger.info(
            "allocation_planned",
            extra={
                "product_type": product_type.value,
                "tier_id": plan.tier_id,
                "quantity": str(quantity),
                "lots_consumed": plan.lots_consumed,
                "partial": plan.partial_use is not None,
                "ordering": self.ordering.value,
            },
        )
        return plan

    @staticmethod
    def _selector_key(
        product_type: ProductType,
        price_tier: Decimal | str | int,
        available: list[str],
    ) -> str:
        if isinstance(price_tier, str) and "@" in price_tier:
            prefix, _, price_text = price_tier.partition("@")
            if prefix != product_type.value:
                raise PriceTierNotFoundError(product_type.value, price_tier, available)
            price_tier = price_text
        return price_key(to_decimal(price_tier, "price_tier"))
