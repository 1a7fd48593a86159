"""
Value vocabulary of the stock kernel.

Responsibility:
    Enumerations shared by every layer (product types, lot and load
    statuses, ledger fields, allocation ordering) and the Decimal
    coercion used at every input boundary.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Weights and prices are Decimal, never float.  ``to_decimal`` goes
      through ``str`` so 0.1 becomes Decimal("0.1"), not its binary value.
    - No input carries more decimal places than the store keeps, so a
      plan, its load payload and the lot rows agree to the last digit.
    - Lot status moves forward only: available -> loaded -> sold, plus
      loaded -> available for weight returned by reconciliation.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum

from stock_kernel.exceptions import InvalidQuantityError

ZERO = Decimal("0")

# Decimal places kept by the Numeric(38, 9) weight and price columns.
STORED_SCALE = 9


class ProductType(str, Enum):
    """Bagged product types.  Values match the keys of stored stock totals."""

    PADDY = "paddy"
    RICE = "rice"
    RICE_SAMBA = "rice_samba"
    RICE_NADU = "rice_nadu"
    RICE_KEERI_SAMBA = "rice_keeri_samba"
    RICE_RED_RICE = "rice_red_rice"
    RICE_BASMATI = "rice_basmati"
    RICE_WHITE_RICE = "rice_white_rice"
    RICE_SUDU_KAKULU = "rice_sudu_kakulu"
    RICE_KALU_HEENATI = "rice_kalu_heenati"
    HUNU_SAHAL = "hunuSahal"
    KADUNU_SAHAL = "kadunuSahal"
    RICE_POLISH = "ricePolish"
    DAHAIYYA = "dahaiyya"
    FLOUR = "flour"

    @classmethod
    def parse(cls, value: "ProductType | str") -> "ProductType":
        """Accept an enum member or its stored value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidQuantityError(
                "product_type", value, "unknown product type"
            ) from None


class LotStatus(str, Enum):
    """Lifecycle of a physical bag."""

    AVAILABLE = "available"
    LOADED = "loaded"
    SOLD = "sold"

    def can_transition_to(self, target: "LotStatus") -> bool:
        return target in _LOT_TRANSITIONS[self]


_LOT_TRANSITIONS: dict[LotStatus, frozenset[LotStatus]] = {
    LotStatus.AVAILABLE: frozenset({LotStatus.LOADED}),
    LotStatus.LOADED: frozenset({LotStatus.SOLD, LotStatus.AVAILABLE}),
    LotStatus.SOLD: frozenset(),
}


class LoadStatus(str, Enum):
    """Loads only ever exist as prepared; reconciliation deletes them."""

    PREPARED = "prepared"


class LedgerField(str, Enum):
    """Columns of the aggregate stock ledger."""

    BAGGED_TOTAL = "bagged_total"
    BAGGED_BAG_COUNT = "bagged_bag_count"
    LOADED_TOTAL = "loaded_total"
    LOADED_BAG_COUNT = "loaded_bag_count"
    SOLD_TOTAL = "sold_total"
    SOLD_VALUE = "sold_value"


class AllocationOrdering(str, Enum):
    """Order in which lots of a price tier are consumed."""

    OLDEST_FIRST = "oldest_first"  # FIFO on created_at
    NEWEST_FIRST = "newest_first"  # LIFO on created_at


def to_decimal(value: object, field: str) -> Decimal:
    """Coerce a number-like value to a finite Decimal.

    Raises:
        InvalidQuantityError: for None, booleans, non-numeric or non-finite values.
    """
    if value is None or isinstance(value, bool):
        raise InvalidQuantityError(field, value, "a number is required")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidQuantityError(field, value, "not a number") from None
    if not result.is_finite():
        raise InvalidQuantityError(field, value, "must be finite")
    if -result.normalize().as_tuple().exponent > STORED_SCALE:
        raise InvalidQuantityError(
            field, value, f"more than {STORED_SCALE} decimal places"
        )
    return result


def positive(value: object, field: str) -> Decimal:
    """Coerce and require > 0."""
    result = to_decimal(value, field)
    if result <= ZERO:
        raise InvalidQuantityError(field, value, "must be greater than zero")
    return result


def non_negative(value: object, field: str) -> Decimal:
    """Coerce and require >= 0."""
    result = to_decimal(value, field)
    if result < ZERO:
        raise InvalidQuantityError(field, value, "cannot be negative")
    return result


def price_key(price: Decimal) -> str:
    """Canonical text for a price, stable across storage round-trips.

    ``Decimal("100")`` and ``Decimal("100.000000000")`` both map to ``"100"``.
    """
    normalized = price.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")
