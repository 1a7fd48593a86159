"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (loading screens, APIs, batch jobs) must react to
failures precisely: a validation failure is shown to the operator, a
concurrency failure is retried from planning, a storage failure is retried
as a whole.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        ops.commit_load(ctx, plans, assignee)
    except ConcurrencyError:
        plans = replan(...)          # safe: nothing was applied
    except ValidationError as e:
        api_response(code=e.code, detail=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- ValidationError                 (rejected before any mutation)
    |   +-- InvalidQuantityError
    |   +-- ProductTypeNotEnabledError
    |   +-- PriceTierNotFoundError
    |   +-- AmbiguousPriceTierError
    |   +-- InsufficientStockError
    |   +-- EmptyLoadError
    |   +-- DuplicateLoadLineError
    |   +-- TenantMismatchError
    |   +-- MissingRemainingQuantityError
    |   +-- InvalidRemainingQuantityError
    |   +-- UnknownLoadLineError
    |   +-- InvalidConfigurationError
    |
    +-- NotFoundError
    |   +-- LotNotFoundError
    |   +-- LoadNotFoundError
    |   +-- LoadReportNotFoundError
    |
    +-- ConcurrencyError                (safe to retry from planning)
    |   +-- LotStateConflictError
    |   +-- StoreContentionError
    |
    +-- StorageError                    (safe to retry the whole call)
    |   +-- StoreUnavailableError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|-------------------------------------
Validation   | INVALID_QUANTITY              | quantity/weight/price out of range
             | PRODUCT_TYPE_NOT_ENABLED      | product type disabled by config
             | PRICE_TIER_NOT_FOUND          | selected price tier has no lots
             | AMBIGUOUS_PRICE_TIER          | several tiers, none selected
             | INSUFFICIENT_STOCK            | quantity > tier total weight
             | EMPTY_LOAD                    | no plans / zero total
             | DUPLICATE_LOAD_LINE           | two plans for one product type
             | TENANT_MISMATCH               | plan belongs to another business
             | MISSING_REMAINING_QUANTITY    | reconcile without a line's value
             | INVALID_REMAINING_QUANTITY    | remaining < 0 or > loaded
             | UNKNOWN_LOAD_LINE             | remaining given for absent line
             | INVALID_CONFIGURATION         | bad engine configuration
-------------|-------------------------------|-------------------------------------
Not found    | LOT_NOT_FOUND                 | lot id does not exist
             | LOAD_NOT_FOUND                | load missing or already reconciled
             | LOAD_REPORT_NOT_FOUND         | report id does not exist
-------------|-------------------------------|-------------------------------------
Concurrency  | LOT_STATE_CONFLICT            | lot changed between plan and commit
             | STORE_CONTENTION              | lock wait / deadlock / serialization
-------------|-------------------------------|-------------------------------------
Storage      | STORE_UNAVAILABLE             | database unreachable or failing
-------------|-------------------------------|-------------------------------------
Immutability | IMMUTABILITY_VIOLATION        | update/delete of a load report

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError: domain errors are catchable as
   a group and never confused with programming errors.

2. ``code`` is a class attribute: ``LoadNotFoundError.code`` is available
   without instantiation for API documentation.

3. There is no "fatal" category.  Every operation is one transaction, so
   every failure leaves the store exactly as it was before the call.
"""

from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation exceptions


class ValidationError(StockKernelError):
    """Bad input.  Always raised before any mutation."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """A quantity, weight or price is missing, non-numeric or out of range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class ProductTypeNotEnabledError(ValidationError):
    """Product type is not enabled for this deployment."""

    code: str = "PRODUCT_TYPE_NOT_ENABLED"

    def __init__(self, product_type: str):
        self.product_type = product_type
        super().__init__(f"Product type not enabled: {product_type}")


class PriceTierNotFoundError(ValidationError):
    """No available lots of the product type at the selected price."""

    code: str = "PRICE_TIER_NOT_FOUND"

    def __init__(self, product_type: str, price_tier: str, available: list[str]):
        self.product_type = product_type
        self.price_tier = price_tier
        self.available = available
        super().__init__(
            f"No price tier {price_tier} for {product_type}; "
            f"available tiers: {', '.join(available) or 'none'}"
        )


class AmbiguousPriceTierError(ValidationError):
    """Several price tiers exist and the caller did not pick one."""

    code: str = "AMBIGUOUS_PRICE_TIER"

    def __init__(self, product_type: str, available: list[str]):
        self.product_type = product_type
        self.available = available
        super().__init__(
            f"{product_type} has {len(available)} price tiers "
            f"({', '.join(available)}); select one"
        )


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the weight available in the price tier."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_type: str,
        requested: Decimal,
        available: Decimal,
        price_tier: str | None = None,
    ):
        self.product_type = product_type
        self.requested = str(requested)
        self.available = str(available)
        self.price_tier = price_tier
        super().__init__(
            f"Insufficient {product_type} stock"
            f"{f' in tier {price_tier}' if price_tier else ''}: "
            f"requested {requested}, available {available}"
        )


class EmptyLoadError(ValidationError):
    """A load must contain at least one line with positive weight."""

    code: str = "EMPTY_LOAD"

    def __init__(self, reason: str = "no line items selected"):
        self.reason = reason
        super().__init__(f"Cannot commit an empty load: {reason}")


class DuplicateLoadLineError(ValidationError):
    """Two plans were supplied for the same product type."""

    code: str = "DUPLICATE_LOAD_LINE"

    def __init__(self, line_key: str):
        self.line_key = line_key
        super().__init__(f"More than one plan for load line {line_key}")


class TenantMismatchError(ValidationError):
    """A plan or record belongs to another business."""

    code: str = "TENANT_MISMATCH"

    def __init__(self, expected_business_id: str, actual_business_id: str):
        self.expected_business_id = expected_business_id
        self.actual_business_id = actual_business_id
        super().__init__(
            f"Record belongs to business {actual_business_id}, "
            f"not {expected_business_id}"
        )


class MissingRemainingQuantityError(ValidationError):
    """Reconciliation did not supply a remaining quantity for a line."""

    code: str = "MISSING_REMAINING_QUANTITY"

    def __init__(self, load_id: str, line_key: str):
        self.load_id = load_id
        self.line_key = line_key
        super().__init__(
            f"Remaining quantity missing for line {line_key} of load {load_id}"
        )


class InvalidRemainingQuantityError(ValidationError):
    """Remaining quantity is negative or exceeds the loaded quantity."""

    code: str = "INVALID_REMAINING_QUANTITY"

    def __init__(
        self,
        load_id: str,
        line_key: str,
        remaining: object,
        loaded: Decimal,
    ):
        self.load_id = load_id
        self.line_key = line_key
        self.remaining = str(remaining)
        self.loaded = str(loaded)
        super().__init__(
            f"Remaining quantity {remaining} for line {line_key} of load "
            f"{load_id} must be between 0 and {loaded}"
        )


class UnknownLoadLineError(ValidationError):
    """Remaining quantity supplied for a line the load does not have."""

    code: str = "UNKNOWN_LOAD_LINE"

    def __init__(self, load_id: str, line_key: str):
        self.load_id = load_id
        self.line_key = line_key
        super().__init__(f"Load {load_id} has no line {line_key}")


class InvalidConfigurationError(ValidationError):
    """Engine configuration is malformed."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration {key}: {reason}")


# Not-found exceptions


class NotFoundError(StockKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class LotNotFoundError(NotFoundError):
    """Lot with given ID was not found."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: str):
        self.lot_id = lot_id
        super().__init__(f"Lot not found: {lot_id}")


class LoadNotFoundError(NotFoundError):
    """Load was not found, or it has already been reconciled."""

    code: str = "LOAD_NOT_FOUND"

    def __init__(self, load_id: str):
        self.load_id = load_id
        super().__init__(f"Load not found (or already reconciled): {load_id}")


class LoadReportNotFoundError(NotFoundError):
    """Load report was not found."""

    code: str = "LOAD_REPORT_NOT_FOUND"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Load report not found: {report_id}")


# Concurrency exceptions


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency errors.  Retry from planning."""

    code: str = "CONCURRENCY_ERROR"


class LotStateConflictError(ConcurrencyError):
    """A lot's status or version changed between planning and commit."""

    code: str = "LOT_STATE_CONFLICT"

    def __init__(
        self,
        lot_id: str,
        expected_status: str,
        expected_version: int | None = None,
    ):
        self.lot_id = lot_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        super().__init__(
            f"Lot {lot_id} is no longer {expected_status}"
            f"{f' at version {expected_version}' if expected_version is not None else ''}: "
            "it was modified by another transaction"
        )


class StoreContentionError(ConcurrencyError):
    """The store reported lock contention, a deadlock or a serialization failure."""

    code: str = "STORE_CONTENTION"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Store contention: {detail}")


# Storage exceptions


class StorageError(StockKernelError):
    """Base exception for store failures.  The whole call may be retried."""

    code: str = "STORAGE_ERROR"


class StoreUnavailableError(StorageError):
    """The underlying store is unreachable or failed the transaction."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Store unavailable: {detail}")


# Immutability exceptions


class ImmutabilityError(StockKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
