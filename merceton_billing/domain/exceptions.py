"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ConfigResolutionError(DomainException):
    """Effective fee configuration could not be loaded for a merchant"""

    pass


class AllocationFailed(DomainException):
    """A sequence counter could not be incremented"""

    pass


class OrderNumberAllocationFailed(AllocationFailed):
    """Order number counter could not be incremented"""

    pass


class InvoiceNumberAllocationFailed(AllocationFailed):
    """Platform invoice number could not be allocated"""

    pass


class AllocationContentionError(OrderNumberAllocationFailed, InvoiceNumberAllocationFailed):
    """Counter increment exceeded its lock/statement timeout under contention"""

    def __init__(self, key: str, timeout_ms: int):
        super().__init__(f"Counter '{key}' allocation timed out after {timeout_ms}ms")
        self.key = key
        self.timeout_ms = timeout_ms


class InvalidSeriesFormat(DomainException):
    """Invoice series template is missing the {NNNNN} sequence token"""

    pass


class MoneyInvariantViolation(DomainException):
    """A money computation produced an impossible result (programmer error)"""

    pass


class InvalidStatusTransition(DomainException):
    """Requested ledger or order status change is not allowed"""

    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(f"{entity} cannot move from {current} to {requested}")
        self.entity = entity
        self.current = current
        self.requested = requested


class ImmutableRecordError(DomainException):
    """Attempted to modify or delete a financial record that is append-only"""

    def __init__(self, entity: str, entity_id: str, reason: str):
        super().__init__(f"{entity} {entity_id}: {reason}")
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason


class OrderNotFoundError(DomainException):
    """No order exists with the given order number"""

    pass


class NotificationDeliveryError(DomainException):
    """Billing event webhook could not be delivered"""

    pass


class MerchantNotFoundError(DomainException):
    """No merchant exists with the given id"""

    pass


class PayoutHoldError(DomainException):
    """Merchant payouts are on hold; nothing may be paid out or settled"""

    def __init__(self, merchant_id: str):
        super().__init__(f"Payouts are on hold for merchant {merchant_id}")
        self.merchant_id = merchant_id
