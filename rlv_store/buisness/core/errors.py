"""
Domain exceptions for the order and delivery lifecycle

These exceptions represent business rule violations and domain-specific errors.
They are raised by the business layer and mapped to JSON responses by the
presentation layer.
"""


class DeliveryDomainError(Exception):
    """Base exception for all order/delivery domain errors"""
    error_kind = "domain_error"
    http_status = 400


class NotFoundError(DeliveryDomainError):
    """Raised when a referenced entity does not exist"""
    error_kind = "not_found"
    http_status = 404

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class BuyerNotFound(NotFoundError):
    """Raised when the buyer has no backing account record"""
    error_kind = "buyer_not_found"

    def __init__(self, buyer_id):
        super().__init__("Buyer", buyer_id)


class OrderNotFound(NotFoundError):
    error_kind = "order_not_found"

    def __init__(self, order_id):
        super().__init__("Order", order_id)


class DispatchNotFound(NotFoundError):
    error_kind = "dispatch_not_found"

    def __init__(self, dispatch_id):
        super().__init__("DispatchRecord", dispatch_id)


class StoreNotFound(NotFoundError):
    error_kind = "store_not_found"

    def __init__(self, store_id):
        super().__init__("Store", store_id)


class ItemNotFound(NotFoundError):
    error_kind = "item_not_found"

    def __init__(self, item_id):
        super().__init__("StoreItem", item_id)


class InvalidTransition(DeliveryDomainError):
    """
    Raised when a guarded transition's precondition no longer holds.

    Always recoverable: the caller re-reads the entity and decides again.
    """
    error_kind = "invalid_transition"
    http_status = 409

    def __init__(self, entity, entity_id, current, attempted, message=None):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.attempted = attempted
        super().__init__(
            message or f"Invalid {entity} transition for {entity_id}: {current} -> {attempted}"
        )


class AlreadyResolved(InvalidTransition):
    """Raised when a manager decision targets an order that is no longer pending"""
    error_kind = "already_resolved"

    def __init__(self, order_id, current, attempted):
        super().__init__(
            "Order", order_id, current, attempted,
            message=f"Order {order_id} already resolved as {current}",
        )


class CourierMismatch(InvalidTransition):
    """Raised when a courier tries to deliver a dispatch accepted by someone else"""
    error_kind = "courier_mismatch"

    def __init__(self, dispatch_id, current, attempted):
        super().__init__(
            "DispatchRecord", dispatch_id, current, attempted,
            message=f"Dispatch {dispatch_id} was accepted by another courier",
        )


class DependencyUnavailable(DeliveryDomainError):
    """Raised when the persistence layer cannot be reached"""
    error_kind = "dependency_unavailable"
    http_status = 503


class CartError(DeliveryDomainError):
    """Raised when a cart operation cannot be applied"""
    error_kind = "cart_error"


class EmptyCart(CartError):
    error_kind = "empty_cart"

    def __init__(self, store_id):
        self.store_id = store_id
        super().__init__(f"Cart for store {store_id} is empty")


class ItemNotInCart(CartError):
    error_kind = "item_not_in_cart"

    def __init__(self, store_id, item_id):
        self.store_id = store_id
        self.item_id = item_id
        super().__init__(f"Item {item_id} is not in the cart for store {store_id}")


class InventoryLimitReached(CartError):
    """Raised when the buyer already holds (or has in the cart) the inventory cap of an item"""
    error_kind = "inventory_limit_reached"

    def __init__(self, item_id, held, cap):
        self.item_id = item_id
        self.held = held
        self.cap = cap
        super().__init__(f"Inventory limit reached for {item_id}: {held}/{cap}")


class InsufficientBalance(DeliveryDomainError):
    error_kind = "insufficient_balance"

    def __init__(self, buyer_id, balance, required):
        self.buyer_id = buyer_id
        self.balance = balance
        self.required = required
        super().__init__(
            f"Buyer {buyer_id} balance {balance:.2f} is below order total {required:.2f}"
        )


class PermissionDenied(DeliveryDomainError):
    """Raised when an actor's role does not allow the requested operation"""
    error_kind = "permission_denied"
    http_status = 403


class ValidationError(DeliveryDomainError):
    """Raised when request input is malformed"""
    error_kind = "validation_error"
