"""Error taxonomy shared by the pricing engine, order store, gateway adapter and orchestrator.

Each error carries the HTTP status the API layer answers with; the
orchestrator propagates them unchanged.
"""

class StorefrontError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

class InvalidRequest(StorefrontError):
    status_code = 400
    code = "invalid_request"

class Unauthenticated(StorefrontError):
    status_code = 401
    code = "unauthenticated"

class Unauthorized(StorefrontError):
    status_code = 403
    code = "unauthorized"

class ProductNotFound(StorefrontError):
    status_code = 404
    code = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id

class ProductUnavailable(StorefrontError):
    status_code = 400
    code = "product_unavailable"

    def __init__(self, product_id: str, name: str = None):
        super().__init__(f"Product {name or product_id} is not available")
        self.product_id = product_id

class InvalidQuantity(StorefrontError):
    status_code = 400
    code = "invalid_quantity"

    def __init__(self, product_id: str, quantity: int):
        super().__init__(f"Quantity {quantity} for product {product_id} is out of range")
        self.product_id = product_id
        self.quantity = quantity

class OrderNotFound(StorefrontError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id

class InvalidTransition(StorefrontError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")
        self.order_id = order_id
        self.current = current
        self.target = target

class InvalidSignature(StorefrontError):
    status_code = 400
    code = "invalid_signature"

class GatewayUnavailable(StorefrontError):
    status_code = 503
    code = "gateway_unavailable"

class PaymentNotFound(StorefrontError):
    status_code = 404
    code = "payment_not_found"

    def __init__(self, transaction_id: str):
        super().__init__(f"No payment with transaction id {transaction_id}")
        self.transaction_id = transaction_id

class CatalogUnavailable(StorefrontError):
    status_code = 503
    code = "catalog_unavailable"
