from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class FulfillmentStatus(str, Enum):
    UNFULFILLED = "UNFULFILLED"
    PARTIAL = "PARTIAL"
    FULFILLED = "FULFILLED"


# Statuts de paiement après mouvement d'argent: jamais régressés par un événement tardif
MONEY_MOVED = {PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value, PaymentStatus.PARTIALLY_REFUNDED.value}
REFUND_STATES = {PaymentStatus.REFUNDED.value, PaymentStatus.PARTIALLY_REFUNDED.value}
