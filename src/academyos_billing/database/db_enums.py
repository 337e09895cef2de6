'''
Static enums mirroring the enumerated columns of the billing tables.
'''
import enum


class TransactionTypeEnum(str, enum.Enum):
    PAYMENT = "payment"
    LESSON_CHARGE = "lesson_charge"
    REFUND = "refund"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"
    DEBIT = "debit"
    CREDIT = "credit"
    TRANSFER_IN = "transfer_in"


# entries of these types may only increase the balance
CREDIT_TRANSACTION_TYPES = frozenset({
    TransactionTypeEnum.PAYMENT,
    TransactionTypeEnum.REFUND,
    TransactionTypeEnum.BONUS,
    TransactionTypeEnum.CREDIT,
    TransactionTypeEnum.TRANSFER_IN,
})

# entries of these types may only decrease the balance
DEBIT_TRANSACTION_TYPES = frozenset({
    TransactionTypeEnum.LESSON_CHARGE,
    TransactionTypeEnum.DEBIT,
})


class LearningUnitTypeEnum(str, enum.Enum):
    GROUP = "group"
    INDIVIDUAL = "individual"


class ChargeStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class SessionStatusEnum(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FREE = "free"
    RESCHEDULED = "rescheduled"


# sessions in these states never receive nor give away paid minutes on a status change
INACTIVE_SESSION_STATUSES = frozenset({
    SessionStatusEnum.CANCELLED.value,
    SessionStatusEnum.FREE.value,
    SessionStatusEnum.RESCHEDULED.value,
})


class StudentStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class PaymentMethodEnum(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    ONLINE = "online"


class DiscountTypeEnum(str, enum.Enum):
    DISCOUNT = "discount"
    SURCHARGE = "surcharge"


class DiscountValueTypeEnum(str, enum.Enum):
    FIXED = "fixed"
    PERCENT = "percent"
