import enum


class RequestTypeEnum(str, enum.Enum):
    REPAIR = "repair"
    RENTAL = "rental"


class RequestStatusEnum(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    COMPLETED = "completed"
    # repair only
    ACTIVE = "active"
    # rental only
    WAITING_PAYMENT = "waiting_payment"
    ARRANGING_DELIVERY = "arranging_delivery"
    ACTIVE_RENTAL = "active_rental"


class PaymentMethodEnum(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class DurationTypeEnum(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
