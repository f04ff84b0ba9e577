from cyclebees.models.user import User, Admin, OtpCode
from cyclebees.models.request_status import RequestTypeEnum, RequestStatusEnum, PaymentMethodEnum, DurationTypeEnum
from cyclebees.models.repair import RepairService, TimeSlot, MechanicCharge, RepairRequest, RepairRequestService, RepairRequestFile
from cyclebees.models.rental import Bicycle, BicyclePhoto, RentalRequest
from cyclebees.models.coupon import Coupon, CouponUsage, DiscountTypeEnum, CouponItemEnum
from cyclebees.models.settings import ContactSetting, PromotionalCard, RequestNotification

__all__ = [
    "User",
    "Admin",
    "OtpCode",
    "RequestTypeEnum",
    "RequestStatusEnum",
    "PaymentMethodEnum",
    "DurationTypeEnum",
    "RepairService",
    "TimeSlot",
    "MechanicCharge",
    "RepairRequest",
    "RepairRequestService",
    "RepairRequestFile",
    "Bicycle",
    "BicyclePhoto",
    "RentalRequest",
    "Coupon",
    "CouponUsage",
    "DiscountTypeEnum",
    "CouponItemEnum",
    "ContactSetting",
    "PromotionalCard",
    "RequestNotification",
]
