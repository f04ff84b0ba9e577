"""
Server-side pricing for bookings.

Totals are always recomputed from catalogue prices; a client figure is
only compared against them.
"""
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from cyclebees.core.config import settings
from cyclebees.core.exceptions import ValidationError
from cyclebees.models.coupon import CouponItemEnum
from cyclebees.models.rental import Bicycle
from cyclebees.models.repair import MechanicCharge, RepairService
from cyclebees.models.request_status import DurationTypeEnum
from cyclebees.services.coupon_service import to_money


def active_mechanic_charge(db: Session) -> Decimal:
    charge = db.query(MechanicCharge).filter(
        MechanicCharge.is_active == True
    ).order_by(MechanicCharge.id.desc()).first()
    return to_money(charge.amount) if charge else Decimal("0.00")


def repair_quote(db: Session, services: List[RepairService]) -> Tuple[Decimal, List[str]]:
    """Total and coupon item tags for a set of repair services."""
    services_total = sum((to_money(s.price) for s in services), Decimal("0.00"))
    mechanic_charge = active_mechanic_charge(db)
    items = [CouponItemEnum.REPAIR_SERVICES.value]
    if mechanic_charge > 0:
        items.append(CouponItemEnum.SERVICE_MECHANIC_CHARGE.value)
    return to_money(services_total + mechanic_charge), items


def rental_quote(bicycle: Bicycle, duration_type: DurationTypeEnum, duration_count: int) -> Tuple[Decimal, List[str]]:
    """Total and coupon item tags for renting ``bicycle`` for the given duration."""
    if DurationTypeEnum(duration_type) == DurationTypeEnum.WEEKLY:
        rate = to_money(bicycle.weekly_rate)
    else:
        rate = to_money(bicycle.daily_rate)
    delivery_charge = to_money(bicycle.delivery_charge or 0)
    items = [CouponItemEnum.RENTAL_SERVICES.value]
    if delivery_charge > 0:
        items.append(CouponItemEnum.DELIVERY_CHARGE.value)
    return to_money(rate * duration_count + delivery_charge), items


def check_client_total(server_total: Decimal, client_total: Optional[Decimal]) -> None:
    """Reject a client total that drifts from the server figure beyond the tolerance."""
    if client_total is None:
        return
    tolerance = to_money(settings.PRICE_TOLERANCE)
    if abs(to_money(client_total) - server_total) > tolerance:
        raise ValidationError(
            "Total amount does not match current prices",
            errors=[{
                "field": "totalAmount",
                "message": f"Expected {server_total}, got {to_money(client_total)}",
            }],
        )


def allocate_discount(prices: List[Decimal], total_amount: Decimal, discount: Decimal) -> List[Decimal]:
    """
    Split ``discount`` over line prices in proportion to their share of the
    request total. The last line absorbs rounding so the shares add up to
    the portion attributable to the lines.
    """
    if not prices or discount <= 0 or total_amount <= 0:
        return [Decimal("0.00") for _ in prices]
    lines_total = sum(prices, Decimal("0.00"))
    attributable = to_money(discount * lines_total / total_amount)
    shares = [to_money(discount * p / total_amount) for p in prices[:-1]]
    shares.append(max(to_money(attributable - sum(shares, Decimal("0.00"))), Decimal("0.00")))
    return shares
