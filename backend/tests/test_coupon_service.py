from datetime import timedelta
from decimal import Decimal

import pytest

from cyclebees.core.exceptions import (
    BelowMinimumAmount,
    CouponExhausted,
    CouponExpired,
    CouponNotFound,
    NotApplicable,
    ValidationError,
)
from cyclebees.core.timeutils import utcnow
from cyclebees.models import CouponUsage, DiscountTypeEnum
from cyclebees.services import coupon_service


def test_first50_is_capped_at_max_discount(db, first50):
    quote = coupon_service.preview(db, "FIRST50", "repair", ["repair_services"], 600)
    assert quote.discount == Decimal("200.00")
    assert quote.net_amount == Decimal("400.00")
    assert quote.discount_type == "percentage"


def test_welcome10_never_exceeds_total(db, welcome10):
    quote = coupon_service.preview(db, "WELCOME10", "repair", ["repair_services"], 5)
    assert quote.discount == Decimal("5.00")
    assert quote.net_amount == Decimal("0.00")


def test_code_is_case_insensitive(db, welcome10):
    quote = coupon_service.preview(db, "  welcome10 ", "rental", ["rental_services"], 500)
    assert quote.coupon.id == welcome10.id
    assert quote.discount == Decimal("10.00")


@pytest.mark.parametrize("total, expected", [
    (100, "50.00"),
    (200, "100.00"),
    (399, "199.50"),
    (400, "200.00"),
    (1000, "200.00"),
])
def test_percentage_grows_until_cap(db, first50, total, expected):
    quote = coupon_service.preview(db, "FIRST50", "repair", ["repair_services"], total)
    assert quote.discount == Decimal(expected)


def test_percentage_without_cap_is_bounded_by_total(db, make_coupon):
    make_coupon(code="HALF", discount_value="100", max_discount=None)
    quote = coupon_service.preview(db, "HALF", "repair", ["repair_services"], 250)
    assert quote.discount == Decimal("250.00")
    assert quote.net_amount == Decimal("0.00")


def test_unknown_code(db):
    with pytest.raises(CouponNotFound):
        coupon_service.preview(db, "NOPE", "repair", ["repair_services"], 100)


def test_inactive_coupon_is_not_found(db, make_coupon):
    make_coupon(code="OLD", is_active=False)
    with pytest.raises(CouponNotFound):
        coupon_service.preview(db, "OLD", "repair", ["repair_services"], 100)


def test_expired_coupon(db, make_coupon):
    make_coupon(code="LATE", expires_at=utcnow() - timedelta(minutes=1))
    with pytest.raises(CouponExpired):
        coupon_service.preview(db, "LATE", "repair", ["repair_services"], 100)


def test_exhausted_coupon_rejected_even_when_otherwise_valid(db, make_coupon):
    make_coupon(code="ONCE", usage_limit=3, usage_count=3)
    with pytest.raises(CouponExhausted):
        coupon_service.preview(db, "ONCE", "repair", ["repair_services"], 1000)


def test_first_failing_check_wins(db, make_coupon):
    # expired and exhausted and below minimum: expiry is checked first
    make_coupon(
        code="MANY", expires_at=utcnow() - timedelta(days=1), usage_limit=1, usage_count=1, min_amount="500",
    )
    with pytest.raises(CouponExpired):
        coupon_service.preview(db, "MANY", "repair", ["rental_services"], 10)


def test_below_minimum_amount(db, first50):
    with pytest.raises(BelowMinimumAmount) as exc:
        coupon_service.preview(db, "FIRST50", "repair", ["repair_services"], 99)
    assert "100" in exc.value.message


def test_not_applicable_to_items(db, make_coupon):
    make_coupon(code="RENTONLY", applicable_items=("rental_services",))
    with pytest.raises(NotApplicable):
        coupon_service.preview(db, "RENTONLY", "repair", ["repair_services", "service_mechanic_charge"], 500)


def test_invalid_inputs_are_reported_per_field(db):
    with pytest.raises(ValidationError) as exc:
        coupon_service.preview(db, "", "boat", [], -1)
    fields = {e["field"] for e in exc.value.errors}
    assert fields == {"code", "requestType", "items", "totalAmount"}


def test_preview_does_not_consume_usage(db, first50):
    for _ in range(3):
        coupon_service.preview(db, "FIRST50", "repair", ["repair_services"], 600)
    db.refresh(first50)
    assert first50.usage_count == 0
    assert db.query(CouponUsage).count() == 0


def test_commit_consumes_one_use(db, user, first50):
    quote = coupon_service.commit(db, "FIRST50", "repair", ["repair_services"], 600, request_id=1, user_id=user.id)
    db.commit()
    db.refresh(first50)
    assert quote.discount == Decimal("200.00")
    assert first50.usage_count == 1
    usage = db.query(CouponUsage).one()
    assert (usage.request_type, usage.request_id, usage.discount_amount) == ("repair", 1, Decimal("200.00"))


def test_commit_is_idempotent_per_request(db, user, first50):
    first = coupon_service.commit(db, "FIRST50", "repair", ["repair_services"], 600, request_id=7, user_id=user.id)
    again = coupon_service.commit(db, "FIRST50", "repair", ["repair_services"], 600, request_id=7, user_id=user.id)
    db.commit()
    db.refresh(first50)
    assert again.discount == first.discount
    assert first50.usage_count == 1
    assert db.query(CouponUsage).count() == 1


def test_commit_stops_at_usage_limit(db, user, make_coupon):
    coupon = make_coupon(code="LIMITED", usage_limit=1)
    coupon_service.commit(db, "LIMITED", "repair", ["repair_services"], 200, request_id=1, user_id=user.id)
    with pytest.raises(CouponExhausted):
        coupon_service.commit(db, "LIMITED", "repair", ["repair_services"], 200, request_id=2, user_id=user.id)
    db.commit()
    db.refresh(coupon)
    assert coupon.usage_count == 1


def test_same_request_id_for_other_type_is_a_new_use(db, user, make_coupon):
    coupon = make_coupon(code="BOTH", applicable_items=("repair_services", "rental_services"))
    coupon_service.commit(db, "BOTH", "repair", ["repair_services"], 200, request_id=3, user_id=user.id)
    coupon_service.commit(db, "BOTH", "rental", ["rental_services"], 200, request_id=3, user_id=user.id)
    db.commit()
    db.refresh(coupon)
    assert coupon.usage_count == 2


def test_available_coupons_hides_unusable(db, make_coupon):
    make_coupon(code="GOOD")
    make_coupon(code="GONE", usage_limit=1, usage_count=1)
    make_coupon(code="STALE", expires_at=utcnow() - timedelta(hours=1))
    make_coupon(code="OFF", is_active=False)
    codes = {c.code for c in coupon_service.available_coupons(db)}
    assert codes == {"GOOD"}


def test_calculate_discount_fixed_and_percentage(make_coupon):
    fixed = make_coupon(code="F", discount_type=DiscountTypeEnum.FIXED, discount_value="75")
    pct = make_coupon(code="P", discount_value="12.5", max_discount="1000")
    assert coupon_service.calculate_discount(fixed, 50) == Decimal("50.00")
    assert coupon_service.calculate_discount(fixed, 500) == Decimal("75.00")
    assert coupon_service.calculate_discount(pct, Decimal("99.99")) == Decimal("12.50")
