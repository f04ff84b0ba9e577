"""
Create tables and seed the default admin and a starter catalogue.
Run from backend dir: python -m scripts.init_db
"""
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cyclebees.core.config import settings
from cyclebees.core.database import init_models
from cyclebees.core.db_transaction import db_transaction
from cyclebees.core.security import get_password_hash
from cyclebees.models import Admin, Bicycle, Coupon, DiscountTypeEnum, MechanicCharge, RepairService, TimeSlot

DEFAULT_SERVICES = [
    ("General Tune-up", "Brake and gear adjustment, chain lube, tyre pressure check", Decimal("299")),
    ("Puncture Repair", "Tube patch or replacement for one wheel", Decimal("99")),
    ("Brake Service", "Pad replacement and cable adjustment", Decimal("199")),
    ("Gear Overhaul", "Derailleur alignment and cable replacement", Decimal("349")),
]

DEFAULT_TIME_SLOTS = [("09:00", "11:00"), ("11:00", "13:00"), ("14:00", "16:00"), ("16:00", "18:00")]

DEFAULT_BICYCLES = [
    ("City Commuter", "Hero Sprint", Decimal("150"), Decimal("800"), Decimal("50")),
    ("Mountain Bike", "Firefox Bad Attitude", Decimal("300"), Decimal("1600"), Decimal("75")),
]

DEFAULT_COUPONS = [
    ("FIRST50", "50% off your first booking, up to 200", DiscountTypeEnum.PERCENTAGE, Decimal("50"),
     Decimal("100"), Decimal("200"), ["repair_services", "rental_services"], 1000),
    ("WELCOME10", "Flat 10 off", DiscountTypeEnum.FIXED, Decimal("10"),
     Decimal("0"), None, ["repair_services", "rental_services", "service_mechanic_charge", "delivery_charge"], None),
]


def seed(db) -> None:
    if not db.query(Admin).filter(Admin.username == settings.DEFAULT_ADMIN_USERNAME).first():
        db.add(Admin(
            username=settings.DEFAULT_ADMIN_USERNAME,
            password_hash=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
        ))
        print(f"✓ Admin '{settings.DEFAULT_ADMIN_USERNAME}' created")

    if db.query(RepairService).count() == 0:
        for name, description, price in DEFAULT_SERVICES:
            db.add(RepairService(name=name, description=description, price=price))
        print(f"✓ {len(DEFAULT_SERVICES)} repair services added")

    if db.query(TimeSlot).count() == 0:
        for start, end in DEFAULT_TIME_SLOTS:
            db.add(TimeSlot(start_time=start, end_time=end))
        print(f"✓ {len(DEFAULT_TIME_SLOTS)} time slots added")

    if db.query(MechanicCharge).count() == 0:
        db.add(MechanicCharge(amount=Decimal("50"), is_active=True))
        print("✓ Mechanic charge set to 50")

    if db.query(Bicycle).count() == 0:
        for name, model, daily, weekly, delivery in DEFAULT_BICYCLES:
            db.add(Bicycle(name=name, model=model, daily_rate=daily, weekly_rate=weekly, delivery_charge=delivery))
        print(f"✓ {len(DEFAULT_BICYCLES)} bicycles added")

    if db.query(Coupon).count() == 0:
        for code, description, kind, value, minimum, cap, items, limit in DEFAULT_COUPONS:
            db.add(Coupon(
                code=code, description=description, discount_type=kind, discount_value=value,
                min_amount=minimum, max_discount=cap, applicable_items=items, usage_limit=limit,
            ))
        print(f"✓ {len(DEFAULT_COUPONS)} coupons added")


def init_db():
    """Create every table and seed defaults. Safe to run repeatedly."""
    init_models()
    with db_transaction() as db:
        seed(db)
    print(f"✓ Database initialized at {settings.DATABASE_URL}")


if __name__ == "__main__":
    init_db()
