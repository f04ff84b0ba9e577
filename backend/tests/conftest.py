import os
import tempfile
from datetime import timedelta
from decimal import Decimal

_TMP = tempfile.mkdtemp(prefix="cyclebees-tests-")
os.environ.setdefault("DATABASE_PATH", os.path.join(_TMP, "test.db"))
os.environ.setdefault("CYCLEBEES_LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP, "uploads"))
os.environ["SMS_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cyclebees.core.database import Base, get_db
from cyclebees.core.security import create_access_token, get_password_hash
from cyclebees.core.timeutils import utcnow
from cyclebees.main import app
from cyclebees.models import (
    Admin,
    Bicycle,
    Coupon,
    DiscountTypeEnum,
    MechanicCharge,
    RentalRequest,
    RepairRequest,
    RepairService,
    RequestStatusEnum,
    TimeSlot,
    User,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ── Factories ──────────────────────────────────────────────────

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(phone=None, full_name="Asha Rao", email="asha@example.com"):
        counter["n"] += 1
        user = User(
            phone=phone or f"98765432{counter['n']:02d}",
            full_name=full_name,
            email=email,
            age=29,
            pincode="560001",
            address="12 MG Road, Bengaluru",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(phone="9876543210")


@pytest.fixture
def admin(db):
    admin = Admin(username="admin", password_hash=get_password_hash("admin123"))
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


@pytest.fixture
def make_service(db):
    def _make(name="General Tune-up", price="300", is_active=True):
        service = RepairService(name=name, price=Decimal(price), is_active=is_active)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return _make


@pytest.fixture
def time_slot(db):
    slot = TimeSlot(start_time="09:00", end_time="11:00")
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@pytest.fixture
def mechanic_charge(db):
    charge = MechanicCharge(amount=Decimal("50"), is_active=True)
    db.add(charge)
    db.commit()
    return charge


@pytest.fixture
def make_bicycle(db):
    def _make(name="City Commuter", daily="150", weekly="800", delivery="50", is_available=True):
        bicycle = Bicycle(
            name=name,
            model="Hero Sprint",
            daily_rate=Decimal(daily),
            weekly_rate=Decimal(weekly),
            delivery_charge=Decimal(delivery),
            is_available=is_available,
        )
        db.add(bicycle)
        db.commit()
        db.refresh(bicycle)
        return bicycle

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="FIRST50", discount_type=DiscountTypeEnum.PERCENTAGE, discount_value="50",
              min_amount="0", max_discount=None, applicable_items=("repair_services",),
              usage_limit=None, usage_count=0, expires_at=None, is_active=True):
        coupon = Coupon(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            min_amount=Decimal(min_amount),
            max_discount=Decimal(max_discount) if max_discount is not None else None,
            applicable_items=list(applicable_items),
            usage_limit=usage_limit,
            usage_count=usage_count,
            expires_at=expires_at,
            is_active=is_active,
        )
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make


@pytest.fixture
def first50(make_coupon):
    return make_coupon(
        code="FIRST50",
        discount_type=DiscountTypeEnum.PERCENTAGE,
        discount_value="50",
        min_amount="100",
        max_discount="200",
        applicable_items=("repair_services", "rental_services"),
    )


@pytest.fixture
def welcome10(make_coupon):
    return make_coupon(
        code="WELCOME10",
        discount_type=DiscountTypeEnum.FIXED,
        discount_value="10",
        applicable_items=("repair_services", "rental_services"),
    )


@pytest.fixture
def make_repair_request(db, time_slot):
    def _make(user, status=RequestStatusEnum.PENDING, expires_in=timedelta(minutes=15), total="300"):
        now = utcnow()
        request = RepairRequest(
            user_id=user.id,
            contact_number=user.phone,
            email=user.email,
            address=user.address,
            preferred_date=now + timedelta(days=1),
            time_slot_id=time_slot.id,
            payment_method="offline",
            total_amount=Decimal(total),
            discount_amount=Decimal("0"),
            net_amount=Decimal(total),
            status=status,
            expires_at=now + expires_in,
            created_at=now,
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        return request

    return _make


@pytest.fixture
def make_rental_request(db, make_bicycle):
    def _make(user, status=RequestStatusEnum.PENDING, expires_in=timedelta(minutes=15)):
        bicycle = make_bicycle()
        now = utcnow()
        request = RentalRequest(
            user_id=user.id,
            bicycle_id=bicycle.id,
            contact_number=user.phone,
            delivery_address=user.address,
            duration_type="daily",
            duration_count=2,
            payment_method="online",
            total_amount=Decimal("350"),
            discount_amount=Decimal("0"),
            net_amount=Decimal("350"),
            status=status,
            expires_at=now + expires_in,
            created_at=now,
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        return request

    return _make


# ── Auth helpers ───────────────────────────────────────────────

def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(user):
    return auth_header(create_access_token({"sub": str(user.id), "role": "user"}))


@pytest.fixture
def admin_headers(admin):
    return auth_header(create_access_token({"sub": str(admin.id), "role": "admin"}))
