from datetime import timedelta

import pytest

from cyclebees.core.config import settings
from cyclebees.core.exceptions import ValidationError
from cyclebees.core.security import hash_sha256
from cyclebees.models import OtpCode
from cyclebees.services import otp_service


@pytest.fixture
def fixed_otp(monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "482913")
    return "482913"


def test_generated_code_has_six_digits():
    code = otp_service.generate_otp()
    assert len(code) == 6 and code.isdigit()


@pytest.mark.parametrize("phone", ["12345", "5876543210", "", "abcdefghij"])
def test_invalid_phone_numbers(db, phone):
    with pytest.raises(ValidationError) as exc:
        otp_service.issue_otp(db, phone)
    assert exc.value.errors[0]["field"] == "phone"


def test_only_the_hash_is_stored(db, fixed_otp):
    record = otp_service.issue_otp(db, "+91 98765 43210")
    db.commit()
    assert record.phone == "9876543210"
    assert record.otp_hash == hash_sha256(fixed_otp)
    assert fixed_otp not in record.otp_hash


def test_verify_consumes_the_code(db, fixed_otp):
    otp_service.issue_otp(db, "9876543210")
    db.commit()
    assert otp_service.verify_otp(db, "9876543210", fixed_otp) == "9876543210"
    db.commit()
    with pytest.raises(ValidationError):
        otp_service.verify_otp(db, "9876543210", fixed_otp)


def test_new_code_invalidates_the_old_one(db, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "111111")
    otp_service.issue_otp(db, "9876543210")
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "222222")
    otp_service.issue_otp(db, "9876543210")
    db.commit()

    with pytest.raises(ValidationError):
        otp_service.verify_otp(db, "9876543210", "111111")
    assert otp_service.verify_otp(db, "9876543210", "222222") == "9876543210"


def test_wrong_code_counts_attempts_then_locks(db, fixed_otp):
    otp_service.issue_otp(db, "9876543210")
    db.commit()
    for _ in range(settings.OTP_MAX_ATTEMPTS):
        with pytest.raises(ValidationError) as exc:
            otp_service.verify_otp(db, "9876543210", "000000")
        assert exc.value.message == "Invalid OTP"

    with pytest.raises(ValidationError) as exc:
        otp_service.verify_otp(db, "9876543210", fixed_otp)
    assert "expired" in exc.value.message


def test_expired_code_is_rejected(db, fixed_otp):
    record = otp_service.issue_otp(db, "9876543210")
    record.expires_at = record.expires_at - timedelta(minutes=settings.OTP_EXPIRE_MINUTES + 1)
    db.commit()
    with pytest.raises(ValidationError):
        otp_service.verify_otp(db, "9876543210", fixed_otp)


def test_malformed_code(db):
    with pytest.raises(ValidationError) as exc:
        otp_service.verify_otp(db, "9876543210", "12ab")
    assert exc.value.errors[0]["field"] == "otp"
