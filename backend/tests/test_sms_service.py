from types import SimpleNamespace

import pytest
import requests

from cyclebees.core.config import settings
from cyclebees.services import sms_service


@pytest.mark.parametrize("raw, expected", [
    ("9876543210", "9876543210"),
    ("+91 98765 43210", "9876543210"),
    ("09876543210", "9876543210"),
    ("98765-432-10", "9876543210"),
])
def test_format_phone_number(raw, expected):
    assert sms_service.format_phone_number(raw) == expected


@pytest.fixture
def messagebot(monkeypatch):
    monkeypatch.setattr(settings, "SMS_ENABLED", True)
    monkeypatch.setattr(settings, "MESSAGEBOT_API_TOKEN", "token")
    monkeypatch.setattr(settings, "MESSAGEBOT_SENDER_ID", "CYBEES")
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers})
        return SimpleNamespace(status_code=200, text="ok")

    monkeypatch.setattr(sms_service.requests, "post", fake_post)
    return calls


def test_disabled_sms_is_not_sent(monkeypatch):
    monkeypatch.setattr(settings, "SMS_ENABLED", False)

    def fail(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(sms_service.requests, "post", fail)
    assert sms_service.send_sms_via_messagebot("9876543210", "hello") is False


def test_send_posts_to_messagebot(messagebot):
    assert sms_service.send_sms_via_messagebot("+919876543210", "hello") is True
    assert messagebot[0]["url"] == sms_service.MESSAGEBOT_URL
    assert messagebot[0]["json"] == {"to": "9876543210", "senderId": "CYBEES", "message": "hello"}
    assert messagebot[0]["headers"]["Authorization"] == "Bearer token"


def test_bad_number_is_not_sent(messagebot):
    assert sms_service.send_sms_via_messagebot("12345", "hello") is False
    assert messagebot == []


def test_network_error_is_reported_not_raised(messagebot, monkeypatch):
    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectionError("down")

    monkeypatch.setattr(sms_service.requests, "post", boom)
    assert sms_service.send_sms_via_messagebot("9876543210", "hello") is False


def test_gateway_error_status(messagebot, monkeypatch):
    monkeypatch.setattr(
        sms_service.requests, "post", lambda *a, **kw: SimpleNamespace(status_code=500, text="err"),
    )
    assert sms_service.send_sms_via_messagebot("9876543210", "hello") is False


def test_status_sms_includes_rejection_reason(messagebot):
    sms_service.send_status_sms("9876543210", "rental", 12, "rejected", "Out of stock")
    assert messagebot[0]["json"]["message"] == (
        "Your Cycle-Bees rental request #12 is now rejected. Reason: Out of stock"
    )


def test_otp_sms_contains_code(messagebot):
    sms_service.send_otp_sms("9876543210", "123456")
    assert messagebot[0]["json"]["message"].startswith("123456 is your Cycle-Bees login code.")
