from datetime import timedelta

import pytest

from cyclebees.core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from cyclebees.models import RentalRequest, RepairRequest, RequestNotification, RequestStatusEnum as S
from cyclebees.services import sms_service, status_service


def test_only_admins_may_change_status(db, user, make_repair_request):
    request = make_repair_request(user)
    with pytest.raises(Forbidden):
        status_service.update_status(db, "repair", request.id, "user", S.APPROVED)
    with pytest.raises(Forbidden):
        status_service.update_status(db, "repair", request.id, None, S.APPROVED)


def test_missing_request(db):
    with pytest.raises(NotFound):
        status_service.update_status(db, "rental", 999, "admin", S.APPROVED)


def test_approve_records_notification(db, user, make_repair_request):
    request = make_repair_request(user)
    updated = status_service.update_status(db, "repair", request.id, "admin", S.APPROVED)

    assert updated.status == S.APPROVED
    notification = db.query(RequestNotification).one()
    assert notification.user_id == user.id
    assert (notification.request_type, notification.request_id, notification.status) == ("repair", request.id, "approved")
    assert notification.is_read is False


def test_skipping_approval_is_rejected_and_nothing_changes(db, user, make_repair_request):
    request = make_repair_request(user)
    with pytest.raises(InvalidTransition):
        status_service.update_status(db, "repair", request.id, "admin", S.ACTIVE)
    db.expire_all()
    assert db.get(RepairRequest, request.id).status == S.PENDING
    assert db.query(RequestNotification).count() == 0


def test_reject_note_is_mandatory_and_round_trips(db, user, make_rental_request):
    request = make_rental_request(user)
    with pytest.raises(ValidationError):
        status_service.update_status(db, "rental", request.id, "admin", S.REJECTED)

    note = "No bicycles available in your area this week"
    status_service.update_status(db, "rental", request.id, "admin", S.REJECTED, note)
    db.expire_all()
    stored = db.get(RentalRequest, request.id)
    assert stored.status == S.REJECTED
    assert stored.rejection_note == note
    assert note in db.query(RequestNotification).one().message


def test_note_is_ignored_for_other_transitions(db, user, make_repair_request):
    request = make_repair_request(user)
    updated = status_service.update_status(db, "repair", request.id, "admin", S.APPROVED, "looks fine")
    assert updated.rejection_note is None


def test_overdue_request_cannot_be_approved(db, user, make_repair_request):
    request = make_repair_request(user, expires_in=timedelta(minutes=-1))
    with pytest.raises(InvalidTransition) as exc:
        status_service.update_status(db, "repair", request.id, "admin", S.APPROVED)
    assert exc.value.current == "expired"
    db.expire_all()
    assert db.get(RepairRequest, request.id).status == S.EXPIRED
    assert db.query(RequestNotification).filter(RequestNotification.status == "expired").count() == 1


def test_full_rental_flow(db, user, make_rental_request):
    request = make_rental_request(user)
    for target in (S.APPROVED, S.WAITING_PAYMENT, S.ARRANGING_DELIVERY, S.ACTIVE_RENTAL, S.COMPLETED):
        status_service.update_status(db, "rental", request.id, "admin", target)
    assert db.query(RequestNotification).count() == 5
    with pytest.raises(InvalidTransition):
        status_service.update_status(db, "rental", request.id, "admin", S.APPROVED)


def test_status_sms_is_sent_after_commit(db, user, make_repair_request, monkeypatch):
    sent = []
    monkeypatch.setattr(
        sms_service, "send_sms_via_messagebot", lambda to, text, sender_id=None: sent.append((to, text)) or True,
    )
    request = make_repair_request(user)
    status_service.update_status(db, "repair", request.id, "admin", S.APPROVED)
    assert sent == [(user.phone, f"Your Cycle-Bees repair request #{request.id} is now approved.")]
