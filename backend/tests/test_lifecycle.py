from datetime import timedelta

import pytest

from cyclebees.core.exceptions import Conflict, InvalidTransition, ValidationError
from cyclebees.models import RepairRequest, RequestStatusEnum as S, RequestTypeEnum
from cyclebees.services import lifecycle

REPAIR = RequestTypeEnum.REPAIR
RENTAL = RequestTypeEnum.RENTAL


@pytest.mark.parametrize("request_type", [REPAIR, RENTAL])
@pytest.mark.parametrize("terminal", [S.COMPLETED, S.REJECTED, S.EXPIRED])
def test_terminal_states_never_move(request_type, terminal):
    for target in lifecycle.statuses_for(request_type):
        with pytest.raises(InvalidTransition):
            lifecycle.check_transition(request_type, terminal, target, rejection_note="note")


def test_repair_cannot_skip_approval():
    with pytest.raises(InvalidTransition) as exc:
        lifecycle.check_transition(REPAIR, S.PENDING, S.ACTIVE)
    assert exc.value.current == "pending"
    assert exc.value.requested == "active"
    assert "pending" in exc.value.message and "active" in exc.value.message


def test_rental_statuses_are_not_valid_for_repair():
    with pytest.raises(InvalidTransition):
        lifecycle.check_transition(REPAIR, S.APPROVED, S.WAITING_PAYMENT)


def test_rental_happy_path():
    path = [S.PENDING, S.APPROVED, S.WAITING_PAYMENT, S.ARRANGING_DELIVERY, S.ACTIVE_RENTAL, S.COMPLETED]
    for current, requested in zip(path, path[1:]):
        lifecycle.check_transition(RENTAL, current, requested)


def test_admin_cannot_expire_a_request():
    with pytest.raises(InvalidTransition):
        lifecycle.check_transition(REPAIR, S.PENDING, S.EXPIRED)
    lifecycle.check_transition(REPAIR, S.PENDING, S.EXPIRED, by_system=True)


@pytest.mark.parametrize("note", [None, "", "   "])
def test_reject_requires_note(note):
    with pytest.raises(ValidationError) as exc:
        lifecycle.check_transition(REPAIR, S.PENDING, S.REJECTED, rejection_note=note)
    assert exc.value.errors[0]["field"] == "rejectionNote"


def test_transition_persists_status(db, user, make_repair_request):
    request = make_repair_request(user)
    lifecycle.transition(db, request, S.APPROVED)
    db.commit()
    db.expire_all()
    assert db.get(RepairRequest, request.id).status == S.APPROVED


def test_rejection_note_round_trips_verbatim(db, user, make_repair_request):
    request = make_repair_request(user)
    note = "  Spare part unavailable: 700x35c tyre (back in ~2 weeks)  "
    lifecycle.transition(db, request, S.REJECTED, note)
    db.commit()
    db.expire_all()
    stored = db.get(RepairRequest, request.id)
    assert stored.status == S.REJECTED
    assert stored.rejection_note == note


def test_concurrent_change_raises_conflict(db, user, make_repair_request):
    request = make_repair_request(user)
    # another admin approves behind this session's back
    db.query(RepairRequest).filter(RepairRequest.id == request.id).update(
        {"status": S.REJECTED, "rejection_note": "dup"}, synchronize_session=False
    )
    with pytest.raises(Conflict):
        lifecycle.transition(db, request, S.APPROVED)


def test_overdue_pending_request_reads_as_expired(db, user, make_repair_request):
    request = make_repair_request(user, expires_in=timedelta(minutes=-1))
    assert lifecycle.effective_status(request) == S.EXPIRED
    assert lifecycle.apply_expiry(db, request) is True
    db.commit()
    assert request.status == S.EXPIRED
    assert lifecycle.apply_expiry(db, request) is False


def test_expiry_only_applies_to_pending(db, user, make_repair_request):
    request = make_repair_request(user, status=S.APPROVED, expires_in=timedelta(minutes=-1))
    assert lifecycle.effective_status(request) == S.APPROVED
    assert lifecycle.apply_expiry(db, request) is False


def test_expire_stale_sweeps_only_overdue(db, user, make_repair_request):
    overdue = make_repair_request(user, expires_in=timedelta(minutes=-5))
    fresh = make_repair_request(user)
    assert lifecycle.expire_stale(db, REPAIR) == 1
    db.commit()
    assert db.get(RepairRequest, overdue.id).status == S.EXPIRED
    assert db.get(RepairRequest, fresh.id).status == S.PENDING


def test_expire_stale_can_be_scoped_to_a_user(db, user, make_user, make_repair_request):
    other = make_user()
    make_repair_request(user, expires_in=timedelta(minutes=-5))
    theirs = make_repair_request(other, expires_in=timedelta(minutes=-5))
    assert lifecycle.expire_stale(db, REPAIR, user_id=user.id) == 1
    db.commit()
    assert db.get(RepairRequest, theirs.id).status == S.PENDING
