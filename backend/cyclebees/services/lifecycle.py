"""
Request lifecycle for repair and rental bookings.

Both flows start in ``pending``. ``rejected``, ``expired`` and ``completed``
are terminal. Expiry is the only transition without an actor: a pending
request whose ``expires_at`` has passed is reported (and persisted) as
expired the next time anything reads it.

Status writes are conditional on the status the caller last saw
(``UPDATE ... WHERE id = ? AND status = ?``) so two admins racing on the
same row cannot silently overwrite each other.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Type, Union

from sqlalchemy.orm import Session

from cyclebees.core.exceptions import Conflict, InvalidTransition, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.core.timeutils import utcnow
from cyclebees.models.rental import RentalRequest
from cyclebees.models.repair import RepairRequest
from cyclebees.models.request_status import RequestStatusEnum as S, RequestTypeEnum

logger = get_logger("lifecycle")

BookingRequest = Union[RepairRequest, RentalRequest]

REPAIR_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.PENDING: frozenset({S.APPROVED, S.REJECTED, S.EXPIRED}),
    S.APPROVED: frozenset({S.ACTIVE}),
    S.ACTIVE: frozenset({S.COMPLETED}),
}

RENTAL_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.PENDING: frozenset({S.APPROVED, S.REJECTED, S.EXPIRED}),
    S.APPROVED: frozenset({S.WAITING_PAYMENT}),
    S.WAITING_PAYMENT: frozenset({S.ARRANGING_DELIVERY}),
    S.ARRANGING_DELIVERY: frozenset({S.ACTIVE_RENTAL}),
    S.ACTIVE_RENTAL: frozenset({S.COMPLETED}),
}

TERMINAL_STATUSES = frozenset({S.REJECTED, S.EXPIRED, S.COMPLETED})

# Time-driven only; never a valid admin target.
SYSTEM_ONLY_STATUSES = frozenset({S.EXPIRED})

MODELS: Dict[RequestTypeEnum, Type] = {
    RequestTypeEnum.REPAIR: RepairRequest,
    RequestTypeEnum.RENTAL: RentalRequest,
}

TRANSITIONS = {
    RequestTypeEnum.REPAIR: REPAIR_TRANSITIONS,
    RequestTypeEnum.RENTAL: RENTAL_TRANSITIONS,
}


def statuses_for(request_type: RequestTypeEnum) -> FrozenSet[S]:
    table = TRANSITIONS[request_type]
    targets = set(table)
    for allowed in table.values():
        targets |= allowed
    return frozenset(targets)


def request_type_of(request: BookingRequest) -> RequestTypeEnum:
    if isinstance(request, RepairRequest):
        return RequestTypeEnum.REPAIR
    return RequestTypeEnum.RENTAL


def is_expired(request: BookingRequest, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return request.status == S.PENDING and request.expires_at is not None and request.expires_at <= now


def effective_status(request: BookingRequest, now: Optional[datetime] = None) -> S:
    """Status as observed by clients, with lazy expiry applied."""
    if is_expired(request, now):
        return S.EXPIRED
    return S(request.status)


def check_transition(
    request_type: RequestTypeEnum,
    current: S,
    requested: S,
    rejection_note: Optional[str] = None,
    by_system: bool = False,
) -> None:
    """Raise unless ``current -> requested`` is a legal move for this flow."""
    current = S(current)
    requested = S(requested)
    if requested in SYSTEM_ONLY_STATUSES and not by_system:
        raise InvalidTransition(current.value, requested.value)
    allowed = TRANSITIONS[request_type].get(current, frozenset())
    if requested not in allowed:
        raise InvalidTransition(current.value, requested.value)
    if requested == S.REJECTED and not (rejection_note or "").strip():
        raise ValidationError(
            "Rejection note is required",
            errors=[{"field": "rejectionNote", "message": "Rejection note is required when rejecting a request"}],
        )


def _conditional_update(db: Session, request: BookingRequest, expected: S, values: dict) -> None:
    model = type(request)
    values = dict(values, updated_at=utcnow())
    updated = (
        db.query(model)
        .filter(model.id == request.id, model.status == expected)
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        logger.warning(
            "Concurrent status change detected on %s request %s (expected %s)",
            request_type_of(request).value, request.id, expected.value,
        )
        raise Conflict()
    db.refresh(request)


def transition(
    db: Session,
    request: BookingRequest,
    requested: S,
    rejection_note: Optional[str] = None,
) -> BookingRequest:
    """Apply an admin transition. Does not commit; the caller owns the transaction."""
    request_type = request_type_of(request)
    current = S(request.status)
    requested = S(requested)
    check_transition(request_type, current, requested, rejection_note)

    values = {"status": requested}
    if requested == S.REJECTED:
        values["rejection_note"] = rejection_note
    _conditional_update(db, request, current, values)
    logger.info(
        "%s request %s: %s -> %s", request_type.value, request.id, current.value, requested.value,
        extra={"request_id": request.id, "from_status": current.value, "to_status": requested.value},
    )
    return request


def apply_expiry(db: Session, request: BookingRequest, now: Optional[datetime] = None) -> bool:
    """Persist the expiry of one request if it is due. Returns True when it changed."""
    now = now or utcnow()
    if not is_expired(request, now):
        return False
    model = type(request)
    updated = (
        db.query(model)
        .filter(model.id == request.id, model.status == S.PENDING, model.expires_at <= now)
        .update({"status": S.EXPIRED, "updated_at": now}, synchronize_session=False)
    )
    db.refresh(request)
    if updated:
        logger.info("%s request %s expired", request_type_of(request).value, request.id)
    return bool(updated)


def expire_stale(db: Session, request_type: RequestTypeEnum, now: Optional[datetime] = None, user_id: Optional[int] = None) -> int:
    """Bulk-expire every overdue pending request of one kind. Returns the row count."""
    now = now or utcnow()
    model = MODELS[request_type]
    query = db.query(model).filter(model.status == S.PENDING, model.expires_at <= now)
    if user_id is not None:
        query = query.filter(model.user_id == user_id)
    count = query.update({"status": S.EXPIRED, "updated_at": now}, synchronize_session=False)
    if count:
        logger.info("Expired %d stale %s requests", count, request_type.value)
        db.expire_all()
    return count
