"""
Fine engine: overdue arithmetic, fine records and membership balance upkeep.

A fine is FINE_RATE per started day past the due date. Dates count as midnight,
so returning on the due date is free and any part of a later day is charged
as a whole day.
"""

import logging
import math
from datetime import date, datetime, time, timezone
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import identifiers
from concurrency import entity_lock, lock_for_update, membership_key
from database import transaction
from exceptions import InternalError, NotFoundError
from models import Fine, Issue, Membership

logger = logging.getLogger(__name__)

FINE_RATE = 5
SECONDS_PER_DAY = 24 * 60 * 60

DateLike = Union[date, datetime]


def _as_datetime(value: DateLike) -> datetime:
    """Normalize to a UTC-naive datetime; plain dates become midnight."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


def days_overdue(due: DateLike, actual: DateLike) -> int:
    due_dt, actual_dt = _as_datetime(due), _as_datetime(actual)
    if actual_dt <= due_dt:
        return 0
    return math.ceil((actual_dt - due_dt).total_seconds() / SECONDS_PER_DAY)


def compute_fine(due: DateLike, actual: DateLike) -> int:
    """Fine owed when an item due on `due` comes back on `actual`."""
    return days_overdue(due, actual) * FINE_RATE


def project_fine(issue: Issue, now: Optional[DateLike] = None) -> dict:
    """Would-be fine for an open loan if it were returned `now`. Nothing is persisted."""
    now = now or datetime.utcnow()
    days = days_overdue(issue.return_date, now)
    return {"days_overdue": days, "fine_amount": days * FINE_RATE}


def record_fine(db: Session, issue: Issue, actual_return_date: date, remarks: Optional[str] = None) -> Optional[Fine]:
    """
    Persist the fine for a closed loan and add it to the member's balance.

    Returns None when the item came back on time. Runs inside the caller's
    transaction and does not commit.
    """
    days = days_overdue(issue.return_date, actual_return_date)
    if days == 0:
        return None
    amount = days * FINE_RATE

    fine = Fine(
        fine_id=identifiers.mint_fine_id(db),
        issue_id=issue.issue_id,
        membership_id=issue.membership_id,
        serial_no=issue.serial_no,
        item_name=issue.item_name,
        issue_date=issue.issue_date,
        return_date=issue.return_date,
        actual_return_date=actual_return_date,
        days_overdue=days,
        fine_amount=amount,
        fine_paid=False,
        remarks=remarks or "",
    )
    db.add(fine)

    membership = lock_for_update(
        db.query(Membership).filter(Membership.membership_id == issue.membership_id)
    ).first()
    if membership:
        membership.apply_fine(amount)
    else:
        logger.warning("Fine %s has no membership %s to charge", fine.fine_id, issue.membership_id)
    db.flush()
    return fine


def pay_fine(db: Session, fine_id: str, paid_date: Optional[date] = None, remarks: Optional[str] = None) -> Fine:
    """
    Mark a fine paid and take it off the member's balance.

    Paying the same fine twice subtracts it twice; the balance is not clamped.
    """
    fine = db.query(Fine).filter(Fine.fine_id == fine_id).first()
    if not fine:
        raise NotFoundError("Fine not found")

    with entity_lock(membership_key(fine.membership_id)):
        try:
            with transaction(db):
                fine = lock_for_update(db.query(Fine).filter(Fine.fine_id == fine_id)).first()
                if fine.fine_paid:
                    logger.warning("Fine %s is being paid again", fine_id)
                fine.fine_paid = True
                fine.paid_date = paid_date or date.today()
                fine.remarks = remarks or fine.remarks

                membership = lock_for_update(
                    db.query(Membership).filter(Membership.membership_id == fine.membership_id)
                ).first()
                if membership:
                    membership.settle_fine(fine.fine_amount)
        except SQLAlchemyError as exc:
            logger.exception("Store failure while paying fine %s", fine_id)
            raise InternalError("Server error while paying fine") from exc

    db.refresh(fine)
    logger.info("Fine %s paid (%s)", fine_id, fine.fine_amount)
    return fine


def list_unpaid_for_member(db: Session, membership_id: str) -> List[Fine]:
    return (
        db.query(Fine)
        .filter(Fine.membership_id == membership_id, Fine.fine_paid == False)  # noqa: E712
        .order_by(Fine.return_date.desc())
        .all()
    )


def list_pending(db: Session) -> List[Fine]:
    return db.query(Fine).filter(Fine.fine_paid == False).order_by(Fine.return_date.desc()).all()  # noqa: E712
