"""
Circulation engine: issuing items to borrowers and taking them back.

Each operation validates everything before it writes, then applies all of its
writes (item copies, issue record, fine, membership balance) as one unit of
work. Operations on the same item or membership are serialized: an in-process
lock per entity key, plus SELECT ... FOR UPDATE on the rows for databases that
honor it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import fines
import identifiers
from auth_schemas import Principal
from concurrency import entity_lock, item_key, lock_for_update, membership_key
from database import transaction
from exceptions import (
    FinesOutstandingError,
    InternalError,
    InvalidMembershipError,
    LibraryError,
    NoActiveIssueError,
    NotFoundError,
    UnavailableError,
)
from models import Issue, IssueStatus, ITEM_MODELS, ItemType, Membership
from schemas import IssueCreate, ReturnCreate

logger = logging.getLogger(__name__)

GUEST_ID = "GUEST"
GUEST_NAME = "Guest"
SYSTEM_USER = "system"


@dataclass(frozen=True)
class MemberBorrower:
    membership_id: str

    @property
    def storage_id(self) -> str:
        return self.membership_id


@dataclass(frozen=True)
class GuestBorrower:
    """Walk-in borrower without a membership."""

    storage_id = GUEST_ID
    member_name = GUEST_NAME


Borrower = Union[MemberBorrower, GuestBorrower]


def borrower_for_issue(membership_id: Optional[str]) -> Borrower:
    # an explicit "GUEST" is looked up like any other id and will not be found
    if not membership_id:
        return GuestBorrower()
    return MemberBorrower(membership_id)


def borrower_for_return(membership_id: Optional[str]) -> Borrower:
    if not membership_id or membership_id == GUEST_ID:
        return GuestBorrower()
    return MemberBorrower(membership_id)


def _lock_keys(serial_no: str, borrower: Borrower) -> List[str]:
    keys = [item_key(serial_no)]
    if isinstance(borrower, MemberBorrower):
        keys.append(membership_key(borrower.membership_id))
    return keys


def issue_item(issue_data: IssueCreate, db: Session, principal: Optional[Principal] = None) -> Issue:
    """
    Lend one copy of a book or movie.

    Checks, first failure wins: item exists (NotFoundError), has a free copy
    (UnavailableError), membership exists and is Active (InvalidMembershipError),
    membership owes nothing (FinesOutstandingError). Without a membership id the
    loan is recorded for a guest.
    """
    item_type = ItemType(issue_data.item_type)
    model = ITEM_MODELS[item_type]
    serial_no = issue_data.serial_no
    borrower = borrower_for_issue(issue_data.membership_id)

    with entity_lock(*_lock_keys(serial_no, borrower)):
        try:
            with transaction(db):
                item = lock_for_update(db.query(model).filter(model.serial_no == serial_no)).first()
                if not item:
                    raise NotFoundError("Item not found")
                if not item.is_available:
                    raise UnavailableError("Item is not available")

                member_name = GUEST_NAME
                if isinstance(borrower, MemberBorrower):
                    membership = lock_for_update(
                        db.query(Membership).filter(Membership.membership_id == borrower.membership_id)
                    ).first()
                    if not membership or not membership.is_active:
                        raise InvalidMembershipError("Invalid or inactive membership")
                    if membership.has_outstanding_fines:
                        raise FinesOutstandingError("Please clear pending fine first")
                    member_name = membership.full_name

                item.check_out()
                issue = Issue(
                    issue_id=identifiers.mint_issue_id(db),
                    serial_no=serial_no,
                    item_name=item.name,
                    item_type=item_type.value,
                    author_name=item.creator,
                    membership_id=borrower.storage_id,
                    member_name=member_name,
                    issue_date=issue_data.issue_date,
                    return_date=issue_data.return_date,
                    remarks=issue_data.remarks or "",
                    issued_by=principal.user_id if principal else SYSTEM_USER,
                    status=IssueStatus.ISSUED.value,
                )
                db.add(issue)
        except LibraryError as e:
            logger.info("Issue of %s rejected: %s", serial_no, e.msg)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Store failure while issuing %s", serial_no)
            raise InternalError("Server error while issuing item") from exc

    db.refresh(issue)
    logger.info("Issued %s to %s as %s", serial_no, issue.membership_id, issue.issue_id)
    return issue


def return_item(return_data: ReturnCreate, db: Session) -> dict:
    """
    Close the borrower's most recent open loan of an item.

    Puts the copy back on the shelf and, when the return is late, records a fine
    and adds it to the member's pending amount.
    """
    serial_no = return_data.serial_no
    borrower = borrower_for_return(return_data.membership_id)
    actual = return_data.actual_return_date

    with entity_lock(*_lock_keys(serial_no, borrower)):
        try:
            with transaction(db):
                issue = lock_for_update(
                    db.query(Issue)
                    .filter(
                        Issue.serial_no == serial_no,
                        Issue.membership_id == borrower.storage_id,
                        Issue.status == IssueStatus.ISSUED.value,
                    )
                    .order_by(Issue.issue_date.desc(), Issue.id.desc())
                ).first()
                if not issue:
                    raise NoActiveIssueError("Active issue not found")

                issue.actual_return_date = actual
                issue.status = IssueStatus.RETURNED.value
                issue.remarks = return_data.remarks or issue.remarks

                model = ITEM_MODELS[ItemType(issue.item_type)]
                item = lock_for_update(db.query(model).filter(model.serial_no == serial_no)).first()
                if item:
                    item.check_in()
                else:
                    logger.warning("Returned item %s is no longer in the catalog", serial_no)

                fine = fines.record_fine(db, issue, actual, return_data.remarks)
                result = {
                    "msg": "Item returned successfully",
                    "issue_id": issue.issue_id,
                    "fine_amount": fine.fine_amount if fine else 0,
                    "fine_id": fine.fine_id if fine else None,
                }
        except LibraryError as e:
            logger.info("Return of %s rejected: %s", serial_no, e.msg)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Store failure while returning %s", serial_no)
            raise InternalError("Server error while returning item") from exc

    logger.info("Returned %s by %s, fine %s", serial_no, borrower.storage_id, result["fine_amount"])
    return result


def list_active_issues(db: Session) -> List[Issue]:
    return (
        db.query(Issue)
        .filter(Issue.status == IssueStatus.ISSUED.value)
        .order_by(Issue.issue_date.desc())
        .all()
    )


def list_overdue_issues(db: Session, now: Optional[datetime] = None) -> List[Tuple[Issue, dict]]:
    """
    Open loans past their due date, oldest due first, each with its projected fine.

    Projected as if returned today, so a loan due today is not yet overdue.
    """
    today = (now or datetime.utcnow()).date()
    candidates = (
        db.query(Issue)
        .filter(Issue.status == IssueStatus.ISSUED.value, Issue.return_date < today)
        .order_by(Issue.return_date.asc())
        .all()
    )
    return [(issue, fines.project_fine(issue, today)) for issue in candidates]


def list_issues_for_member(membership_id: str, db: Session) -> List[Issue]:
    return (
        db.query(Issue)
        .filter(Issue.membership_id == membership_id)
        .order_by(Issue.issue_date.desc())
        .all()
    )
