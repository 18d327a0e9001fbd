from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import auth_utils, circulation, fines, models
from database import get_db
from schemas import FineOut, FinePaidOut, FinePay, IssueCreate, IssueOut, ReturnCreate, ReturnOut

router = APIRouter(
    prefix="/api",
    tags=["Circulation"],
    responses={404: {"description": "Not found"}},
)


# Issue endpoints
@router.post("/issue", response_model=IssueOut)
def issue_item(
    issue_data: IssueCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth_utils.get_current_active_user),
):
    return circulation.issue_item(issue_data, db, auth_utils.principal_for(current_user))


@router.get("/issue/active", response_model=List[IssueOut])
def active_issues(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return circulation.list_active_issues(db)


@router.get("/issue/overdue", response_model=List[IssueOut])
def overdue_issues(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return [issue for issue, _ in circulation.list_overdue_issues(db)]


@router.get("/issue/member/{membership_id}", response_model=List[IssueOut])
def member_issues(membership_id: str, db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return circulation.list_issues_for_member(membership_id, db)


# Return endpoint
@router.post("/return", response_model=ReturnOut)
def return_item(
    return_data: ReturnCreate,
    db: Session = Depends(get_db),
    _user: models.User = Depends(auth_utils.get_current_active_user),
):
    return circulation.return_item(return_data, db)


# Fine endpoints
@router.get("/fine/member/{membership_id}", response_model=List[FineOut])
def member_fines(membership_id: str, db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return fines.list_unpaid_for_member(db, membership_id)


@router.get("/fine/pending", response_model=List[FineOut])
def pending_fines(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return fines.list_pending(db)


@router.put("/fine/pay/{fine_id}", response_model=FinePaidOut)
def pay_fine(
    fine_id: str,
    payment: FinePay,
    db: Session = Depends(get_db),
    _user: models.User = Depends(auth_utils.get_current_active_user),
):
    fine = fines.pay_fine(db, fine_id, payment.paid_date, payment.remarks)
    return {"msg": "Fine paid successfully", "fine": FineOut.model_validate(fine)}
