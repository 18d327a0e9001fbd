from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Literal, Optional

from models import Category, ItemType, MembershipType


class CamelModel(BaseModel):
    # wire format is camelCase (serialNo, membershipId, ...); snake_case is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageOut(CamelModel):
    msg: str


# --- Catalog ---
class ItemBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: Category
    cost: float = Field(..., ge=0)
    procurement_date: Optional[date] = None
    quantity: int = Field(1, ge=1)


class BookCreate(ItemBase):
    author: str = Field(..., min_length=1, max_length=200)


class MovieCreate(ItemBase):
    director: str = Field(..., min_length=1, max_length=200)


class ItemUpdate(CamelModel):
    """Update by serial number, or by the item's current name and creator when the serial is unknown."""

    serial_no: Optional[str] = None
    original_name: Optional[str] = None
    name: Optional[str] = None
    category: Optional[Category] = None
    cost: Optional[float] = Field(None, ge=0)
    procurement_date: Optional[date] = None
    quantity: Optional[int] = Field(None, ge=0)


class BookUpdate(ItemUpdate):
    original_author: Optional[str] = None
    author: Optional[str] = None


class MovieUpdate(ItemUpdate):
    original_director: Optional[str] = None
    director: Optional[str] = None


class ItemPatch(CamelModel):
    name: Optional[str] = None
    category: Optional[Category] = None
    # Issued is derived from the copy count, never set by hand
    status: Optional[Literal["Available", "Damaged", "Lost"]] = None
    cost: Optional[float] = Field(None, ge=0)


class BookPatch(ItemPatch):
    author: Optional[str] = None


class MoviePatch(ItemPatch):
    director: Optional[str] = None


class ItemOut(CamelModel):
    id: int
    serial_no: str
    name: str
    category: str
    status: str
    cost: float
    procurement_date: Optional[date] = None
    quantity: int
    available_copies: int
    item_type: ItemType
    created_at: Optional[datetime] = None


class BookOut(ItemOut):
    author: str


class MovieOut(ItemOut):
    director: str


# --- Membership ---
class MembershipCreate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    contact_number: str = Field(..., min_length=1, max_length=50)
    contact_address: str = Field(..., min_length=1)
    aadhar_card_no: str = Field(..., min_length=1, max_length=50)
    start_date: date
    membership_type: MembershipType = MembershipType.SIX_MONTHS


class MembershipUpdate(CamelModel):
    action: Literal["extend", "cancel"]
    extension_type: Optional[MembershipType] = None


class MembershipOut(CamelModel):
    id: int
    membership_id: str
    first_name: str
    last_name: str
    contact_number: str
    contact_address: str
    aadhar_card_no: str
    start_date: date
    end_date: date
    membership_type: str
    status: str
    amount_pending: float
    created_at: Optional[datetime] = None


# --- Circulation ---
class IssueCreate(CamelModel):
    serial_no: str = Field(..., min_length=1)
    item_type: ItemType
    membership_id: Optional[str] = None
    issue_date: date
    return_date: date
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def due_after_issue(self):
        if self.return_date < self.issue_date:
            raise ValueError("returnDate cannot be before issueDate")
        return self


class IssueOut(CamelModel):
    id: int
    issue_id: str
    serial_no: str
    item_name: str
    item_type: str
    author_name: str
    membership_id: str
    member_name: str
    issue_date: date
    return_date: date
    actual_return_date: Optional[date] = None
    status: str
    remarks: Optional[str] = ""
    issued_by: str


class OverdueIssueOut(IssueOut):
    days_overdue: int
    fine_amount: float


class ReturnCreate(CamelModel):
    serial_no: str = Field(..., min_length=1)
    membership_id: Optional[str] = None
    actual_return_date: date
    remarks: Optional[str] = None


class ReturnOut(CamelModel):
    msg: str
    issue_id: str
    fine_amount: float
    fine_id: Optional[str] = None


# --- Fines ---
class FinePay(CamelModel):
    paid_date: Optional[date] = None
    remarks: Optional[str] = None


class FineOut(CamelModel):
    id: int
    fine_id: str
    issue_id: str
    membership_id: str
    serial_no: str
    item_name: str
    issue_date: date
    return_date: date
    actual_return_date: Optional[date] = None
    days_overdue: int
    fine_amount: float
    fine_paid: bool
    paid_date: Optional[date] = None
    remarks: Optional[str] = ""


class FinePaidOut(CamelModel):
    msg: str
    fine: FineOut
