from enum import Enum

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean
from datetime import datetime, date
from database import Base
from exceptions import UnavailableError


class ItemType(str, Enum):
    BOOK = "Book"
    MOVIE = "Movie"


class Category(str, Enum):
    SCIENCE = "Science"
    ECONOMICS = "Economics"
    FICTION = "Fiction"
    CHILDREN = "Children"
    PERSONAL_DEVELOPMENT = "Personal Development"


class ItemStatus(str, Enum):
    AVAILABLE = "Available"
    ISSUED = "Issued"
    DAMAGED = "Damaged"
    LOST = "Lost"


class MembershipType(str, Enum):
    SIX_MONTHS = "6 months"
    ONE_YEAR = "1 year"
    TWO_YEARS = "2 years"


class MembershipStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class IssueStatus(str, Enum):
    ISSUED = "Issued"
    RETURNED = "Returned"
    OVERDUE = "Overdue"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="user")  # user / admin
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class AuthLog(Base):
    __tablename__ = "auth_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=True)
    event = Column(String, nullable=False)  # login_success / login_failed
    role = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)


class ItemMixin:
    """Lending fields shared by books and movies.

    `available_copies` and `status` are written only through check_out/check_in.
    """

    id = Column(Integer, primary_key=True, index=True)
    serial_no = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False)
    status = Column(String, default=ItemStatus.AVAILABLE.value)
    cost = Column(Float, nullable=False)
    procurement_date = Column(Date, default=date.today)
    quantity = Column(Integer, default=1)
    available_copies = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    # subclasses set item_type and expose `creator` (author or director)
    item_type = None

    @property
    def is_available(self) -> bool:
        return self.status == ItemStatus.AVAILABLE.value and (self.available_copies or 0) > 0

    def check_out(self) -> None:
        if not self.is_available:
            raise UnavailableError("Item is not available")
        self.available_copies -= 1
        if self.available_copies == 0:
            self.status = ItemStatus.ISSUED.value

    def check_in(self) -> None:
        # not clamped to quantity: a corrupted count passes through
        self.available_copies = (self.available_copies or 0) + 1
        self.status = ItemStatus.AVAILABLE.value

    def resize(self, quantity: int) -> None:
        """Change the owned copy count; copies on loan stay on loan."""
        diff = quantity - (self.quantity or 0)
        self.quantity = quantity
        self.available_copies = max(0, (self.available_copies or 0) + diff)
        self.sync_status()

    def sync_status(self) -> None:
        """Derive Available/Issued from the free copy count. Damaged and Lost stay put."""
        if self.status in (ItemStatus.DAMAGED.value, ItemStatus.LOST.value):
            return
        if (self.available_copies or 0) > 0:
            self.status = ItemStatus.AVAILABLE.value
        else:
            self.status = ItemStatus.ISSUED.value


class Book(ItemMixin, Base):
    __tablename__ = "books"

    author = Column(String, nullable=False, index=True)

    item_type = ItemType.BOOK

    @property
    def creator(self) -> str:
        return self.author


class Movie(ItemMixin, Base):
    __tablename__ = "movies"

    director = Column(String, nullable=False, index=True)

    item_type = ItemType.MOVIE

    @property
    def creator(self) -> str:
        return self.director


ITEM_MODELS = {ItemType.BOOK: Book, ItemType.MOVIE: Movie}


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    membership_id = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    contact_number = Column(String, nullable=False)
    contact_address = Column(String, nullable=False)
    aadhar_card_no = Column(String, unique=True, index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    membership_type = Column(String, nullable=False)
    status = Column(String, default=MembershipStatus.ACTIVE.value)
    amount_pending = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE.value

    @property
    def has_outstanding_fines(self) -> bool:
        return (self.amount_pending or 0) > 0

    def apply_fine(self, amount: float) -> None:
        self.amount_pending = (self.amount_pending or 0) + amount

    def settle_fine(self, amount: float) -> None:
        # no floor: paying the same fine twice leaves a negative balance
        self.amount_pending = (self.amount_pending or 0) - amount


class Issue(Base):
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, index=True)
    issue_id = Column(String, unique=True, index=True, nullable=False)
    serial_no = Column(String, index=True, nullable=False)
    item_name = Column(String, nullable=False)
    item_type = Column(String, nullable=False)
    author_name = Column(String, nullable=False)
    membership_id = Column(String, index=True, nullable=False)
    member_name = Column(String, nullable=False)
    issue_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=False)  # due date
    actual_return_date = Column(Date, nullable=True)
    status = Column(String, default=IssueStatus.ISSUED.value, index=True)
    remarks = Column(String, default="")
    issued_by = Column(String, nullable=False)


class Fine(Base):
    __tablename__ = "fines"

    id = Column(Integer, primary_key=True, index=True)
    fine_id = Column(String, unique=True, index=True, nullable=False)
    issue_id = Column(String, index=True, nullable=False)
    membership_id = Column(String, index=True, nullable=False)
    serial_no = Column(String, nullable=False)
    item_name = Column(String, nullable=False)
    issue_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=False)
    actual_return_date = Column(Date, nullable=True)
    days_overdue = Column(Integer, default=0)
    fine_amount = Column(Float, default=0.0)
    fine_paid = Column(Boolean, default=False, index=True)
    paid_date = Column(Date, nullable=True)
    remarks = Column(String, default="")


class Sequence(Base):
    """Named counter backing identifier minting."""

    __tablename__ = "sequences"

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
