import calendar
from datetime import date
from typing import List, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import identifiers
from concurrency import entity_lock, item_key
from database import transaction
from models import AuthLog, Book, ITEM_MODELS, ItemStatus, ItemType, Membership, MembershipStatus, MembershipType, Movie
from schemas import (
    BookCreate,
    ItemPatch,
    ItemUpdate,
    MembershipCreate,
    MovieCreate,
)

Item = Union[Book, Movie]


def _creator_column(model):
    return model.author if model is Book else model.director


# --- Catalog ---
def find_item(db: Session, serial_no: str, item_type: ItemType) -> Optional[Item]:
    model = ITEM_MODELS[ItemType(item_type)]
    return db.query(model).filter(model.serial_no == serial_no).first()


def add_item(item_data: Union[BookCreate, MovieCreate], item_type: ItemType, db: Session) -> Item:
    item_type = ItemType(item_type)
    model = ITEM_MODELS[item_type]
    category = item_data.category.value
    fields = item_data.model_dump(exclude={"category", "procurement_date"})
    try:
        with transaction(db):
            item = model(
                serial_no=identifiers.mint_serial(db, item_type, category),
                category=category,
                procurement_date=item_data.procurement_date or date.today(),
                available_copies=item_data.quantity,
                **fields,
            )
            db.add(item)
    except IntegrityError as e:
        # Convert DB error to clear message for API layer
        msg = str(e.orig) if getattr(e, 'orig', None) else str(e)
        raise ValueError(msg)
    db.refresh(item)
    return item


def add_book(book_data: BookCreate, db: Session) -> Book:
    return add_item(book_data, ItemType.BOOK, db)


def add_movie(movie_data: MovieCreate, db: Session) -> Movie:
    return add_item(movie_data, ItemType.MOVIE, db)


def list_items(db: Session, item_type: ItemType) -> List[Item]:
    model = ITEM_MODELS[ItemType(item_type)]
    return db.query(model).order_by(model.name).all()


def list_available_items(db: Session, item_type: ItemType) -> List[Item]:
    model = ITEM_MODELS[ItemType(item_type)]
    return (
        db.query(model)
        .filter(model.status == "Available", model.available_copies > 0)
        .order_by(model.name)
        .all()
    )


def search_items(db: Session, item_type: ItemType, query: str) -> List[Item]:
    """Case-insensitive match on name or author/director."""
    model = ITEM_MODELS[ItemType(item_type)]
    like = f"%{query}%"
    return db.query(model).filter(or_(model.name.ilike(like), _creator_column(model).ilike(like))).all()


def master_list(db: Session, item_type: ItemType) -> List[Item]:
    model = ITEM_MODELS[ItemType(item_type)]
    return db.query(model).order_by(model.category, model.name).all()


def update_item(item_type: ItemType, item_data: ItemUpdate, db: Session) -> Optional[Item]:
    """
    Update an item found by serial number, or by its current name and creator.

    The name/creator lookup tries an exact match first, then a trimmed
    case-insensitive one. A quantity change moves available copies by the same
    delta (never below zero).
    """
    model = ITEM_MODELS[ItemType(item_type)]
    creator = _creator_column(model)
    original_creator = getattr(item_data, "original_author", None) or getattr(item_data, "original_director", None)

    item = None
    if item_data.serial_no:
        item = db.query(model).filter(model.serial_no == item_data.serial_no).first()
    if not item and item_data.original_name and original_creator:
        item = db.query(model).filter(model.name == item_data.original_name, creator == original_creator).first()
    if not item and item_data.original_name and original_creator:
        item = db.query(model).filter(
            func.lower(func.trim(model.name)) == item_data.original_name.strip().lower(),
            func.lower(func.trim(creator)) == original_creator.strip().lower(),
        ).first()
    if not item:
        return None

    new_creator = getattr(item_data, "author", None) or getattr(item_data, "director", None)
    with entity_lock(item_key(item.serial_no)):
        # copies may have moved since the lookup
        db.refresh(item)
        if item_data.name:
            item.name = item_data.name
        if new_creator:
            setattr(item, creator.key, new_creator)
        if item_data.category:
            item.category = item_data.category.value
        if item_data.cost is not None:
            item.cost = item_data.cost
        if item_data.procurement_date:
            item.procurement_date = item_data.procurement_date
        if item_data.quantity is not None:
            item.resize(item_data.quantity)
        db.commit()
    db.refresh(item)
    return item


def patch_item(item_type: ItemType, serial_no: str, item_data: ItemPatch, db: Session) -> Optional[Item]:
    item = find_item(db, serial_no, item_type)
    if not item:
        return None
    data = item_data.model_dump(exclude_none=True)
    status = data.pop("status", None)
    with entity_lock(item_key(item.serial_no)):
        db.refresh(item)
        for key, value in data.items():
            setattr(item, key, getattr(value, "value", value))
        if status == ItemStatus.AVAILABLE.value:
            # back in service; stays Issued while every copy is out
            item.status = status
            item.sync_status()
        elif status:
            item.status = status
        db.commit()
    db.refresh(item)
    return item


# --- Membership ---
def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


MEMBERSHIP_MONTHS = {
    MembershipType.SIX_MONTHS.value: 6,
    MembershipType.ONE_YEAR.value: 12,
    MembershipType.TWO_YEARS.value: 24,
}


def calculate_end_date(start: date, membership_type: str) -> date:
    return add_months(start, MEMBERSHIP_MONTHS[MembershipType(membership_type).value])


def add_membership(member_data: MembershipCreate, db: Session) -> Membership:
    exists = db.query(Membership).filter(Membership.aadhar_card_no == member_data.aadhar_card_no).first()
    if exists:
        raise ValueError("Aadhar Card Number already registered")

    membership_type = member_data.membership_type.value
    try:
        with transaction(db):
            membership = Membership(
                membership_id=identifiers.mint_membership_id(db),
                first_name=member_data.first_name,
                last_name=member_data.last_name,
                contact_number=member_data.contact_number,
                contact_address=member_data.contact_address,
                aadhar_card_no=member_data.aadhar_card_no,
                start_date=member_data.start_date,
                end_date=calculate_end_date(member_data.start_date, membership_type),
                membership_type=membership_type,
                status=MembershipStatus.ACTIVE.value,
                amount_pending=0.0,
            )
            db.add(membership)
    except IntegrityError as e:
        msg = str(e.orig) if getattr(e, 'orig', None) else str(e)
        raise ValueError(msg)
    db.refresh(membership)
    return membership


def get_membership(membership_id: str, db: Session) -> Optional[Membership]:
    return db.query(Membership).filter(Membership.membership_id == membership_id).first()


def get_memberships(db: Session) -> List[Membership]:
    return db.query(Membership).order_by(Membership.created_at.desc(), Membership.id.desc()).all()


def get_active_memberships(db: Session) -> List[Membership]:
    return (
        db.query(Membership)
        .filter(Membership.status == MembershipStatus.ACTIVE.value)
        .order_by(Membership.first_name, Membership.last_name)
        .all()
    )


def extend_membership(membership_id: str, extension_type: Optional[MembershipType], db: Session) -> Optional[Membership]:
    membership = get_membership(membership_id, db)
    if not membership:
        return None
    extension = (extension_type or MembershipType.SIX_MONTHS).value
    membership.end_date = calculate_end_date(membership.end_date, extension)
    membership.membership_type = extension
    membership.status = MembershipStatus.ACTIVE.value
    db.commit()
    db.refresh(membership)
    return membership


def cancel_membership(membership_id: str, db: Session) -> Optional[Membership]:
    membership = get_membership(membership_id, db)
    if not membership:
        return None
    membership.status = MembershipStatus.CANCELLED.value
    membership.end_date = date.today()
    db.commit()
    db.refresh(membership)
    return membership


# --- Auth Logs ---
def log_auth_event(user_id: Optional[str], event: str, role: Optional[str], ip_address: Optional[str], db: Session):
    entry = AuthLog(user_id=user_id, event=event, role=role, ip_address=ip_address)
    db.add(entry)
    db.commit()


def get_auth_logs(db: Session, skip: int = 0, limit: int = 100):
    return db.query(AuthLog).order_by(AuthLog.timestamp.desc()).offset(skip).limit(limit).all()
