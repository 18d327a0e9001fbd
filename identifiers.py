"""
Identifier minting for items, issues, fines and memberships.

Every identifier is backed by a named row in the `sequences` table. The row is
incremented with a single UPDATE inside the caller's transaction, so two
concurrent mints never see the same value. When a sequence does not exist yet
it is seeded from the records already stored (row count, or the highest serial
suffix for movies), which gives the same numbers a plain "count + 1" would on
a fresh database.

Formats:
- item serial:   SC(B/M)000001  (prefix by category, BK/MV fallback)
- issue id:      ISS-2401-0001  (YYMM of the current month, all-time counter)
- fine id:       FINE000001
- membership id: MEM000001
"""

import logging
import re
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Book, Category, Fine, Issue, ITEM_MODELS, ItemType, Membership, Movie, Sequence

logger = logging.getLogger(__name__)

CATEGORY_PREFIXES = {
    Category.SCIENCE.value: "SC",
    Category.ECONOMICS.value: "EC",
    Category.FICTION.value: "FC",
    Category.CHILDREN.value: "CH",
    Category.PERSONAL_DEVELOPMENT.value: "PD",
}
FALLBACK_PREFIXES = {ItemType.BOOK: "BK", ItemType.MOVIE: "MV"}
SERIAL_TAG = "(B/M)"

ISSUE_SEQUENCE = "issue"
FINE_SEQUENCE = "fine"
MEMBERSHIP_SEQUENCE = "membership"

_SUFFIX_RE = re.compile(r"(\d+)$")


def next_value(db: Session, name: str, seed: Optional[Callable[[], int]] = None) -> int:
    """Increment sequence `name` and return the new value. Missing sequences start at seed() (default 0)."""
    updated = (
        db.query(Sequence)
        .filter(Sequence.name == name)
        .update({Sequence.value: Sequence.value + 1}, synchronize_session=False)
    )
    if not updated:
        start = seed() if seed is not None else 0
        logger.info("Creating sequence %s at %s", name, start)
        db.add(Sequence(name=name, value=start + 1))
        db.flush()
        return start + 1
    return db.query(Sequence.value).filter(Sequence.name == name).scalar()


def category_prefix(item_type: ItemType, category: str) -> str:
    return CATEGORY_PREFIXES.get(category, FALLBACK_PREFIXES[ItemType(item_type)])


def serial_sequence_name(item_type: ItemType, category: str) -> str:
    return f"serial:{ItemType(item_type).value}:{category_prefix(item_type, category)}"


def _serial_seed(db: Session, item_type: ItemType, category: str) -> Callable[[], int]:
    item_type = ItemType(item_type)

    def seed() -> int:
        if item_type == ItemType.BOOK:
            return db.query(Book).filter(Book.category == category).count()
        # movies continue from the highest serial already using the prefix
        prefix = category_prefix(item_type, category) + SERIAL_TAG
        highest = 0
        for (serial_no,) in db.query(Movie.serial_no).filter(Movie.serial_no.startswith(prefix)):
            match = _SUFFIX_RE.search(serial_no)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    return seed


def _count_seed(db: Session, model) -> Callable[[], int]:
    return lambda: db.query(func.count(model.id)).scalar() or 0


def mint_serial(db: Session, item_type: ItemType, category: str) -> str:
    n = next_value(db, serial_sequence_name(item_type, category), _serial_seed(db, item_type, category))
    return f"{category_prefix(item_type, category)}{SERIAL_TAG}{n:06d}"


def mint_issue_id(db: Session, now: Optional[datetime] = None) -> str:
    # TODO: scope the counter per YYMM once the product owner confirms monthly resets
    now = now or datetime.utcnow()
    n = next_value(db, ISSUE_SEQUENCE, _count_seed(db, Issue))
    return f"ISS-{now:%y%m}-{n:04d}"


def mint_fine_id(db: Session) -> str:
    n = next_value(db, FINE_SEQUENCE, _count_seed(db, Fine))
    return f"FINE{n:06d}"


def mint_membership_id(db: Session) -> str:
    n = next_value(db, MEMBERSHIP_SEQUENCE, _count_seed(db, Membership))
    return f"MEM{n:06d}"


def ensure_sequences(db: Session) -> int:
    """Create every known sequence that is missing, seeded from existing rows. Returns how many were created."""
    wanted = {
        ISSUE_SEQUENCE: _count_seed(db, Issue),
        FINE_SEQUENCE: _count_seed(db, Fine),
        MEMBERSHIP_SEQUENCE: _count_seed(db, Membership),
    }
    for item_type in ITEM_MODELS:
        for category in CATEGORY_PREFIXES:
            wanted[serial_sequence_name(item_type, category)] = _serial_seed(db, item_type, category)

    existing = {name for (name,) in db.query(Sequence.name)}
    created = 0
    for name, seed in wanted.items():
        if name in existing:
            continue
        db.add(Sequence(name=name, value=seed()))
        created += 1
    db.commit()
    if created:
        logger.info("Seeded %d identifier sequences", created)
    return created
