"""
Run this script to create the `sequences` table on an existing database and
seed every identifier counter from the records already stored.

Usage:
    python migrate_add_sequences.py

It uses the `engine` from `database.py`, so set DATABASE_URL first. Safe to re-run:
existing counters are left untouched.
"""

from database import engine, SessionLocal
from identifiers import ensure_sequences
from models import Sequence

print("Running sequences migration...")
Sequence.__table__.create(bind=engine, checkfirst=True)

db = SessionLocal()
try:
    created = ensure_sequences(db)
    print(f"Seeded {created} sequence(s).")
finally:
    db.close()
print("Migration finished.")
