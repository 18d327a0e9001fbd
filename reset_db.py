from database import engine, Base, SessionLocal
from identifiers import ensure_sequences
import models  # noqa: F401

print("Dropping all tables...")
Base.metadata.drop_all(bind=engine)

print("Creating all tables...")
Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    ensure_sequences(db)
finally:
    db.close()

print("Database reset complete!")
