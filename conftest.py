"""
Pytest fixtures: an in-memory database, an API client and a few catalog/membership records.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date

import pytest
from fastapi.testclient import TestClient

import crud
from database import Base, SessionLocal, engine
from models import Category, MembershipType
from schemas import BookCreate, MembershipCreate, MovieCreate


@pytest.fixture
def db():
    """Fresh schema and session for each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    import main

    main.init_db()
    return TestClient(main.app)


@pytest.fixture
def admin_headers(client):
    resp = client.post("/api/auth/login", json={"userId": "admin", "password": "admin123"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def make_book(db):
    def _make(quantity=3, category=Category.SCIENCE, name="A Brief History of Time", author="Stephen Hawking"):
        return crud.add_book(
            BookCreate(name=name, author=author, category=category, cost=450.0, quantity=quantity),
            db,
        )
    return _make


@pytest.fixture
def make_movie(db):
    def _make(quantity=1, category=Category.FICTION, name="Inception", director="Christopher Nolan"):
        return crud.add_movie(
            MovieCreate(name=name, director=director, category=category, cost=300.0, quantity=quantity),
            db,
        )
    return _make


@pytest.fixture
def make_membership(db):
    counter = {"n": 0}

    def _make(first_name="Asha", last_name="Rao", membership_type=MembershipType.ONE_YEAR):
        counter["n"] += 1
        return crud.add_membership(
            MembershipCreate(
                first_name=first_name,
                last_name=last_name,
                contact_number="9876543210",
                contact_address="12 MG Road, Pune",
                aadhar_card_no=f"1234-5678-{counter['n']:04d}",
                start_date=date(2024, 1, 1),
                membership_type=membership_type,
            ),
            db,
        )
    return _make
