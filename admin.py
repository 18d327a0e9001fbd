from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import models, auth_utils
from auth_schemas import UserInDB
from database import get_db
import admin_schemas as schemas

router = APIRouter(
    prefix="/api/maintenance",
    tags=["Maintenance"],
    dependencies=[Depends(auth_utils.get_admin_user)],
    responses={404: {"description": "Not found"}},
)


# User Management Endpoints
@router.post("/users", response_model=UserInDB, status_code=status.HTTP_201_CREATED)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.user_id == user.user_id).first()
    if db_user:
        raise HTTPException(status_code=400, detail="User already exists")

    db_user = models.User(
        user_id=user.user_id,
        name=user.name,
        hashed_password=auth_utils.get_password_hash(user.password),
        role=user.role.value,
        is_admin=user.is_admin or user.role == schemas.UserRole.ADMIN,
        is_active=True,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


@router.get("/users", response_model=List[UserInDB])
def read_users(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return db.query(models.User).order_by(models.User.id).offset(skip).limit(limit).all()


@router.put("/users/{user_id}", response_model=UserInDB)
def update_user(user_id: str, user_update: schemas.UserUpdate, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.user_id == user_id).first()
    if db_user is None:
        raise HTTPException(status_code=404, detail="User not found")

    if user_update.name:
        db_user.name = user_update.name
    if user_update.role is not None:
        db_user.role = user_update.role.value
    if user_update.is_admin is not None:
        db_user.is_admin = user_update.is_admin
    if user_update.active is not None:
        db_user.is_active = user_update.active

    db.commit()
    db.refresh(db_user)
    return db_user
