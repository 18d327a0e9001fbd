import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

import models, auth_schemas, auth_utils, crud
from database import get_db

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

logger = logging.getLogger(__name__)


@router.post("/login", response_model=auth_schemas.Token)
def login(request: Request, login_data: auth_schemas.UserLogin, db: Session = Depends(get_db)):
    client_ip = request.client.host if request.client else request.headers.get("x-forwarded-for")

    logger.info("Login attempt for user: %s", login_data.user_id)

    user = (
        db.query(models.User)
        .filter(models.User.user_id == login_data.user_id, models.User.is_active == True)  # noqa: E712
        .first()
    )
    if not user or not auth_utils.verify_password(login_data.password, user.hashed_password):
        crud.log_auth_event(
            user_id=login_data.user_id, event="login_failed", role=None, ip_address=client_ip, db=db
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = auth_utils.token_for(user)
    crud.log_auth_event(user_id=user.user_id, event="login_success", role=user.role, ip_address=client_ip, db=db)

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user_id": user.user_id,
        "name": user.name,
        "role": user.role,
        "is_admin": bool(user.is_admin),
    }


@router.get("/me", response_model=auth_schemas.UserInDB)
def read_users_me(current_user: models.User = Depends(auth_utils.get_current_active_user)):
    return current_user


@router.get("/logs", response_model=List[auth_schemas.AuthLogOut])
def list_auth_logs(skip: int = 0, limit: int = 100, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    return crud.get_auth_logs(db, skip=skip, limit=limit)


@router.post("/logout")
def logout():
    # Tokens are stateless; the client discards its copy
    return {"msg": "Successfully logged out"}
