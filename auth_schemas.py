from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional


class UserLogin(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    name: str
    role: str
    is_admin: bool
    msg: str = "Login Successful"


class Principal(BaseModel):
    """Verified caller identity used for "issued by" attribution."""

    user_id: str
    role: str = "user"
    is_admin: bool = False


class UserInDB(BaseModel):
    id: int
    user_id: str
    name: str
    role: str
    is_admin: bool
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AuthLogOut(BaseModel):
    id: int
    user_id: Optional[str] = None
    event: str
    role: Optional[str] = None
    ip_address: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
