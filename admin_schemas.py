from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class _CamelBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# User Management Schemas
class UserCreate(_CamelBase):
    user_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.USER
    is_admin: bool = False


class UserUpdate(_CamelBase):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    is_admin: Optional[bool] = None
    active: Optional[bool] = None
