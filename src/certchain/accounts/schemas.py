"""Pydantic schemas for auth and user endpoints.

Field-level rules (email shape, password length, enums) are enforced by
AccountService so PUT and PATCH share one validation path.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from certchain.common.schemas import CamelModel


class AccountCreate(CamelModel):
    email: str
    username: str
    password: str
    name: str
    surname: str
    role: Optional[str] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None


class RegisterRequest(CamelModel):
    email: str
    username: str
    password: str
    name: str
    surname: str
    role: Optional[str] = None


class AccountUpdate(CamelModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    surname: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class AccountResponse(CamelModel):
    id: int
    email: str
    username: str
    name: str
    surname: str
    role: str
    status: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AccountEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    user: AccountResponse


class AccountListResponse(CamelModel):
    success: bool = True
    users: list[AccountResponse]
    count: int


class DeletedAccount(CamelModel):
    id: int
    email: str
    username: str


class DeleteResponse(CamelModel):
    success: bool = True
    message: str
    user: DeletedAccount
