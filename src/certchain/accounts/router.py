"""Auth and user management API routers."""

from fastapi import APIRouter

from certchain.accounts.schemas import (
    AccountCreate,
    AccountEnvelope,
    AccountListResponse,
    AccountResponse,
    AccountUpdate,
    DeletedAccount,
    DeleteResponse,
    LoginRequest,
    RegisterRequest,
)
from certchain.accounts.service import REPLACE_REQUIRED_FIELDS
from certchain.common.exceptions import AccountNotFoundError, InvalidInputError
from certchain.common.logging import audit_log

auth_router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])


def _get_service():
    from certchain.deps import get_account_service
    return get_account_service()


def _get_db():
    from certchain.deps import get_db
    return get_db()


def _parse_id(raw: str) -> int:
    """Numeric path ids must be positive integers."""
    if not (raw.isascii() and raw.isdecimal()) or int(raw) < 1:
        raise InvalidInputError(
            "Invalid user id (must be a positive integer)", code="INVALID_ID"
        )
    return int(raw)


# ── Auth ──

@auth_router.post("/register", response_model=AccountEnvelope, status_code=201)
async def register(body: RegisterRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.create_account(
            session,
            email=body.email,
            username=body.username,
            password=body.password,
            name=body.name,
            surname=body.surname,
            role=body.role,
        )
        audit_log("account-registered", accountId=account.id, outcome="created")
        return AccountEnvelope(
            message="User registered successfully",
            user=AccountResponse.model_validate(account),
        )


@auth_router.post("/login", response_model=AccountEnvelope)
async def login(body: LoginRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.authenticate(session, body.email, body.password)
        audit_log("login", accountId=account.id, outcome="success")
        return AccountEnvelope(user=AccountResponse.model_validate(account))


# ── Users ──

@users_router.post("", response_model=AccountEnvelope, status_code=201)
async def create_user(body: AccountCreate):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.create_account(
            session,
            email=body.email,
            username=body.username,
            password=body.password,
            name=body.name,
            surname=body.surname,
            role=body.role,
            status=body.status,
            is_active=body.is_active,
        )
        return AccountEnvelope(
            message="User created successfully",
            user=AccountResponse.model_validate(account),
        )


@users_router.get("", response_model=AccountListResponse)
async def list_users():
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        accounts = await svc.list_accounts(session)
        users = [AccountResponse.model_validate(a) for a in accounts]
        return AccountListResponse(users=users, count=len(users))


@users_router.get("/{user_id}", response_model=AccountEnvelope)
async def get_user(user_id: str):
    account_id = _parse_id(user_id)
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.get_by_id(session, account_id)
        if account is None:
            raise AccountNotFoundError()
        return AccountEnvelope(user=AccountResponse.model_validate(account))


@users_router.put("/{user_id}", response_model=AccountEnvelope)
async def replace_user(user_id: str, body: AccountUpdate):
    return await _update(user_id, body, required=REPLACE_REQUIRED_FIELDS)


@users_router.patch("/{user_id}", response_model=AccountEnvelope)
async def patch_user(user_id: str, body: AccountUpdate):
    return await _update(user_id, body, required=frozenset())


async def _update(user_id: str, body: AccountUpdate, required: frozenset[str]) -> AccountEnvelope:
    account_id = _parse_id(user_id)
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.update_account(
            session, account_id, body.model_dump(exclude_unset=True), required=required,
        )
        return AccountEnvelope(
            message="User updated successfully",
            user=AccountResponse.model_validate(account),
        )


@users_router.delete("/{user_id}", response_model=DeleteResponse)
async def delete_user(user_id: str):
    account_id = _parse_id(user_id)
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.delete_account(session, account_id)
        return DeleteResponse(
            message="User deleted successfully",
            user=DeletedAccount(id=account.id, email=account.email, username=account.username),
        )
