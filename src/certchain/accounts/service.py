"""Account CRUD and login."""

import asyncio
import re
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash, generate_password_hash

from certchain.accounts.models import AccountModel, AccountRole, AccountStatus
from certchain.common.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AuthenticationError,
    DuplicateAccountError,
    InvalidInputError,
)
from certchain.common.models import utcnow

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

ROLES = tuple(r.value for r in AccountRole)
STATUSES = tuple(s.value for s in AccountStatus)

# Fields a full replacement (PUT) must carry; PATCH requires none.
REPLACE_REQUIRED_FIELDS = frozenset({"email", "username", "name", "surname"})


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_email(email: str) -> str:
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise InvalidInputError("Invalid email format", code="INVALID_EMAIL")
    return email


def _check_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            code="PASSWORD_TOO_SHORT",
        )
    return password


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise InvalidInputError(
            f"Invalid role. Allowed roles: {', '.join(ROLES)}", code="INVALID_ROLE"
        )
    return role


def _check_status(status: str) -> str:
    if status not in STATUSES:
        raise InvalidInputError(
            f"Invalid status. Allowed statuses: {', '.join(STATUSES)}", code="INVALID_STATUS"
        )
    return status


def _check_text(field: str, value: str) -> str:
    value = value.strip()
    if not value:
        raise InvalidInputError(f"{field} cannot be empty", code="INVALID_INPUT")
    return value


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(generate_password_hash, password)


async def password_matches(password_hash: str, password: str) -> bool:
    return await asyncio.to_thread(check_password_hash, password_hash, password)


class AccountService:
    """Uniqueness-checked account management.

    Email and username uniqueness is checked up front for precise error
    messages and enforced again by unique indexes when the row is flushed.
    """

    # ── Read ──

    async def get_by_id(self, session: AsyncSession, account_id: int) -> AccountModel | None:
        return await session.get(AccountModel, account_id)

    async def get_by_email(
        self, session: AsyncSession, email: str, exclude_id: Optional[int] = None,
    ) -> AccountModel | None:
        query = select(AccountModel).where(AccountModel.email == normalize_email(email))
        if exclude_id is not None:
            query = query.where(AccountModel.id != exclude_id)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(
        self, session: AsyncSession, username: str, exclude_id: Optional[int] = None,
    ) -> AccountModel | None:
        query = select(AccountModel).where(AccountModel.username == username.strip())
        if exclude_id is not None:
            query = query.where(AccountModel.id != exclude_id)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def list_accounts(self, session: AsyncSession) -> list[AccountModel]:
        result = await session.execute(select(AccountModel).order_by(AccountModel.id))
        return list(result.scalars().all())

    # ── Write ──

    async def create_account(
        self,
        session: AsyncSession,
        email: str,
        username: str,
        password: str,
        name: str,
        surname: str,
        role: Optional[str] = None,
        status: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> AccountModel:
        if not all(v and v.strip() for v in (email, username, password, name, surname)):
            raise InvalidInputError(
                "email, username, password, name and surname are required",
                code="MISSING_FIELDS",
            )

        email = _check_email(email)
        _check_password(password)
        role = _check_role(role) if role else AccountRole.VERIFIER.value
        status = _check_status(status) if status else AccountStatus.ACTIVE.value
        username = username.strip()

        await self._ensure_unique(session, email=email, username=username)

        account = AccountModel(
            email=email,
            username=username,
            password_hash=await hash_password(password),
            name=name.strip(),
            surname=surname.strip(),
            role=role,
            status=status,
            is_active=True if is_active is None else bool(is_active),
            last_login_at=None,
        )
        session.add(account)
        await self._flush(session)
        return account

    async def update_account(
        self,
        session: AsyncSession,
        account_id: int,
        changes: dict[str, Any],
        required: Iterable[str] = (),
    ) -> AccountModel:
        """Apply the fields present in ``changes``.

        ``required`` names the fields that must be present (PUT passes
        REPLACE_REQUIRED_FIELDS, PATCH nothing). Every present field gets the
        same validation as on create; absent fields are left untouched.
        """
        present = {k: v for k, v in changes.items() if v is not None}
        missing = sorted(f for f in required if f not in present)
        if missing:
            raise InvalidInputError(
                f"Missing required fields: {', '.join(missing)}", code="MISSING_FIELDS"
            )

        account = await self.get_by_id(session, account_id)
        if account is None:
            raise AccountNotFoundError()

        if "email" in present:
            email = _check_email(present["email"])
            if await self.get_by_email(session, email, exclude_id=account_id):
                raise DuplicateAccountError("Email already registered")
            account.email = email

        if "username" in present:
            username = _check_text("username", present["username"])
            if await self.get_by_username(session, username, exclude_id=account_id):
                raise DuplicateAccountError("Username already taken")
            account.username = username

        if "password" in present:
            account.password_hash = await hash_password(_check_password(present["password"]))

        for field in ("name", "surname"):
            if field in present:
                setattr(account, field, _check_text(field, present[field]))

        if "role" in present:
            account.role = _check_role(present["role"])
        if "status" in present:
            account.status = _check_status(present["status"])
        if "is_active" in present:
            account.is_active = bool(present["is_active"])

        await self._flush(session)
        return account

    async def delete_account(self, session: AsyncSession, account_id: int) -> AccountModel:
        account = await self.get_by_id(session, account_id)
        if account is None:
            raise AccountNotFoundError()
        await session.delete(account)
        await session.flush()
        return account

    # ── Login ──

    async def authenticate(self, session: AsyncSession, email: str, password: str) -> AccountModel:
        if not email or not password:
            raise InvalidInputError("Email and password are required", code="MISSING_FIELDS")

        account = await self.get_by_email(session, email)
        if account is None or not await password_matches(account.password_hash, password):
            raise AuthenticationError()
        if not account.is_active or account.status != AccountStatus.ACTIVE.value:
            raise AccountInactiveError()

        account.last_login_at = utcnow()
        await session.flush()
        return account

    # ── Internal helpers ──

    async def _ensure_unique(self, session: AsyncSession, email: str, username: str) -> None:
        if await self.get_by_email(session, email):
            raise DuplicateAccountError("Email already registered")
        if await self.get_by_username(session, username):
            raise DuplicateAccountError("Username already taken")

    @staticmethod
    async def _flush(session: AsyncSession) -> None:
        try:
            await session.flush()
        except IntegrityError as exc:
            raise DuplicateAccountError() from exc
