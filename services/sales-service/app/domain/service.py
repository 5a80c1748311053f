"""Account service orchestrating credentials, profiles and token issuance."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .account import Account, Role
from .contracts import CreateAccountInput, UpdateAccountInput, UpdateProfileInput
from ..errors import InvalidCredentials, NotFoundError, RateLimitedError, ValidationError
from ..security.passwords import hash_password, password_policy_violation, verify_password
from ..security.tokens import issue_access_token

if TYPE_CHECKING:
    from ..config import Settings
    from ..repository import AccountRepository
    from ..security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = frozenset({Role.seller, Role.client})


@dataclass(slots=True)
class LoginResult:
    """Token and identity returned after a successful login."""

    account: Account
    token: str
    expires_in: int


class AccountService:
    """Account workflows backed by Postgres storage."""

    def __init__(
        self,
        repository: "AccountRepository",
        rate_limiter: "RateLimiter | None" = None,
        settings: "Settings | None" = None,
    ) -> None:
        self._repository = repository
        self._rate_limiter = rate_limiter
        self._settings = settings

    async def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and mint a session token.

        Attempts are throttled per email address when a rate limiter is configured.
        """
        rate_key = email.strip().lower()
        if self._rate_limiter is not None and not self._rate_limiter.allow(rate_key):
            logger.warning("login throttled for %s", rate_key)
            raise RateLimitedError("Too many login attempts, please try again later")

        record = await self._repository.find_credentials(email)
        if record is None:
            raise InvalidCredentials()
        account, password_hash = record
        if not account.active:
            raise InvalidCredentials("Account is deactivated")
        if not await asyncio.to_thread(verify_password, password, password_hash):
            raise InvalidCredentials()

        if self._rate_limiter is not None:
            self._rate_limiter.reset(rate_key)
        token, expires_in = issue_access_token(account_id=account.account_id, settings=self._settings)
        logger.info("account %s logged in", account.account_id)
        return LoginResult(account=account, token=token, expires_in=expires_in)

    async def get_profile(self, account_id: int) -> Account:
        account = await self._repository.get_account(account_id)
        if account is None:
            raise NotFoundError("User", account_id)
        return account

    async def update_profile(self, account_id: int, payload: UpdateProfileInput) -> Account:
        account = await self._repository.update_profile(account_id, payload)
        if account is None:
            raise NotFoundError("User", account_id)
        return account

    async def change_password(self, account_id: int, current_password: str, new_password: str) -> None:
        current_hash = await self._repository.get_password_hash(account_id)
        if current_hash is None:
            raise NotFoundError("User", account_id)
        if not await asyncio.to_thread(verify_password, current_password, current_hash):
            raise ValidationError("Current password is incorrect", field="current_password")
        new_hash = await asyncio.to_thread(hash_password, new_password)
        await self._repository.set_password_hash(account_id, new_hash)
        logger.info("account %s changed its password", account_id)

    async def register(self, payload: CreateAccountInput) -> Account:
        password_hash = await asyncio.to_thread(hash_password, payload.password)
        account = await self._repository.create_account(payload, password_hash)
        logger.info("account %s registered with role %s", account.account_id, account.role.value)
        return account

    async def deactivate(self, actor: Account, account_id: int) -> Account:
        if actor.account_id == account_id:
            raise ValidationError("You cannot deactivate your own account", field="user_id")
        account = await self._repository.set_active(account_id, False)
        if account is None:
            raise NotFoundError("User", account_id)
        logger.info("account %s deactivated by %s", account_id, actor.account_id)
        return account

    async def list_accounts(self, role: Role | None = None) -> list[Account]:
        return await self._repository.list_accounts(role)

    async def register_self(self, payload: CreateAccountInput) -> Account:
        """Public sign-up; limited to seller and client accounts with a strong password."""
        if payload.role not in SELF_SERVICE_ROLES:
            raise ValidationError("Invalid role selected", field="role")
        problem = password_policy_violation(payload.password)
        if problem is not None:
            raise ValidationError(problem, field="password")
        return await self.register(payload)

    async def update_account(self, actor: Account, account_id: int, payload: UpdateAccountInput) -> Account:
        if actor.account_id == account_id and payload.active is False:
            raise ValidationError("You cannot deactivate your own account", field="active")
        account = await self._repository.update_account(account_id, payload)
        if account is None:
            raise NotFoundError("User", account_id)
        logger.info("account %s updated by %s", account_id, actor.account_id)
        return account

    async def available_sellers(self, real_estate_id: int) -> list[Account]:
        return await self._repository.list_available_sellers(real_estate_id)

    async def available_clients(self, real_estate_id: int) -> list[Account]:
        return await self._repository.list_available_clients(real_estate_id)
