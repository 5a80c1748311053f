"""Request authorization: credential verification, role gating and entity scoping.

Each inbound request runs through three stages in a fixed order::

    Unauthenticated -> Authenticated -> RoleChecked -> ScopeChecked -> Admitted

Any stage may fail, which moves the request to ``Rejected`` and skips the
remaining stages. Stages receive everything they need as arguments; no
per-request state is kept on the objects themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol, Sequence, assert_never

import jwt

from ..config import Settings, get_settings
from ..domain.account import Account, Role
from ..errors import (
    AuthenticationError,
    AuthorizationError,
    InactiveOrUnknownAccount,
    InsufficientRole,
    InvalidOrExpiredToken,
    MissingToken,
    ScopeDenied,
    ValidationError,
)
from .tokens import SUBJECT_CLAIM, decode_access_token

logger = logging.getLogger(__name__)


class AuthorizationStore(Protocol):
    """Read-only lookups the authorization stages depend on."""

    async def get_active_account(self, account_id: int) -> Account | None: ...

    async def real_estate_exists(self, real_estate_id: int) -> bool: ...

    async def client_assigned_to_seller(self, client_id: int, seller_id: int) -> bool: ...

    async def is_real_estate_member(self, real_estate_id: int, account_id: int) -> bool: ...


class EntityKind(str, Enum):
    real_estate = "real_estate"
    client = "client"


@dataclass(frozen=True, slots=True)
class EntityReference:
    """The entity instance a request targets; ``entity_id`` is None when absent."""

    kind: EntityKind
    entity_id: int | None = None


def _as_entity_id(raw: Any) -> int | None:
    # JSON booleans are ints to Python and floats would truncate silently.
    if isinstance(raw, bool):
        return None
    if isinstance(raw, float) and not raw.is_integer():
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value >= 1 else None


def pick_entity_id(
    names: Sequence[str],
    *sources: Mapping[str, Any] | None,
) -> int | None:
    """Return the first id found under any of ``names``, scanning ``sources`` in order.

    Callers pass path parameters, body and query parameters in that order so the
    path wins over the body and the body over the query string.
    """
    for source in sources:
        if not source:
            continue
        for name in names:
            raw = source.get(name)
            if raw is None or raw == "":
                continue
            value = _as_entity_id(raw)
            if value is None:
                raise ValidationError(f"Valid {name} is required", field=name)
            return value
    return None


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class CredentialVerifier:
    """Turns a bearer header into an active account."""

    def __init__(self, store: AuthorizationStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    async def verify(self, authorization: str | None) -> Account:
        token = extract_bearer_token(authorization)
        if token is None:
            raise MissingToken()

        # Signature and expiry are checked before any claim is trusted.
        try:
            claims = decode_access_token(token, self._settings)
        except jwt.PyJWTError as exc:
            logger.debug("token rejected: %s", exc)
            raise InvalidOrExpiredToken() from exc

        account_id = claims.get(SUBJECT_CLAIM)
        if isinstance(account_id, bool) or not isinstance(account_id, (int, str)):
            raise InvalidOrExpiredToken()
        try:
            account_id = int(account_id)
        except ValueError as exc:
            raise InvalidOrExpiredToken() from exc

        account = await self._store.get_active_account(account_id)
        if account is None or not account.active:
            raise InactiveOrUnknownAccount()
        return account


def authorize_role(account: Account, allowed_roles: Iterable[Role]) -> Role:
    """Check ``account.role`` against an allow-list.

    An empty allow-list admits any authenticated account.
    """
    allowed = frozenset(allowed_roles)
    if allowed and account.role not in allowed:
        raise InsufficientRole(
            required=[role.value for role in allowed],
            actual=account.role.value,
        )
    return account.role


@dataclass(frozen=True, slots=True)
class ScopeGrant:
    """Why a scope check passed; ``basis`` is one of the class constants."""

    UNRESTRICTED = "unrestricted"
    UNSPECIFIED = "unspecified"
    VERIFIED = "verified"
    NOT_APPLICABLE = "not_applicable"

    role: Role
    basis: str
    entity_kind: EntityKind | None = None
    entity_id: int | None = None


class ScopeResolver:
    """Applies role-specific ownership rules to a single entity reference."""

    def __init__(self, store: AuthorizationStore, *, enforce_membership: bool = False) -> None:
        self._store = store
        self._enforce_membership = enforce_membership

    async def resolve(self, account: Account, reference: EntityReference | None) -> ScopeGrant:
        role = account.role
        kind = reference.kind if reference else None
        entity_id = reference.entity_id if reference else None

        match role:
            case Role.system_admin:
                return ScopeGrant(role, ScopeGrant.UNRESTRICTED, kind, entity_id)
            case Role.real_estate_admin:
                if kind is not EntityKind.real_estate:
                    return ScopeGrant(role, ScopeGrant.NOT_APPLICABLE, kind, entity_id)
                if entity_id is None:
                    return ScopeGrant(role, ScopeGrant.UNSPECIFIED, kind)
                if not await self._real_estate_visible(account, entity_id):
                    raise ScopeDenied(role.value, kind.value, entity_id)
                return ScopeGrant(role, ScopeGrant.VERIFIED, kind, entity_id)
            case Role.seller:
                if kind is not EntityKind.client:
                    return ScopeGrant(role, ScopeGrant.NOT_APPLICABLE, kind, entity_id)
                if entity_id is None:
                    return ScopeGrant(role, ScopeGrant.UNSPECIFIED, kind)
                if not await self._store.client_assigned_to_seller(entity_id, account.account_id):
                    raise ScopeDenied(role.value, kind.value, entity_id)
                return ScopeGrant(role, ScopeGrant.VERIFIED, kind, entity_id)
            case Role.client:
                # Self-service endpoints filter by account id in the data layer.
                return ScopeGrant(role, ScopeGrant.NOT_APPLICABLE, kind, entity_id)
            case _:
                assert_never(role)

    async def _real_estate_visible(self, account: Account, real_estate_id: int) -> bool:
        if self._enforce_membership:
            return await self._store.is_real_estate_member(real_estate_id, account.account_id)
        return await self._store.real_estate_exists(real_estate_id)


class PipelineState(str, Enum):
    unauthenticated = "unauthenticated"
    authenticated = "authenticated"
    role_checked = "role_checked"
    scope_checked = "scope_checked"
    admitted = "admitted"
    rejected = "rejected"


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    """Explicit per-request identity handed to route handlers."""

    account: Account
    grant: ScopeGrant

    @property
    def account_id(self) -> int:
        return self.account.account_id

    @property
    def role(self) -> Role:
        return self.account.role


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    state: PipelineState
    context: AuthorizationContext | None = None
    failure: AuthenticationError | AuthorizationError | None = None
    # Last state reached before a rejection.
    rejected_at: PipelineState | None = None

    @property
    def admitted(self) -> bool:
        return self.state is PipelineState.admitted


class RequestPipeline:
    """Runs credential, role and scope checks in sequence."""

    def __init__(self, verifier: CredentialVerifier, scope_resolver: ScopeResolver) -> None:
        self._verifier = verifier
        self._scope_resolver = scope_resolver

    async def evaluate(
        self,
        authorization: str | None,
        allowed_roles: Iterable[Role] = (),
        reference: EntityReference | None = None,
    ) -> PipelineOutcome:
        """Return the terminal outcome for one request without raising on rejection.

        Lookup errors are not rejections; they propagate unchanged.
        """
        state = PipelineState.unauthenticated
        try:
            account = await self._verifier.verify(authorization)
            state = PipelineState.authenticated

            authorize_role(account, allowed_roles)
            state = PipelineState.role_checked

            grant = await self._scope_resolver.resolve(account, reference)
            state = PipelineState.scope_checked
        except (AuthenticationError, AuthorizationError) as exc:
            logger.info("request rejected at %s: %s", state.value, exc.error_code)
            return PipelineOutcome(PipelineState.rejected, failure=exc, rejected_at=state)

        return PipelineOutcome(PipelineState.admitted, context=AuthorizationContext(account, grant))

    async def admit(
        self,
        authorization: str | None,
        allowed_roles: Iterable[Role] = (),
        reference: EntityReference | None = None,
    ) -> AuthorizationContext:
        """Like :meth:`evaluate` but raises the rejection reason."""
        outcome = await self.evaluate(authorization, allowed_roles, reference)
        if outcome.failure is not None:
            raise outcome.failure
        assert outcome.context is not None
        return outcome.context
