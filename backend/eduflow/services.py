"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and validation. Services raise the domain errors from `errors`; the
FastAPI layer maps those onto status codes.

- `AuthService`: credential store (register + verify).
- `TokenAuthority`: issues, resolves and revokes opaque bearer tokens.
- `CrudService`: the generic create/edit, delete and find algorithm,
  parameterized by an `EntityDescriptor`.
"""

import hashlib
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import BadRequest, Conflict, Unauthorized
from .registry import EntityDescriptor, FieldType
from .schemas import INT32_MAX, INT32_MIN, DeleteIn, parse_iso_date, payload_model_for

PWD_CTX = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=settings.ARGON2_TIME_COST,
    argon2__memory_cost=settings.ARGON2_MEMORY_COST,
)
TOKEN_TTL = timedelta(days=14)
TOKEN_BYTES = 32

_DECIMAL_INT = re.compile(r"-?[0-9]+")

logger = logging.getLogger("eduflow.auth")
crud_logger = logging.getLogger("eduflow.crud")


def utcnow() -> datetime:
    return models.utcnow()


def hash_token(token: str) -> str:
    """Digest stored in place of the token value."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """Authentication related operations (register + verify)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str) -> int:
        """Create a new user with a freshly salted argon2 hash.

        Returns the new user id, or raises `Conflict` when the username
        is already registered.
        """
        if self.user_repo.get_by_username(username) is not None:
            raise Conflict()
        hashed = PWD_CTX.hash(password)
        try:
            user = self.user_repo.create(models.User(username=username, password_hash=hashed))
        except IntegrityError as exc:
            # lost a race against a concurrent registration
            raise Conflict() from exc
        logger.info("registered user id=%s", user.id)
        return user.id

    def verify(self, username: str, password: str) -> int:
        """Return the user id for valid credentials, else raise `Unauthorized`."""
        user = self.user_repo.get_by_username(username)
        if user is None:
            # keep timing similar to a real verification
            PWD_CTX.dummy_verify()
            logger.warning("login rejected: unknown user")
            raise Unauthorized()
        if not PWD_CTX.verify(password, user.password_hash):
            logger.warning("login rejected: bad password for user id=%s", user.id)
            raise Unauthorized()
        return user.id


class TokenAuthority:
    """Issue, resolve and revoke bearer tokens.

    A token moves from valid to expired (time based) or revoked
    (logout), and never comes back. Expiry is checked lazily on every
    `resolve`; rows are purged separately by the sweeper.
    """
    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        self.session = session
        self.token_repo = repositories.TokenRepository(session)
        self.clock = clock or utcnow

    def issue(self, user_id: int) -> str:
        token = secrets.token_urlsafe(TOKEN_BYTES)
        now = self.clock()
        self.token_repo.create(models.SessionToken(
            token_hash=hash_token(token),
            user_id=user_id,
            issued_at=now,
            expires_at=now + TOKEN_TTL,
        ))
        logger.info("issued token for user id=%s", user_id)
        return token

    def resolve(self, token: str) -> int:
        """Return the owning user id, or raise `Unauthorized`.

        Unknown, revoked and expired tokens fail identically.
        """
        record = self.token_repo.get_by_hash(hash_token(token))
        if record is None or record.revoked or self.clock() >= record.expires_at:
            raise Unauthorized()
        return record.user_id

    def revoke(self, token: str) -> bool:
        """Revoke `token`; returns False when nothing changed."""
        changed = self.token_repo.revoke(hash_token(token), self.clock())
        if changed:
            logger.info("revoked token")
        return changed

    def purge_expired(self) -> int:
        return self.token_repo.purge(self.clock())


@dataclass(frozen=True)
class MutationResult:
    """Outcome of an edit or delete.

    `applied` is False when no owned row matched the id. The HTTP layer
    reports success either way.
    """
    id: int
    applied: bool


def _validate(model, payload: Any) -> BaseModel:
    if not isinstance(payload, dict):
        raise BadRequest("expected a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in exc.errors()})
        raise BadRequest("invalid fields: " + ", ".join(fields)) from exc


def _parse_filter_value(field_type: FieldType, raw: str):
    if field_type is FieldType.INT:
        if not _DECIMAL_INT.fullmatch(raw):
            raise ValueError("expected a decimal integer")
        value = int(raw)
        if not INT32_MIN <= value <= INT32_MAX:
            raise ValueError("out of int32 range")
        return value
    if field_type is FieldType.DATE:
        return parse_iso_date(raw)
    if field_type is FieldType.BOOL:
        lowered = raw.lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValueError("expected true or false")
    return raw


class CrudService:
    """Generic owner-scoped CRUD over any registered entity type."""
    def __init__(self, session: Session):
        self.session = session

    def _repo(self, descriptor: EntityDescriptor) -> repositories.EntityRepository:
        return repositories.EntityRepository(self.session, descriptor)

    def create_or_update(self, descriptor: EntityDescriptor, owner_id: int, payload: Any) -> MutationResult:
        """Insert when `id` is absent/null, otherwise replace the owned row.

        Editing an id that does not exist or belongs to another user
        changes nothing and still reports the given id. Parent ids
        such as `course_id` are stored without checking the parent.
        """
        data = _validate(payload_model_for(descriptor), payload)
        values = {name: getattr(data, name) for name in descriptor.field_names}
        record_id = getattr(data, descriptor.id_column)
        repo = self._repo(descriptor)
        if record_id is None:
            new_id = repo.insert(owner_id, values)
            crud_logger.info("created %s id=%s owner=%s", descriptor.name, new_id, owner_id)
            return MutationResult(id=new_id, applied=True)
        applied = repo.update(owner_id, record_id, values)
        if applied:
            crud_logger.info("updated %s id=%s owner=%s", descriptor.name, record_id, owner_id)
        else:
            crud_logger.info("edit of %s id=%s owner=%s matched no row", descriptor.name, record_id, owner_id)
        return MutationResult(id=record_id, applied=applied)

    def delete(self, descriptor: EntityDescriptor, owner_id: int, record_id: int) -> MutationResult:
        """Delete the owned row if present; succeeds either way."""
        applied = self._repo(descriptor).delete(owner_id, record_id)
        crud_logger.info("delete %s id=%s owner=%s applied=%s", descriptor.name, record_id, owner_id, applied)
        return MutationResult(id=record_id, applied=applied)

    def delete_payload(self, descriptor: EntityDescriptor, owner_id: int, payload: Any) -> MutationResult:
        """Validate a `{id}` request body and delete."""
        data = _validate(DeleteIn, payload)
        return self.delete(descriptor, owner_id, data.id)

    def find(self, descriptor: EntityDescriptor, owner_id: int, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Return owned records matching every non-null filter exactly."""
        allowed = descriptor.filter_types()
        unknown = sorted(set(filters) - set(allowed))
        if unknown:
            raise BadRequest("unknown filter: " + ", ".join(unknown))
        rows = self._repo(descriptor).select(owner_id, filters)
        columns = (descriptor.id_column,) + descriptor.field_names
        return [{name: getattr(row, name) for name in columns} for row in rows]

    def parse_filters(self, descriptor: EntityDescriptor, params: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
        """Convert raw query parameters into typed filter values.

        Absent parameters impose no constraint. Unknown, repeated or
        unparsable parameters raise `BadRequest`.
        """
        allowed = descriptor.filter_types()
        filters: Dict[str, Any] = {}
        for name, raw in params:
            if name not in allowed:
                raise BadRequest(f"unknown filter: {name}")
            if name in filters:
                raise BadRequest(f"repeated filter: {name}")
            try:
                filters[name] = _parse_filter_value(allowed[name], raw)
            except ValueError as exc:
                raise BadRequest(f"invalid value for filter: {name}") from exc
        return filters
