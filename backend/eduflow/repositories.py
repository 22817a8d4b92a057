"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
session tokens, owned entities). Repositories return SQLModel objects
and commit once per mutation, so every operation is its own
transaction. Store errors roll the session back and surface as
`StoreFailure`.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .errors import StoreFailure
from .registry import EntityDescriptor

logger = logging.getLogger("eduflow.store")


@contextmanager
def _store_errors(session: Session, operation: str):
    try:
        yield
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("store operation failed: %s", operation, exc_info=True)
        raise StoreFailure() from exc


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance.

        Raises `IntegrityError` when the username is already taken.
        """
        with _store_errors(self.session, "user.create"):
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        with _store_errors(self.session, "user.get_by_username"):
            stmt = select(models.User).where(models.User.username == username)
            return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        with _store_errors(self.session, "user.get"):
            return self.session.get(models.User, user_id)


class TokenRepository:
    """Persistence for `SessionToken` rows, keyed by token hash."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, token: models.SessionToken) -> models.SessionToken:
        with _store_errors(self.session, "token.create"):
            self.session.add(token)
            self.session.commit()
            self.session.refresh(token)
        return token

    def get_by_hash(self, token_hash: str) -> Optional[models.SessionToken]:
        with _store_errors(self.session, "token.get_by_hash"):
            stmt = select(models.SessionToken).where(models.SessionToken.token_hash == token_hash)
            return self.session.exec(stmt).first()

    def revoke(self, token_hash: str, now: datetime) -> bool:
        """Mark the token revoked; return False if unknown or already revoked."""
        with _store_errors(self.session, "token.revoke"):
            token = self.session.exec(
                select(models.SessionToken).where(models.SessionToken.token_hash == token_hash)
            ).first()
            if token is None or token.revoked:
                return False
            token.revoked = True
            token.revoked_at = now
            self.session.add(token)
            self.session.commit()
            return True

    def purge(self, now: datetime) -> int:
        """Delete revoked tokens and tokens expired at `now`; return the count."""
        with _store_errors(self.session, "token.purge"):
            dead = self.session.exec(
                select(models.SessionToken).where(
                    or_(models.SessionToken.revoked == True,  # noqa: E712
                        models.SessionToken.expires_at <= now)
                )
            ).all()
            for token in dead:
                self.session.delete(token)
            self.session.commit()
            return len(dead)


class EntityRepository:
    """Owner-scoped CRUD for the table behind one `EntityDescriptor`.

    Every method takes `owner_id` as a required argument and every
    statement filters on the owner column, so a row belonging to another
    user is never read or written.
    """
    def __init__(self, session: Session, descriptor: EntityDescriptor):
        self.session = session
        self.descriptor = descriptor
        self.model = descriptor.model

    def _column(self, name: str):
        return getattr(self.model, name)

    def _owned(self, owner_id: int):
        if owner_id is None:
            raise ValueError("owner_id is required for every entity query")
        return select(self.model).where(self._column(self.descriptor.owner_column) == owner_id)

    def _get_owned(self, owner_id: int, record_id: int):
        stmt = self._owned(owner_id).where(self._column(self.descriptor.id_column) == record_id)
        return self.session.exec(stmt).first()

    def insert(self, owner_id: int, values: Mapping[str, Any]) -> int:
        """Insert a new row owned by `owner_id` and return its id."""
        if owner_id is None:
            raise ValueError("owner_id is required for every entity query")
        row = self.model(**dict(values), **{self.descriptor.owner_column: owner_id})
        with _store_errors(self.session, f"{self.descriptor.table}.insert"):
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return getattr(row, self.descriptor.id_column)

    def update(self, owner_id: int, record_id: int, values: Mapping[str, Any]) -> bool:
        """Replace every field of the owned row; False if no row matched."""
        with _store_errors(self.session, f"{self.descriptor.table}.update"):
            row = self._get_owned(owner_id, record_id)
            if row is None:
                return False
            for name, value in values.items():
                setattr(row, name, value)
            self.session.add(row)
            self.session.commit()
            return True

    def delete(self, owner_id: int, record_id: int) -> bool:
        """Delete the owned row; False if no row matched."""
        with _store_errors(self.session, f"{self.descriptor.table}.delete"):
            row = self._get_owned(owner_id, record_id)
            if row is None:
                return False
            self.session.delete(row)
            self.session.commit()
            return True

    def select(self, owner_id: int, filters: Mapping[str, Any]) -> List[Any]:
        """Return owned rows whose columns equal every non-null filter value."""
        stmt = self._owned(owner_id)
        for name, value in filters.items():
            if value is not None:
                stmt = stmt.where(self._column(name) == value)
        stmt = stmt.order_by(self._column(self.descriptor.id_column))
        with _store_errors(self.session, f"{self.descriptor.table}.select"):
            return list(self.session.exec(stmt).all())
