"""Authentication gate for FastAPI routes.

This module provides the FastAPI dependency `get_current_principal`
that reads the bearer token through `HTTPBearer`, resolves it
through the `TokenAuthority` and returns the identity every data route
is scoped by. It is the single place tokens are checked.

A missing header, a scheme other than `Bearer`, and an unknown, expired
or revoked token all raise the same `Unauthorized` error.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from .database import engine
from .errors import Unauthorized
from . import services

logger = logging.getLogger("eduflow.auth")

# auto_error=False so a missing header fails like every other bad token
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller: owner id plus the token it presented."""
    user_id: int
    token: str


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    """Return the single token carried by `Authorization: Bearer <token>`."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized()
    token = credentials.credentials
    if not token or token != token.strip() or " " in token:
        raise Unauthorized()
    return token


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Principal:
    """FastAPI dependency returning the authenticated `Principal`.

    Token resolution runs in its own short session so it is independent
    of the request's data transaction.
    """
    token = bearer_token(credentials)
    with Session(engine) as session:
        try:
            user_id = services.TokenAuthority(session).resolve(token)
        except Unauthorized:
            logger.warning("rejected bearer token")
            raise
    return Principal(user_id=user_id, token=token)
