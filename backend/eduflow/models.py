"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Every study entity row carries the id of the `User` owning it in
`user_id`; parent references such as `Topic.course_id` are plain integer
columns without a foreign key, so a dangling parent id is stored as-is.

Timestamps are naive UTC datetimes in plain `DateTime` columns because
SQLite drops tzinfo on the way back out.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def utcnow() -> dt.datetime:
    """Current UTC time as a naive datetime."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique, case-sensitive login name
    - `password_hash`: self-describing argon2 hash string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: dt.datetime = Field(default_factory=utcnow, sa_type=DateTime)


class SessionToken(SQLModel, table=True):
    """A bearer token issued at login or registration.

    Only the SHA-256 digest of the token value is stored. A token is
    usable while `revoked` is false and the current time is before
    `expires_at`.
    """
    __tablename__ = "session_token"

    id: Optional[int] = Field(default=None, primary_key=True)
    token_hash: str = Field(index=True, unique=True, nullable=False)
    user_id: int = Field(foreign_key="user.id", index=True)
    issued_at: dt.datetime = Field(sa_type=DateTime)
    expires_at: dt.datetime = Field(index=True, sa_type=DateTime)
    revoked: bool = False
    revoked_at: Optional[dt.datetime] = Field(default=None, sa_type=DateTime)


class Course(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str


class Topic(SQLModel, table=True):
    """A topic inside a course."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(index=True)
    name: str
    details: str


class StudyGoal(SQLModel, table=True):
    """A deadline for finishing a topic."""
    __tablename__ = "study_goal"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    topic_id: int = Field(index=True)
    deadline: dt.date


class Exam(SQLModel, table=True):
    """A dated exam belonging to a course."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(index=True)
    name: str
    date: dt.date


class Todo(SQLModel, table=True):
    """A free-standing todo item."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str
    deadline: dt.date
    details: str
    completed: bool = False
