"""Static registry of the entity types served under `/data/{entity}`.

Each supported entity is described once by an `EntityDescriptor`: the
SQLModel table it lives in, the owner column used to scope every query,
and the ordered list of payload fields with their wire types. The
generic CRUD engine in `services` works only through these descriptors,
so adding an entity type means adding a model and one entry below.

The registry is built at import time and never mutated.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Optional, Tuple, Type

from sqlmodel import SQLModel

from . import models


class FieldType(str, Enum):
    INT = "int"
    STR = "str"
    DATE = "date"
    BOOL = "bool"


@dataclass(frozen=True)
class FieldSpec:
    """A payload field: name, wire type, and whether it may be filtered on."""
    name: str
    type: FieldType
    filterable: bool = True


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    model: Type[SQLModel]
    fields: Tuple[FieldSpec, ...]
    owner_column: str = "user_id"
    id_column: str = "id"

    @property
    def table(self) -> str:
        return self.model.__tablename__

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def filter_types(self) -> dict:
        """Map each filterable column (id included) to its `FieldType`."""
        out = {self.id_column: FieldType.INT}
        out.update({f.name: f.type for f in self.fields if f.filterable})
        return out


_DESCRIPTORS = (
    EntityDescriptor(
        name="course",
        model=models.Course,
        fields=(FieldSpec("name", FieldType.STR),),
    ),
    EntityDescriptor(
        name="topic",
        model=models.Topic,
        fields=(
            FieldSpec("course_id", FieldType.INT),
            FieldSpec("name", FieldType.STR),
            FieldSpec("details", FieldType.STR, filterable=False),
        ),
    ),
    EntityDescriptor(
        name="study_goal",
        model=models.StudyGoal,
        fields=(
            FieldSpec("topic_id", FieldType.INT),
            FieldSpec("deadline", FieldType.DATE),
        ),
    ),
    EntityDescriptor(
        name="exam",
        model=models.Exam,
        fields=(
            FieldSpec("course_id", FieldType.INT),
            FieldSpec("name", FieldType.STR),
            FieldSpec("date", FieldType.DATE),
        ),
    ),
    EntityDescriptor(
        name="todo",
        model=models.Todo,
        fields=(
            FieldSpec("name", FieldType.STR),
            FieldSpec("deadline", FieldType.DATE),
            FieldSpec("details", FieldType.STR, filterable=False),
            FieldSpec("completed", FieldType.BOOL),
        ),
    ),
)

REGISTRY = MappingProxyType({d.name: d for d in _DESCRIPTORS})


def descriptor_for(name: str) -> Optional[EntityDescriptor]:
    """Return the descriptor registered under `name`, or `None`."""
    return REGISTRY.get(name)


def entity_names() -> Tuple[str, ...]:
    return tuple(REGISTRY)
