"""
Record-type descriptors.

A RecordSchema lists the persisted fields of a record type in declaration
order, which of them are excluded from generated column lists, and who
assigns the identity value. Schemas are built once per type, either by
reflecting a dataclass with describe() or by registering an explicit
descriptor with register_schema().

    @dataclass
    class User:
        Id: uuid.UUID
        FirstName: str
        LastName: str
        CreatedAt: datetime | None = ignored(default=None)
"""

import dataclasses
import enum
import types
import typing
import uuid
from dataclasses import dataclass
from typing import Any, Iterable

from genrepo.errors import MalformedQueryError

IDENTITY_FIELD = "Id"
IGNORE = "ignore"

# Identity types whose values are supplied by the caller before insert
CLIENT_IDENTITY_TYPES = (uuid.UUID, str)


class IdentityPolicy(enum.Enum):
    CLIENT_SUPPLIED = "client_supplied"
    SERVER_GENERATED = "server_generated"

    @classmethod
    def for_type(cls, identity_type: Any) -> "IdentityPolicy":
        """Pick the policy from the identity field's declared type."""
        # Optional[X] / X | None count as X
        args = [a for a in typing.get_args(identity_type) if a is not type(None)]
        if len(args) == 1 and typing.get_origin(identity_type) in (typing.Union, types.UnionType):
            identity_type = args[0]
        if isinstance(identity_type, type) and issubclass(identity_type, CLIENT_IDENTITY_TYPES):
            return cls.CLIENT_SUPPLIED
        return cls.SERVER_GENERATED


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: Any = None
    ignored: bool = False
    init: bool = True


@dataclass(frozen=True)
class RecordSchema:
    record_type: type
    fields: tuple[FieldSpec, ...]
    identity: IdentityPolicy

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def identity_field(self) -> FieldSpec | None:
        for f in self.fields:
            if f.name == IDENTITY_FIELD:
                return f
        return None

    def validate(self) -> None:
        """
        Check that this schema can produce well-formed statements.

        Raises:
            MalformedQueryError: no fields, no identity field, an ignored
                identity field, or nothing to write besides the identity
        """
        name = self.record_type.__name__
        if not self.fields:
            raise MalformedQueryError(f"{name} declares no fields")
        identity = self.identity_field()
        if identity is None:
            raise MalformedQueryError(f"{name} has no '{IDENTITY_FIELD}' field")
        if identity.ignored:
            raise MalformedQueryError(f"{name}.{IDENTITY_FIELD} cannot be ignored")
        if not any(not f.ignored and f.name != IDENTITY_FIELD for f in self.fields):
            raise MalformedQueryError(f"{name} has no writable fields besides '{IDENTITY_FIELD}'")

    def to_record(self, row: dict[str, Any]) -> Any:
        """
        Build a record from a result row, ignoring undeclared columns.

        Fields declared with init=False are set on the record after it is
        constructed.
        """
        record = self.record_type(
            **{f.name: row[f.name] for f in self.fields if f.init and f.name in row}
        )
        for f in self.fields:
            if not f.init and f.name in row:
                setattr(record, f.name, row[f.name])
        return record

    def to_params(self, record: Any) -> dict[str, Any]:
        """Read every declared field of a record into a parameter mapping."""
        return {k: getattr(record, k) for k in self.field_names}


def ignored(**kwargs) -> Any:
    """dataclasses.field() that keeps the field out of insert/update lists."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[IGNORE] = True
    return dataclasses.field(metadata=metadata, **kwargs)


_registry: dict[type, RecordSchema] = {}


def register_schema(
    record_type: type,
    fields: Iterable[FieldSpec],
    identity: IdentityPolicy | None = None,
) -> RecordSchema:
    """
    Register an explicit descriptor for a record type.

    Use this for record types that are not dataclasses, or to override
    what reflection would produce. When identity is omitted it is derived
    from the type of the 'Id' field.
    """
    fields = tuple(fields)
    if identity is None:
        id_type = next((f.type for f in fields if f.name == IDENTITY_FIELD), None)
        identity = IdentityPolicy.for_type(id_type)
    schema = RecordSchema(record_type=record_type, fields=fields, identity=identity)
    _registry[record_type] = schema
    return schema


def unregister_schema(record_type: type) -> None:
    _registry.pop(record_type, None)


def describe(record_type: type) -> RecordSchema:
    """
    Return the schema for a record type, reflecting it on first use.

    Raises:
        MalformedQueryError: if the type is neither registered nor a dataclass
    """
    if record_type in _registry:
        return _registry[record_type]

    if not dataclasses.is_dataclass(record_type):
        raise MalformedQueryError(
            f"{record_type!r} is not a dataclass; register a schema for it explicitly"
        )

    hints = typing.get_type_hints(record_type)
    fields = [
        FieldSpec(
            name=f.name,
            type=hints.get(f.name, f.type),
            ignored=bool(f.metadata.get(IGNORE, False)),
            init=f.init,
        )
        for f in dataclasses.fields(record_type)
    ]
    return register_schema(record_type, fields)
