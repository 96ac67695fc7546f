"""
Declarative schema definitions.

A ``SchemaDefinition`` is an ordered registry of ``FieldDescriptor`` strategy
objects, one per attribute of a resource type. Each descriptor carries the
accessors that move a value between the generic attribute set and the
resource model (create path), the patch operations (update path) and back
(read path), together with flags describing what the attribute allows.

Built once per resource type and connector session, then shared read-only.

Example:
    sb = SchemaDefinition.builder("User")
    sb.add_uid("userId", Types.STRING_CASE_IGNORE,
               read=lambda m: m.id, fetch_field="id",
               flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE))
    sb.add_name("userName", Types.STRING,
                create=set_user_name, update=replace("userName"),
                read=lambda m: m.user_name, flags=(Flags.REQUIRED,))
    schema = sb.build()
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from scimbridge.core.errors import InvalidDeclarationError
from scimbridge.models.objects import NAME_NAME, UID_NAME


class Types(str, Enum):
    """Semantic type of an attribute value"""

    STRING = "string"
    STRING_CASE_IGNORE = "string_case_ignore"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    UUID = "uuid"


class Flags(str, Enum):
    NOT_CREATABLE = "not_creatable"
    NOT_UPDATABLE = "not_updatable"
    REQUIRED = "required"
    MULTI_VALUED = "multi_valued"
    NOT_RETURNED_BY_DEFAULT = "not_returned_by_default"


class AttributeInfo(BaseModel):
    """Introspection view of one descriptor"""

    model_config = ConfigDict(frozen=True)

    name: str
    native_name: str
    type: Types
    multi_valued: bool
    required: bool
    creatable: bool
    updatable: bool
    returned_by_default: bool


class FieldDescriptor(BaseModel):
    """
    Strategy object for one attribute.

    ``create(value, model)`` writes into a resource model,
    ``update(value, patch)`` compiles a single-valued delta,
    ``add(values, patch)`` / ``remove(values, patch)`` compile a multi-valued
    delta, and ``read(model)`` projects the current value back out.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    native_name: str
    type: Types
    create: Optional[Callable[[Any, Any], None]] = None
    update: Optional[Callable[[Any, Any], None]] = None
    add: Optional[Callable[[List[Any], Any], None]] = None
    remove: Optional[Callable[[List[Any], Any], None]] = None
    read: Optional[Callable[[Any], Any]] = None
    fetch_field: Optional[str] = None
    flags: FrozenSet[Flags] = frozenset()
    # Values applied on create when the attribute is not supplied
    default: Optional[Tuple[Any, ...]] = None

    @property
    def is_multiple(self) -> bool:
        return Flags.MULTI_VALUED in self.flags

    @property
    def is_required(self) -> bool:
        return Flags.REQUIRED in self.flags

    @property
    def is_creatable(self) -> bool:
        return Flags.NOT_CREATABLE not in self.flags and self.create is not None

    @property
    def is_updatable(self) -> bool:
        if Flags.NOT_UPDATABLE in self.flags:
            return False
        if self.is_multiple:
            return self.add is not None or self.remove is not None
        return self.update is not None

    @property
    def is_returned_by_default(self) -> bool:
        return Flags.NOT_RETURNED_BY_DEFAULT not in self.flags

    @property
    def backend_field(self) -> str:
        """Name of the field fetched from the directory for this attribute."""
        return self.fetch_field or self.native_name

    def info(self) -> AttributeInfo:
        return AttributeInfo(
            name=self.name,
            native_name=self.native_name,
            type=self.type,
            multi_valued=self.is_multiple,
            required=self.is_required,
            creatable=self.is_creatable,
            updatable=self.is_updatable,
            returned_by_default=self.is_returned_by_default,
        )


class SchemaDefinition:
    """Immutable, ordered set of field descriptors for one resource type."""

    def __init__(
        self,
        object_class: str,
        descriptors: Tuple[FieldDescriptor, ...],
        uid: FieldDescriptor,
        name: FieldDescriptor,
    ):
        self._object_class = object_class
        self._descriptors = descriptors
        self._by_name = MappingProxyType({d.name: d for d in descriptors})
        self._uid = uid
        self._name = name

    @staticmethod
    def builder(object_class: str) -> "SchemaBuilder":
        return SchemaBuilder(object_class)

    @property
    def object_class(self) -> str:
        return self._object_class

    @property
    def attributes(self) -> Tuple[FieldDescriptor, ...]:
        return self._descriptors

    @property
    def uid(self) -> FieldDescriptor:
        return self._uid

    @property
    def name(self) -> FieldDescriptor:
        return self._name

    def get(self, name: str) -> Optional[FieldDescriptor]:
        return self._by_name.get(name)

    def is_multiple(self, name: str) -> bool:
        descriptor = self.get(name)
        return descriptor is not None and descriptor.is_multiple

    def returned_by_default(self) -> List[FieldDescriptor]:
        return [d for d in self._descriptors if d.is_returned_by_default]

    def attribute_infos(self) -> List[AttributeInfo]:
        return [d.info() for d in self._descriptors]

    def __repr__(self) -> str:
        return f"SchemaDefinition({self._object_class!r}, {[d.name for d in self._descriptors]!r})"


class SchemaBuilder:
    """Collects descriptors in registration order and validates them on build."""

    def __init__(self, object_class: str):
        self.object_class = object_class
        self._descriptors: List[FieldDescriptor] = []
        self._names: Dict[str, FieldDescriptor] = {}
        self._uid: Optional[FieldDescriptor] = None
        self._name: Optional[FieldDescriptor] = None

    def add_uid(
        self,
        native_name: str,
        type: Types,
        create: Optional[Callable[[Any, Any], None]] = None,
        read: Optional[Callable[[Any], Any]] = None,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flags] = (),
    ) -> FieldDescriptor:
        if self._uid is not None:
            raise InvalidDeclarationError(f"{self.object_class}: UID is already declared")
        if read is None:
            raise InvalidDeclarationError(f"{self.object_class}: UID must be readable")
        self._uid = self._register(
            UID_NAME, native_name, type, create=create, read=read,
            fetch_field=fetch_field, flags=flags,
        )
        return self._uid

    def add_name(
        self,
        native_name: str,
        type: Types,
        create: Optional[Callable[[Any, Any], None]] = None,
        update: Optional[Callable[[Any, Any], None]] = None,
        read: Optional[Callable[[Any], Any]] = None,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flags] = (),
    ) -> FieldDescriptor:
        if self._name is not None:
            raise InvalidDeclarationError(f"{self.object_class}: NAME is already declared")
        if read is None:
            raise InvalidDeclarationError(f"{self.object_class}: NAME must be readable")
        self._name = self._register(
            NAME_NAME, native_name, type, create=create, update=update, read=read,
            fetch_field=fetch_field, flags=flags,
        )
        return self._name

    def add(
        self,
        name: str,
        type: Types,
        create: Optional[Callable[[Any, Any], None]] = None,
        update: Optional[Callable[[Any, Any], None]] = None,
        read: Optional[Callable[[Any], Any]] = None,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flags] = (),
        default: Optional[Iterable[Any]] = None,
    ) -> FieldDescriptor:
        flags = frozenset(flags)
        if Flags.MULTI_VALUED in flags:
            raise InvalidDeclarationError(
                f"{self.object_class}.{name}: use add_as_multiple for multi-valued attributes"
            )
        return self._register(
            name, name, type, create=create, update=update, read=read,
            fetch_field=fetch_field, flags=flags, default=default,
        )

    def add_as_multiple(
        self,
        name: str,
        type: Types,
        create: Optional[Callable[[List[Any], Any], None]] = None,
        add: Optional[Callable[[List[Any], Any], None]] = None,
        remove: Optional[Callable[[List[Any], Any], None]] = None,
        read: Optional[Callable[[Any], Any]] = None,
        fetch_field: Optional[str] = None,
        flags: Iterable[Flags] = (),
        default: Optional[Iterable[Any]] = None,
    ) -> FieldDescriptor:
        return self._register(
            name, name, type, create=create, add=add, remove=remove, read=read,
            fetch_field=fetch_field, flags=frozenset(flags) | {Flags.MULTI_VALUED},
            default=default,
        )

    def _register(self, name: str, native_name: str, type: Types, flags: Iterable[Flags] = (),
                  default: Optional[Iterable[Any]] = None, **accessors: Any) -> FieldDescriptor:
        for key in {name, native_name}:
            if key in self._names:
                raise InvalidDeclarationError(
                    f"{self.object_class}: attribute '{key}' is declared twice"
                )
        writable = any(accessors.get(k) is not None for k in ("create", "update", "add", "remove"))
        if not writable and accessors.get("read") is None:
            raise InvalidDeclarationError(
                f"{self.object_class}.{name}: attribute has no accessor"
            )

        descriptor = FieldDescriptor(
            name=name,
            native_name=native_name,
            type=type,
            flags=frozenset(flags),
            default=tuple(default) if default is not None else None,
            **accessors,
        )
        self._descriptors.append(descriptor)
        self._names[name] = descriptor
        self._names[native_name] = descriptor
        return descriptor

    def build(self) -> SchemaDefinition:
        if self._uid is None:
            raise InvalidDeclarationError(f"{self.object_class}: UID is not declared")
        if self._name is None:
            raise InvalidDeclarationError(f"{self.object_class}: NAME is not declared")
        return SchemaDefinition(self.object_class, tuple(self._descriptors), self._uid, self._name)
