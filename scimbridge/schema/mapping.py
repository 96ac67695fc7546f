"""
Attribute mapping engine.

Moves values between generic attribute sets and resource models using the
descriptors of a ``SchemaDefinition``:

    apply               generic attributes -> fresh resource model (create / replace)
    apply_delta         attribute deltas   -> patch operations (update)
    to_connector_object resource model     -> generic attributes (read)
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from scimbridge.core.errors import InvalidAttributeValueError, UpstreamFailure
from scimbridge.models.objects import (
    NAME_NAME,
    UID_NAME,
    Attribute,
    AttributeDelta,
    ConnectorObject,
)
from scimbridge.models.patch import PatchOperations
from scimbridge.schema.definition import FieldDescriptor, SchemaDefinition


def _descriptor_for(schema: SchemaDefinition, name: str) -> FieldDescriptor:
    descriptor = schema.get(name)
    if descriptor is None:
        raise InvalidAttributeValueError(
            f"Invalid attribute '{name}' for {schema.object_class}", name
        )
    return descriptor


def _write(descriptor: FieldDescriptor, values: List[Any], model: Any) -> None:
    if descriptor.is_multiple:
        descriptor.create(list(values), model)
        return
    if len(values) > 1:
        raise InvalidAttributeValueError(
            f"Attribute '{descriptor.name}' is single-valued but got {len(values)} values",
            descriptor.name,
        )
    descriptor.create(values[0], model)


def apply(schema: SchemaDefinition, attributes: Iterable[Attribute], model: Any, creating: bool = True) -> Any:
    """
    Write a generic attribute set onto a fresh resource model.

    Args:
        schema: Schema of the resource type
        attributes: Supplied attributes
        model: Fresh resource model to populate
        creating: True for create, False for a full replace

    Returns:
        The populated model

    Raises:
        InvalidAttributeValueError: Unknown, read-only or missing required attribute
    """
    supplied: Dict[str, Attribute] = {}
    for attribute in attributes:
        descriptor = _descriptor_for(schema, attribute.name)
        allowed = descriptor.is_creatable if creating else descriptor.is_updatable
        if not allowed or descriptor.create is None:
            operation = "created" if creating else "replaced"
            raise InvalidAttributeValueError(
                f"Attribute '{attribute.name}' of {schema.object_class} cannot be {operation}",
                attribute.name,
            )
        supplied[descriptor.name] = attribute

    for descriptor in schema.attributes:
        attribute = supplied.get(descriptor.name)
        if attribute is not None and attribute.value:
            _write(descriptor, attribute.value, model)
        elif descriptor.default is not None and descriptor.create is not None:
            _write(descriptor, list(descriptor.default), model)
        elif descriptor.is_required:
            raise InvalidAttributeValueError(
                f"Missing required attribute '{descriptor.name}' for {schema.object_class}",
                descriptor.name,
            )

    return model


def apply_delta(schema: SchemaDefinition, deltas: Iterable[AttributeDelta], patch: PatchOperations) -> PatchOperations:
    """
    Compile attribute deltas into patch operations.

    A single-valued delta becomes one ``replace`` (an empty value list is
    handed to the accessor as None, see ``EmptyValuePolicy``). A multi-valued
    delta becomes an ``add`` with every addition followed by a ``remove``
    with every removal, omitting either when its list is empty.
    """
    for delta in deltas:
        descriptor = _descriptor_for(schema, delta.name)
        if not descriptor.is_updatable:
            raise InvalidAttributeValueError(
                f"Attribute '{delta.name}' of {schema.object_class} cannot be updated",
                delta.name,
            )

        if descriptor.is_multiple:
            if delta.values_to_replace is not None:
                raise InvalidAttributeValueError(
                    f"Attribute '{delta.name}' is multi-valued, use values to add or remove",
                    delta.name,
                )
            if delta.values_to_add:
                if descriptor.add is None:
                    raise InvalidAttributeValueError(
                        f"Values cannot be added to '{delta.name}'", delta.name
                    )
                descriptor.add(list(delta.values_to_add), patch)
            if delta.values_to_remove:
                if descriptor.remove is None:
                    raise InvalidAttributeValueError(
                        f"Values cannot be removed from '{delta.name}'", delta.name
                    )
                descriptor.remove(list(delta.values_to_remove), patch)
            continue

        values = delta.values_to_replace or []
        if len(values) > 1:
            raise InvalidAttributeValueError(
                f"Attribute '{delta.name}' is single-valued but got {len(values)} values",
                delta.name,
            )
        descriptor.update(values[0] if values else None, patch)

    return patch


def _read(descriptor: FieldDescriptor, model: Any) -> Optional[List[Any]]:
    value = descriptor.read(model)
    if value is None:
        return None
    if descriptor.is_multiple:
        return list(value)
    return [value]


def to_connector_object(
    schema: SchemaDefinition,
    model: Any,
    attributes_to_get: Optional[Iterable[str]] = None,
    allow_partial: bool = False,
    fetched_fields: Optional[Set[str]] = None,
) -> ConnectorObject:
    """
    Project a resource model back into a generic attribute set.

    UID and NAME are always included. Other attributes are included when
    requested (``None`` requests every attribute returned by default). With
    ``allow_partial`` set, a requested attribute whose backend field is not
    in ``fetched_fields`` is returned as incomplete rather than omitted.
    """
    uid_values = _read(schema.uid, model)
    if not uid_values or uid_values[0] is None:
        raise UpstreamFailure(f"{schema.object_class} resource has no identifier")
    uid = str(uid_values[0])

    name_values = _read(schema.name, model)
    name = str(name_values[0]) if name_values and name_values[0] is not None else uid

    if attributes_to_get is None:
        requested = {d.name for d in schema.returned_by_default()}
    else:
        requested = set(attributes_to_get)

    attributes: Dict[str, Attribute] = {
        UID_NAME: Attribute(name=UID_NAME, value=[uid]),
        NAME_NAME: Attribute(name=NAME_NAME, value=[name]),
    }

    for descriptor in schema.attributes:
        if descriptor.name in (UID_NAME, NAME_NAME) or descriptor.read is None:
            continue
        if descriptor.name not in requested:
            continue
        if allow_partial and fetched_fields is not None and descriptor.backend_field not in fetched_fields:
            attributes[descriptor.name] = Attribute.partial(descriptor.name)
            continue
        values = _read(descriptor, model)
        if values is None:
            continue
        attributes[descriptor.name] = Attribute(name=descriptor.name, value=values)

    return ConnectorObject(
        object_class=schema.object_class, uid=uid, name=name, attributes=attributes
    )
