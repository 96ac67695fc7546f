"""
Helpers shared by the handlers and the connector session.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from dateutil import parser as date_parser

from scimbridge.models.objects import OperationOptions
from scimbridge.schema.definition import SchemaDefinition


def to_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a directory timestamp.

    Accepts ISO 8601 strings and epoch milliseconds (as sent by some
    directories in ``meta.created``). Naive results are taken as UTC.
    """
    if value is None or value == "":
        return None
    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    parsed = date_parser.isoparse(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def escape_filter_value(value: str) -> str:
    return value.replace('"', '\\"')


def build_eq_filter(attribute: str, value: str) -> str:
    """
    Build a SCIM equality filter.

    Example:
        build_eq_filter("userName", 'a"b')
        # Returns: 'userName eq "a\\"b"'
    """
    return f'{attribute} eq "{escape_filter_value(value)}"'


def resolve_page_size(options: Optional[OperationOptions], default_size: int) -> int:
    if options is not None and options.page_size is not None and options.page_size > 0:
        return options.page_size
    return default_size


def resolve_page_offset(options: Optional[OperationOptions]) -> int:
    """Return the 1-based page offset, or 0 when no paging was requested."""
    if options is not None and options.paged_results_offset is not None:
        return max(options.paged_results_offset, 0)
    return 0


def should_allow_partial_attribute_values(options: Optional[OperationOptions]) -> bool:
    return bool(options is not None and options.allow_partial_attribute_values)


def create_full_attributes_to_get(
    schema: SchemaDefinition, options: Optional[OperationOptions]
) -> Dict[str, str]:
    """
    Resolve which attributes to return and which backend fields they need.

    Attributes returned by default are included when no explicit list is
    given or when ``return_default_attributes`` is set; explicitly requested
    attributes known to the schema are added on top.

    Returns:
        Mapping of attribute name -> backend field name
    """
    # UID and NAME are always returned, so their fields are always fetched
    attributes_to_get: Dict[str, str] = {
        schema.uid.name: schema.uid.backend_field,
        schema.name.name: schema.name.backend_field,
    }
    requested = options.attributes_to_get if options is not None else None

    if requested is None or (options is not None and options.return_default_attributes):
        for descriptor in schema.returned_by_default():
            attributes_to_get[descriptor.name] = descriptor.backend_field

    if requested:
        for name in requested:
            descriptor = schema.get(name)
            if descriptor is not None:
                attributes_to_get[descriptor.name] = descriptor.backend_field

    return attributes_to_get
