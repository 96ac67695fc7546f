"""
Translation of search filters into the lookups the directory supports.

Only three shapes are recognised:

    __UID__ equality              -> EXACT_MATCH_BY_UID   (GET /{id})
    __NAME__ equality             -> EXACT_MATCH_BY_NAME  (list with eq filter)
    contains-all on multi-valued  -> CONTAINS_ALL_VALUES  (enumerate + match)

Anything else translates to None and the caller enumerates every object.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel

from scimbridge.core.logging import get_logger
from scimbridge.models.objects import (
    NAME_NAME,
    UID_NAME,
    ContainsAllValuesFilter,
    EqualsFilter,
    Filter,
)
from scimbridge.schema.definition import SchemaDefinition

logger = get_logger(__name__)


class FilterType(str, Enum):
    EXACT_MATCH_BY_UID = "exact_match_by_uid"
    EXACT_MATCH_BY_NAME = "exact_match_by_name"
    CONTAINS_ALL_VALUES = "contains_all_values"


class ResourceFilter(BaseModel):
    """A filter the handlers know how to execute"""

    attribute_name: str
    filter_type: FilterType
    # Single value for exact matches, list of values for contains-all
    value: Any

    @property
    def values(self) -> List[Any]:
        if isinstance(self.value, list):
            return self.value
        return [self.value]


class FilterTranslator:
    """Translates a filter expression tree for one object class."""

    def __init__(self, object_class: str, schema: SchemaDefinition):
        self.object_class = object_class
        self.schema = schema

    def translate(self, filter: Optional[Filter]) -> Optional[ResourceFilter]:
        if filter is None:
            return None

        if isinstance(filter, EqualsFilter):
            attribute = filter.attribute
            if not attribute.value:
                return None
            if attribute.name == UID_NAME:
                return ResourceFilter(
                    attribute_name=attribute.name,
                    filter_type=FilterType.EXACT_MATCH_BY_UID,
                    value=str(attribute.value[0]),
                )
            if attribute.name == NAME_NAME:
                return ResourceFilter(
                    attribute_name=attribute.name,
                    filter_type=FilterType.EXACT_MATCH_BY_NAME,
                    value=str(attribute.value[0]),
                )
            return None

        if isinstance(filter, ContainsAllValuesFilter):
            attribute = filter.attribute
            if self.schema.is_multiple(attribute.name) and attribute.value:
                return ResourceFilter(
                    attribute_name=attribute.name,
                    filter_type=FilterType.CONTAINS_ALL_VALUES,
                    value=list(attribute.value),
                )
            return None

        # Not / And / Or: enumerate and let the caller filter
        logger.debug(f"{self.object_class}: {type(filter).__name__} is not translated, falling back to full search")
        return None


def contains_all_values(schema: SchemaDefinition, model: Any, filter: ResourceFilter) -> bool:
    """
    Check whether a resource holds every value of a contains-all filter.

    Example:
        # members {a, b, c} against filter values {a, b}
        contains_all_values(schema, group, members_filter)  # True
    """
    descriptor = schema.get(filter.attribute_name)
    if descriptor is None or descriptor.read is None:
        return False
    current = descriptor.read(model)
    if current is None:
        return False
    present = set(current) if descriptor.is_multiple else {current}
    return all(value in present for value in filter.values)
