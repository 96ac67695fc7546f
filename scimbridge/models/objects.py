"""
Generic directory-object model.

These are the connector-facing shapes: attributes keyed by name, attribute
deltas for updates, the projected object returned by searches, the options
that drive a search and the small filter algebra callers search with.
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

# Reserved attribute names for the identifier and the display identifier
UID_NAME = "__UID__"
NAME_NAME = "__NAME__"


class Attribute(BaseModel):
    """A named attribute with zero or more values"""

    name: str
    value: List[Any] = Field(default_factory=list)
    # True when the value was not fetched, as opposed to known to be absent
    incomplete: bool = False

    @classmethod
    def build(cls, name: str, *values: Any) -> "Attribute":
        """Build an attribute, flattening a single list argument."""
        if len(values) == 1 and isinstance(values[0], (list, tuple, set)):
            values = tuple(values[0])
        return cls(name=name, value=list(values))

    @classmethod
    def partial(cls, name: str) -> "Attribute":
        return cls(name=name, value=[], incomplete=True)

    def single_value(self) -> Any:
        """Return the only value, or None when the attribute is empty."""
        if not self.value:
            return None
        if len(self.value) > 1:
            raise ValueError(f"Attribute {self.name} has more than one value")
        return self.value[0]


class Uid(BaseModel):
    """Identity of a remote object, with the display name as a hint"""

    value: str
    name_hint: Optional[str] = None

    def __str__(self) -> str:
        return self.value


class AttributeDelta(BaseModel):
    """
    A requested change to one attribute.

    Single-valued attributes use ``values_to_replace``; multi-valued attributes
    use ``values_to_add`` and ``values_to_remove``.
    """

    name: str
    values_to_replace: Optional[List[Any]] = None
    values_to_add: Optional[List[Any]] = None
    values_to_remove: Optional[List[Any]] = None

    @classmethod
    def replace(cls, name: str, *values: Any) -> "AttributeDelta":
        return cls(name=name, values_to_replace=list(values))

    @classmethod
    def add_remove(
        cls, name: str, add: Optional[List[Any]] = None, remove: Optional[List[Any]] = None
    ) -> "AttributeDelta":
        return cls(name=name, values_to_add=add, values_to_remove=remove)


class ConnectorObject(BaseModel):
    """A resource projected back into generic attributes"""

    object_class: str
    uid: str
    name: str
    attributes: Dict[str, Attribute] = Field(default_factory=dict)

    def get(self, name: str) -> Optional[Attribute]:
        return self.attributes.get(name)


class OperationOptions(BaseModel):
    """Options controlling what a read or search returns"""

    attributes_to_get: Optional[List[str]] = None
    return_default_attributes: bool = False
    page_size: Optional[int] = None
    # 1-based; None or 0 means no paging (stream everything)
    paged_results_offset: Optional[int] = None
    allow_partial_attribute_values: Optional[bool] = None


class SearchResult(BaseModel):
    """Summary returned after a paged search"""

    remaining_paged_results: int = -1


ResultsHandler = Callable[[ConnectorObject], bool]


# ==================== Filters ====================


class Filter(BaseModel):
    """Base of the logical filter expression tree"""


class EqualsFilter(Filter):
    attribute: Attribute


class ContainsAllValuesFilter(Filter):
    attribute: Attribute


class NotFilter(Filter):
    inner: Filter


class AndFilter(Filter):
    left: Filter
    right: Filter


class OrFilter(Filter):
    left: Filter
    right: Filter
