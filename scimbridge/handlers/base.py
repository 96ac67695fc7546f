"""
Object handler base.

A handler owns the schema of one object class and turns connector operations
into calls on the SCIM client: attribute sets are mapped onto a fresh
resource model, attribute deltas are compiled into patch operations, and
resources read back are projected into ``ConnectorObject``s for the caller's
results handler.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Set

from pydantic import BaseModel, Field

from scimbridge.core.config import ConnectorSettings
from scimbridge.core.errors import UpstreamFailure
from scimbridge.core.filter import ResourceFilter, contains_all_values
from scimbridge.core.logging import get_logger
from scimbridge.models.objects import (
    Attribute,
    AttributeDelta,
    ConnectorObject,
    ResultsHandler,
    Uid,
)
from scimbridge.models.patch import PatchOperations
from scimbridge.scim.client import SCIMRESTClient, build_query_params
from scimbridge.scim.rest import ResourceEndpoint
from scimbridge.schema.definition import SchemaDefinition
from scimbridge.schema.mapping import apply, apply_delta, to_connector_object

logger = get_logger(__name__)


def replace_path(path: str) -> Callable[[Any, PatchOperations], None]:
    """Update accessor compiling a single-valued delta to ``replace path``."""

    def _update(value: Any, patch: PatchOperations) -> None:
        patch.replace(path, value)

    return _update


class QueryContext(BaseModel):
    """What a read or search should return, resolved from operation options"""

    # attribute name -> backend field name
    attributes_to_get: Dict[str, str] = Field(default_factory=dict)
    allow_partial: bool = False
    page_size: int = 50
    # 1-based; 0 streams everything
    page_offset: int = 0

    @property
    def fetch_fields(self) -> Set[str]:
        return set(self.attributes_to_get.values())


class ObjectHandler(ABC):
    """
    Connector operations for one object class.

    Subclasses provide the schema, the endpoint and a factory for empty
    resource models; the generic create/update/delete/query flow lives here.
    """

    def __init__(self, settings: ConnectorSettings, client: SCIMRESTClient, schema: SchemaDefinition):
        self.settings = settings
        self.client = client
        self.schema = schema

    @property
    @abstractmethod
    def endpoint(self) -> ResourceEndpoint:
        ...

    @abstractmethod
    def new_model(self) -> BaseModel:
        ...

    @property
    def object_class(self) -> str:
        return self.schema.object_class

    def new_patch(self) -> PatchOperations:
        return PatchOperations(self.settings.EMPTY_VALUE_POLICY)

    def _name_of(self, model: Any) -> Optional[str]:
        return self.schema.name.read(model)

    def _uid_of(self, model: Any) -> Uid:
        uid = self.schema.uid.read(model)
        if uid is None:
            raise UpstreamFailure(f"Created {self.object_class} has no identifier")
        return Uid(value=str(uid), name_hint=self._name_of(model))

    # ==================== Write operations ====================

    def create(self, attributes: Iterable[Attribute]) -> Uid:
        mapped = apply(self.schema, attributes, self.new_model())
        created = self.client.create(self.endpoint, mapped, self._name_of(mapped))
        uid = self._uid_of(created)
        logger.info(f"Created {self.object_class}: id={uid.value} name={uid.name_hint}")
        return uid

    def update_delta(self, uid: str, modifications: Iterable[AttributeDelta]) -> None:
        """Compile the deltas and send them as one PATCH, skipping an empty one."""
        patch = apply_delta(self.schema, modifications, self.new_patch())
        if not patch.has_attributes_change():
            logger.debug(f"No attribute change for {self.object_class} id={uid}")
            return
        self.client.patch(self.endpoint, uid, patch)

    def update(self, uid: str, attributes: Iterable[Attribute]) -> Uid:
        """Replace the whole resource with the supplied attributes."""
        mapped = apply(self.schema, attributes, self.new_model(), creating=False)
        self.client.replace(self.endpoint, uid, mapped)
        return Uid(value=uid, name_hint=self._name_of(mapped))

    def delete(self, uid: str) -> None:
        self.client.delete(self.endpoint, uid)
        logger.info(f"Deleted {self.object_class}: id={uid}")

    # ==================== Queries ====================

    def to_object(self, model: Any, query: QueryContext, fetched_fields: Optional[Set[str]] = None) -> ConnectorObject:
        return to_connector_object(
            self.schema,
            model,
            attributes_to_get=query.attributes_to_get.keys(),
            allow_partial=query.allow_partial,
            fetched_fields=fetched_fields,
        )

    def read_params(self, query: QueryContext) -> Dict[str, str]:
        return build_query_params(sorted(query.fetch_fields))

    def list_params(self, query: QueryContext) -> Dict[str, str]:
        return self.read_params(query)

    def skip(self, model: Any) -> bool:
        """Whether a resource is never reported by member searches."""
        return False

    def get_by_uid(self, uid: str, handler: ResultsHandler, query: QueryContext) -> int:
        found = self.client.get(self.endpoint, uid, self.read_params(query))
        if found is None:
            return 0
        handler(self.to_object(found, query))
        return 1

    def get_by_name(self, name: str, handler: ResultsHandler, query: QueryContext) -> int:
        found = self.client.get_by_name(self.endpoint, name, self.read_params(query))
        if found is None:
            return 0
        handler(self.to_object(found, query))
        return 1

    def get_by_members(self, filter: ResourceFilter, handler: ResultsHandler, query: QueryContext) -> int:
        """
        Report resources whose multi-valued attribute holds every filter value.

        The directory cannot filter on multi-valued attributes, so every
        resource is listed and matched client-side.
        """
        descriptor = self.schema.get(filter.attribute_name)
        fields = set(query.fetch_fields)
        if descriptor is not None:
            fields.add(descriptor.backend_field)
        params = build_query_params(sorted(fields))

        def _match(model: Any) -> bool:
            if self.skip(model):
                return True
            if contains_all_values(self.schema, model, filter):
                return handler(self.to_object(model, query))
            return True

        return self.client.search(self.endpoint, _match, query.page_size, query.page_offset, params)

    def listed_fields(self, query: QueryContext) -> Optional[Set[str]]:
        """Backend fields present on listed resources, None when all requested ones are."""
        return None

    def get_all(self, handler: ResultsHandler, query: QueryContext) -> int:
        fetched = self.listed_fields(query)
        return self.client.search(
            self.endpoint,
            lambda model: handler(self.to_object(model, query, fetched)),
            query.page_size,
            query.page_offset,
            self.list_params(query),
        )
