"""Models module."""

from scimbridge.models.objects import (
    NAME_NAME,
    UID_NAME,
    AndFilter,
    Attribute,
    AttributeDelta,
    ConnectorObject,
    ContainsAllValuesFilter,
    EqualsFilter,
    Filter,
    NotFilter,
    OperationOptions,
    OrFilter,
    ResultsHandler,
    SearchResult,
    Uid,
)
from scimbridge.models.patch import EmptyValuePolicy, PatchOperation, PatchOperations
from scimbridge.models.resources import (
    Email,
    GroupModel,
    ListResponse,
    Member,
    Meta,
    NameModel,
    UserModel,
)

__all__ = [
    "NAME_NAME",
    "UID_NAME",
    "AndFilter",
    "Attribute",
    "AttributeDelta",
    "ConnectorObject",
    "ContainsAllValuesFilter",
    "Email",
    "EmptyValuePolicy",
    "EqualsFilter",
    "Filter",
    "GroupModel",
    "ListResponse",
    "Member",
    "Meta",
    "NameModel",
    "NotFilter",
    "OperationOptions",
    "OrFilter",
    "PatchOperation",
    "PatchOperations",
    "ResultsHandler",
    "SearchResult",
    "Uid",
    "UserModel",
]
