"""
Patch operations model.

Collects the ordered ``{op, path, value}`` instructions compiled from attribute
deltas for one update request. Created empty per request and discarded after
the request completes.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

PATCH_OP_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:PatchOp"


class EmptyValuePolicy(str, Enum):
    """How a single-valued delta carrying no value is compiled."""

    EMPTY_STRING = "empty_string"  # replace with ""
    REMOVE = "remove"  # remove the path


class PatchOperation(BaseModel):
    """One patch instruction"""

    op: str
    path: str
    value: Optional[Any] = None


class PatchOperations:
    """
    Ordered patch operations for one resource.

    Single-valued attributes compile to one ``replace``. Multi-valued
    attributes compile to at most one ``add`` and one ``remove``, each
    carrying the whole value list under its path.
    """

    def __init__(self, empty_value_policy: EmptyValuePolicy = EmptyValuePolicy.EMPTY_STRING):
        self.empty_value_policy = empty_value_policy
        self.operations: List[PatchOperation] = []

    def replace(self, path: str, value: Any) -> None:
        if value is None:
            if self.empty_value_policy == EmptyValuePolicy.REMOVE:
                self.operations.append(PatchOperation(op="remove", path=path))
                return
            value = ""
        self.operations.append(PatchOperation(op="replace", path=path, value=value))

    def add(self, path: str, values: List[Any]) -> None:
        if not values:
            return
        self.operations.append(PatchOperation(op="add", path=path, value=list(values)))

    def remove(self, path: str, values: List[Any]) -> None:
        if not values:
            return
        self.operations.append(PatchOperation(op="remove", path=path, value=list(values)))

    def add_members(self, member_ids: List[str]) -> None:
        self.add("members", [{"value": member_id} for member_id in member_ids])

    def remove_members(self, member_ids: List[str]) -> None:
        self.remove("members", [{"value": member_id} for member_id in member_ids])

    def has_attributes_change(self) -> bool:
        return len(self.operations) > 0

    def to_request(self) -> Dict[str, Any]:
        """Render the SCIM PatchOp request body."""
        operations = []
        for operation in self.operations:
            rendered = {"op": operation.op, "path": operation.path}
            if operation.op != "remove" or operation.value is not None:
                rendered["value"] = operation.value
            operations.append(rendered)
        return {"schemas": [PATCH_OP_SCHEMA], "Operations": operations}

    def __len__(self) -> int:
        return len(self.operations)

    def __repr__(self) -> str:
        return f"PatchOperations({[op.model_dump() for op in self.operations]!r})"
