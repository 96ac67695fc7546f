"""
Group handler and the Group field table.

Membership lives on the group (``members[].value`` holds user ids). The
directory only filters groups by displayName, so membership searches list
every group and match client-side, skipping the configured ignore groups.
"""

from typing import Dict, Iterable, Optional, Set

from scimbridge.core.errors import AlreadyExistsError
from scimbridge.core.logging import get_logger
from scimbridge.core.utils import to_datetime
from scimbridge.handlers.base import ObjectHandler, QueryContext, replace_path
from scimbridge.models.objects import Attribute, Uid
from scimbridge.models.resources import GroupModel
from scimbridge.scim.client import GROUP_OBJECT_CLASS, build_query_params
from scimbridge.scim.rest import ResourceEndpoint
from scimbridge.schema.definition import Flags, SchemaDefinition, Types

logger = get_logger(__name__)

MEMBERS_ATTRIBUTE = "members.User.value"
MEMBERS_FIELD = "members"


def create_schema() -> SchemaDefinition:
    sb = SchemaDefinition.builder(GROUP_OBJECT_CLASS)

    # __UID__
    sb.add_uid(
        "id",
        Types.STRING_CASE_IGNORE,
        read=lambda group: group.id,
        fetch_field="id",
        flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE),
    )

    # displayName (__NAME__)
    # Not unique in the directory, case-insensitive; groups without one are named by id
    sb.add_name(
        "displayName",
        Types.STRING_CASE_IGNORE,
        create=lambda value, group: setattr(group, "display_name", value),
        update=replace_path("displayName"),
        read=lambda group: group.display_name or group.id,
        fetch_field="displayName",
        flags=(Flags.REQUIRED,),
    )

    # Association
    sb.add_as_multiple(
        MEMBERS_ATTRIBUTE,
        Types.STRING,
        create=lambda values, group: group.add_members(values),
        add=lambda values, patch: patch.add_members(values),
        remove=lambda values, patch: patch.remove_members(values),
        read=lambda group: group.member_ids if group.members is not None else None,
        fetch_field=MEMBERS_FIELD,
        flags=(Flags.NOT_RETURNED_BY_DEFAULT,),
    )

    # Metadata (readonly)
    sb.add(
        "meta.created",
        Types.DATETIME,
        read=lambda group: to_datetime(group.meta.created) if group.meta else None,
        flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE),
    )
    sb.add(
        "meta.lastModified",
        Types.DATETIME,
        read=lambda group: to_datetime(group.meta.last_modified) if group.meta else None,
        flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE),
    )

    return sb.build()


class GroupHandler(ObjectHandler):
    """Groups, with display-name uniqueness and ignore groups"""

    @property
    def endpoint(self) -> ResourceEndpoint:
        return self.client.groups

    def new_model(self) -> GroupModel:
        return GroupModel()

    def create(self, attributes: Iterable[Attribute]) -> Uid:
        """
        Create a group.

        Raises:
            AlreadyExistsError: When the uniqueness check is enabled and a group
                with the same displayName (case-insensitive) exists
        """
        attributes = list(attributes)
        if self.settings.UNIQUE_CHECK_GROUP_DISPLAY_NAME_ENABLED:
            display_name = self._requested_name(attributes)
            if display_name:
                found = self.client.get_group_by_name(display_name, attributes=["id", "displayName"])
                if found is not None and (found.display_name or "").lower() == display_name.lower():
                    logger.warning(f"Group '{display_name}' already exists: id={found.id}")
                    raise AlreadyExistsError(f'Group "{display_name}" already exists')
        return super().create(attributes)

    def _requested_name(self, attributes: Iterable[Attribute]) -> Optional[str]:
        for attribute in attributes:
            if attribute.name == self.schema.name.name and attribute.value:
                return str(attribute.value[0])
        return None

    def skip(self, group: GroupModel) -> bool:
        # displayName is case-insensitive
        return (group.display_name or "").lower() in self.settings.ignore_group_set

    def list_params(self, query: QueryContext) -> Dict[str, str]:
        if query.allow_partial:
            # Member lists can be huge; report them as incomplete instead
            return build_query_params(excluded_attributes=[MEMBERS_FIELD])
        return super().list_params(query)

    def listed_fields(self, query: QueryContext) -> Optional[Set[str]]:
        if query.allow_partial:
            return query.fetch_fields - {MEMBERS_FIELD}
        return None

