"""
User handler and the User field table.
"""

from typing import Any

from scimbridge.core.utils import to_datetime
from scimbridge.handlers.base import ObjectHandler, replace_path
from scimbridge.models.resources import NameModel, UserModel
from scimbridge.scim.client import USER_OBJECT_CLASS
from scimbridge.scim.rest import ResourceEndpoint
from scimbridge.schema.definition import Flags, SchemaDefinition, Types


def _set_name_part(part: str):
    def _create(value: Any, user: UserModel) -> None:
        if user.name is None:
            user.name = NameModel()
        setattr(user.name, part, value)

    return _create


def _name_part(part: str):
    def _read(user: UserModel) -> Any:
        return getattr(user.name, part) if user.name is not None else None

    return _read


def create_schema() -> SchemaDefinition:
    """
    Declare the User attributes.

    The directory supports SCIM 2.0 users partially: no groups attribute
    on the user, and only the primary email is mapped.
    """
    sb = SchemaDefinition.builder(USER_OBJECT_CLASS)

    # __UID__
    # Assigned by the directory, unique and unchangeable
    sb.add_uid(
        "id",
        Types.STRING_CASE_IGNORE,
        read=lambda user: user.id,
        fetch_field="id",
        flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE),
    )

    # userName (__NAME__)
    # Unique and changeable, case-sensitive
    sb.add_name(
        "userName",
        Types.STRING,
        create=lambda value, user: setattr(user, "user_name", value),
        update=replace_path("userName"),
        read=lambda user: user.user_name,
        flags=(Flags.REQUIRED,),
    )

    # Attributes
    sb.add(
        "displayName",
        Types.STRING,
        create=lambda value, user: setattr(user, "display_name", value),
        update=replace_path("displayName"),
        read=lambda user: user.display_name,
    )
    sb.add(
        "name.formatted",
        Types.STRING,
        create=_set_name_part("formatted"),
        update=replace_path("name.formatted"),
        read=_name_part("formatted"),
    )
    sb.add(
        "name.givenName",
        Types.STRING,
        create=_set_name_part("given_name"),
        update=replace_path("name.givenName"),
        read=_name_part("given_name"),
    )
    sb.add(
        "name.familyName",
        Types.STRING,
        create=_set_name_part("family_name"),
        update=replace_path("name.familyName"),
        read=_name_part("family_name"),
    )
    sb.add(
        "primaryEmail",
        Types.STRING,
        create=lambda value, user: user.set_primary_email(value),
        update=replace_path("emails[primary eq true].value"),
        read=lambda user: user.primary_email,
        fetch_field="emails",
    )
    sb.add(
        "active",
        Types.BOOLEAN,
        create=lambda value, user: setattr(user, "active", value),
        update=replace_path("active"),
        read=lambda user: user.active,
    )

    # Metadata (readonly)
    sb.add(
        "meta.created",
        Types.DATETIME,
        read=lambda user: to_datetime(user.meta.created) if user.meta else None,
        flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE),
    )
    sb.add(
        "meta.lastModified",
        Types.DATETIME,
        read=lambda user: to_datetime(user.meta.last_modified) if user.meta else None,
        flags=(Flags.NOT_CREATABLE, Flags.NOT_UPDATABLE),
    )

    return sb.build()


class UserHandler(ObjectHandler):
    """Users: straight mapping onto /Users"""

    @property
    def endpoint(self) -> ResourceEndpoint:
        return self.client.users

    def new_model(self) -> UserModel:
        return UserModel()
