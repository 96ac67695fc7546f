"""
Resource models for the directory's SCIM JSON shapes.

Models ignore unknown fields on the way in and are written back by alias with
``None`` values omitted, so only what the mapping engine set is sent.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
GROUP_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:Group"

T = TypeVar("T")


class ResourceBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_request(self) -> Dict[str, Any]:
        """Serialize for a create or replace request body."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Meta(ResourceBase):
    """Read-only resource metadata"""

    resource_type: Optional[str] = Field(default=None, alias="resourceType")
    created: Optional[str] = None
    last_modified: Optional[str] = Field(default=None, alias="lastModified")
    location: Optional[str] = None


# ==================== User ====================


class NameModel(ResourceBase):
    """User name parts"""

    formatted: Optional[str] = None
    given_name: Optional[str] = Field(default=None, alias="givenName")
    family_name: Optional[str] = Field(default=None, alias="familyName")


class Email(ResourceBase):
    value: Optional[str] = None
    primary: Optional[bool] = None
    type: Optional[str] = None


class UserModel(ResourceBase):
    """Directory user"""

    schemas: List[str] = Field(default_factory=lambda: [USER_SCHEMA])
    id: Optional[str] = None  # auto generated
    user_name: Optional[str] = Field(default=None, alias="userName")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    name: Optional[NameModel] = None
    emails: Optional[List[Email]] = None
    active: Optional[bool] = None
    meta: Optional[Meta] = None

    @property
    def primary_email(self) -> Optional[str]:
        """Value of the primary email, or the first email when none is primary."""
        if not self.emails:
            return None
        for email in self.emails:
            if email.primary:
                return email.value
        return self.emails[0].value

    def set_primary_email(self, value: str) -> None:
        if self.emails is None:
            self.emails = []
        for email in self.emails:
            if email.primary:
                email.value = value
                return
        self.emails.append(Email(value=value, primary=True))


# ==================== Group ====================


class Member(ResourceBase):
    value: Optional[str] = None
    ref: Optional[str] = Field(default=None, alias="$ref")
    type: Optional[str] = None


class GroupModel(ResourceBase):
    """Directory group"""

    schemas: List[str] = Field(default_factory=lambda: [GROUP_SCHEMA])
    id: Optional[str] = None  # auto generated
    display_name: Optional[str] = Field(default=None, alias="displayName")
    members: Optional[List[Member]] = None
    meta: Optional[Meta] = None

    def add_members(self, member_ids: List[str]) -> None:
        if self.members is None:
            self.members = []
        for member_id in member_ids:
            self.members.append(Member(value=member_id))

    @property
    def member_ids(self) -> List[str]:
        if not self.members:
            return []
        return [m.value for m in self.members if m.value is not None]


# ==================== List envelope ====================


class ListResponse(BaseModel, Generic[T]):
    """Paged list response envelope"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_results: int = Field(default=0, alias="totalResults")
    start_index: int = Field(default=0, alias="startIndex")
    items_per_page: int = Field(
        default=0, validation_alias=AliasChoices("itemsPerPage", "itemPerPage")
    )
    resources: List[T] = Field(default_factory=list, alias="Resources")

    @field_validator("resources", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        # Some directories send "Resources": null on an empty page
        return [] if value is None else value
