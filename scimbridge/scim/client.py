"""
SCIM 2.0 client for a directory's /Users and /Groups endpoints.

Binds the generic ``ResourceClient`` verbs to the two SCIM resource types and
adds the connection test and the ``attributes`` / ``excludedAttributes``
query parameters.

Example:
    with SCIMRESTClient("acme", "https://dir.example.com/scim/v2", http_client) as client:
        client.test()
        user = client.get_user_by_name("jdoe")
"""

from typing import Dict, Iterable, Optional

import httpx

from scimbridge.core.errors import ConnectionFailure
from scimbridge.core.logging import get_logger
from scimbridge.models.patch import PatchOperations
from scimbridge.models.resources import GroupModel, UserModel
from scimbridge.scim.classifier import ErrorClassifier, SCIMErrorClassifier
from scimbridge.scim.rest import ItemHandler, ResourceClient, ResourceEndpoint

logger = get_logger(__name__)

USER_OBJECT_CLASS = "User"
GROUP_OBJECT_CLASS = "Group"


def build_query_params(
    attributes: Optional[Iterable[str]] = None,
    excluded_attributes: Optional[Iterable[str]] = None,
    filter: Optional[str] = None,
) -> Dict[str, str]:
    """
    Build SCIM query parameters for a read or list call.

    Example:
        build_query_params(["id", "userName"], filter='userName eq "jdoe"')
        # Returns: {"attributes": "id,userName", "filter": 'userName eq "jdoe"'}
    """
    params: Dict[str, str] = {}
    if attributes:
        params["attributes"] = ",".join(attributes)
    if excluded_attributes:
        params["excludedAttributes"] = ",".join(excluded_attributes)
    if filter:
        params["filter"] = filter
    return params


class SCIMRESTClient(ResourceClient):
    """SCIM 2.0 REST client for users and groups"""

    def __init__(
        self,
        instance_name: str,
        base_url: str,
        http_client: httpx.Client,
        classifier: Optional[ErrorClassifier] = None,
        offset_key: str = "startIndex",
        count_key: str = "count",
        users_start_offset_from_zero: bool = False,
        groups_start_offset_from_zero: bool = False,
    ):
        """
        Initialize the SCIM client

        Args:
            instance_name: Label used in log lines and error messages
            base_url: SCIM root URL, e.g. https://dir.example.com/scim/v2
            http_client: Configured ``httpx.Client`` owned by this client
            classifier: Response classifier, SCIM status table by default
            offset_key: Query parameter carrying the list start index
            count_key: Query parameter carrying the page size
            users_start_offset_from_zero: Whether /Users counts from 0
            groups_start_offset_from_zero: Whether /Groups counts from 0
        """
        super().__init__(
            instance_name,
            base_url,
            http_client,
            classifier or SCIMErrorClassifier(),
            offset_key=offset_key,
            count_key=count_key,
        )
        self.users = ResourceEndpoint(
            object_class=USER_OBJECT_CLASS,
            path="/Users",
            model=UserModel,
            name_attribute="userName",
            start_offset_from_zero=users_start_offset_from_zero,
        )
        self.groups = ResourceEndpoint(
            object_class=GROUP_OBJECT_CLASS,
            path="/Groups",
            model=GroupModel,
            name_attribute="displayName",
            start_offset_from_zero=groups_start_offset_from_zero,
        )

        logger.info(f"SCIM client initialized: instance={instance_name} base_url={self.base_url}")

    def test(self) -> None:
        """
        Check the directory is reachable and accepts our credentials.

        Raises:
            ConnectionFailure: Transport failure, rejected credentials or
                any status other than 200 from /ServiceProviderConfig
        """
        logger.info(f"Testing connection to {self.instance_name}...")
        response, _ = self._send("GET", f"{self.base_url}/ServiceProviderConfig")
        if response.status_code != 200:
            logger.error(f"{self.instance_name} connection test FAILED: HTTP {response.status_code}")
            raise ConnectionFailure(
                f"Unexpected authentication response. statusCode: {response.status_code}"
            )
        logger.info(f"{self.instance_name} connection test PASSED")

    # ==================== User Management ====================

    def create_user(self, user: UserModel) -> UserModel:
        return self.create(self.users, user, user.user_name)

    def get_user(self, user_id: str, attributes: Optional[Iterable[str]] = None) -> Optional[UserModel]:
        return self.get(self.users, user_id, build_query_params(attributes))

    def get_user_by_name(self, user_name: str, attributes: Optional[Iterable[str]] = None) -> Optional[UserModel]:
        return self.get_by_name(self.users, user_name, build_query_params(attributes))

    def replace_user(self, user_id: str, user: UserModel) -> None:
        self.replace(self.users, user_id, user)

    def patch_user(self, user_id: str, operations: PatchOperations) -> None:
        self.patch(self.users, user_id, operations)

    def delete_user(self, user_id: str) -> None:
        self.delete(self.users, user_id)

    def search_users(
        self,
        handler: ItemHandler,
        page_size: int,
        page_offset: int,
        attributes: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
    ) -> int:
        """
        List users page by page.

        Args:
            handler: Receives each ``UserModel``; returning False stops the search
            page_size: Users per request
            page_offset: 1-based offset, or 0 for every user
            attributes: Backend fields to return
            filter: SCIM filter expression

        Returns:
            Delivered count when fetching everything, else the reported total
        """
        params = build_query_params(attributes, filter=filter)
        return self.search(self.users, handler, page_size, page_offset, params)

    # ==================== Group Management ====================

    def create_group(self, group: GroupModel) -> GroupModel:
        return self.create(self.groups, group, group.display_name)

    def get_group(self, group_id: str, attributes: Optional[Iterable[str]] = None) -> Optional[GroupModel]:
        return self.get(self.groups, group_id, build_query_params(attributes))

    def get_group_by_name(self, display_name: str, attributes: Optional[Iterable[str]] = None) -> Optional[GroupModel]:
        return self.get_by_name(self.groups, display_name, build_query_params(attributes))

    def replace_group(self, group_id: str, group: GroupModel) -> None:
        self.replace(self.groups, group_id, group)

    def patch_group(self, group_id: str, operations: PatchOperations) -> None:
        self.patch(self.groups, group_id, operations)

    def delete_group(self, group_id: str) -> None:
        self.delete(self.groups, group_id)

    def search_groups(
        self,
        handler: ItemHandler,
        page_size: int,
        page_offset: int,
        attributes: Optional[Iterable[str]] = None,
        excluded_attributes: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
    ) -> int:
        """List groups page by page. See ``search_users``."""
        params = build_query_params(attributes, excluded_attributes, filter)
        return self.search(self.groups, handler, page_size, page_offset, params)
