"""
Connector session for one SCIM directory instance.

Owns the HTTP client and the built schemas for its lifetime; nothing is kept
in module globals, so several sessions (for several directories) can live
side by side.

Example:
    settings = ConnectorSettings(BASE_URL="https://dir.example.com", TOKEN="...")
    with SCIMConnector(settings) as connector:
        uid = connector.create("User", [Attribute.build("__NAME__", "jdoe")])
        connector.search("User", None, print, OperationOptions(page_size=100))
"""

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, Optional

import httpx

from scimbridge.core.config import ConnectorSettings
from scimbridge.core.errors import (
    AlreadyExistsError,
    ConnectorError,
    InvalidInput,
    UpstreamFailure,
)
from scimbridge.core.filter import FilterTranslator, FilterType, ResourceFilter
from scimbridge.core.logging import get_logger
from scimbridge.core.utils import (
    create_full_attributes_to_get,
    resolve_page_offset,
    resolve_page_size,
    should_allow_partial_attribute_values,
)
from scimbridge.handlers import groups, users
from scimbridge.handlers.base import ObjectHandler, QueryContext
from scimbridge.models.objects import (
    UID_NAME,
    Attribute,
    AttributeDelta,
    ConnectorObject,
    OperationOptions,
    ResultsHandler,
    SearchResult,
    Uid,
)
from scimbridge.scim.client import GROUP_OBJECT_CLASS, USER_OBJECT_CLASS, SCIMRESTClient
from scimbridge.schema.definition import SchemaDefinition

logger = get_logger(__name__)


def create_http_client(settings: ConnectorSettings) -> httpx.Client:
    """
    Create the pooled HTTP client for a session.

    Returns:
        ``httpx.Client`` sending the bearer token and ``Accept: application/json``
        on every request, with the configured timeouts and proxy
    """
    headers = {"Accept": "application/json"}
    if settings.TOKEN is not None:
        headers["Authorization"] = f"Bearer {settings.TOKEN.get_secret_value()}"

    if settings.proxy_url:
        logger.info(f"Using HTTP proxy {settings.HTTP_PROXY_HOST}:{settings.HTTP_PROXY_PORT}")

    return httpx.Client(headers=headers, timeout=settings.timeout, proxy=settings.proxy_url)


def create_scim_client(settings: ConnectorSettings, instance_name: str) -> SCIMRESTClient:
    """
    Create and configure the SCIM client for a session.

    Raises:
        ConfigurationError: If required configuration is missing
    """
    settings.validate_settings()
    return SCIMRESTClient(
        instance_name,
        settings.scim_base_url,
        create_http_client(settings),
        offset_key=settings.OFFSET_KEY,
        count_key=settings.COUNT_KEY,
        users_start_offset_from_zero=settings.USERS_START_OFFSET_FROM_ZERO,
        groups_start_offset_from_zero=settings.GROUPS_START_OFFSET_FROM_ZERO,
    )


class SCIMConnector:
    """
    Provisioning operations against one directory.

    Every public operation logs connector errors once (already-exists at
    warning, everything else at error) and re-raises them; anything else is
    wrapped in ``UpstreamFailure``.
    """

    def __init__(
        self,
        settings: ConnectorSettings,
        instance_name: Optional[str] = None,
        client: Optional[SCIMRESTClient] = None,
        test_connection: bool = True,
    ):
        """
        Initialize a connector session

        Args:
            settings: Connector settings
            instance_name: Label for logs and errors, APP_NAME by default
            client: Pre-built SCIM client, created from settings when omitted
            test_connection: Run the connection test before returning
        """
        settings.validate_settings()
        self.settings = settings
        self.instance_name = instance_name or settings.APP_NAME
        self.client = client or create_scim_client(settings, self.instance_name)

        self._schemas: Dict[str, SchemaDefinition] = {
            USER_OBJECT_CLASS: users.create_schema(),
            GROUP_OBJECT_CLASS: groups.create_schema(),
        }
        self._handlers: Dict[str, ObjectHandler] = {
            USER_OBJECT_CLASS: users.UserHandler(settings, self.client, self._schemas[USER_OBJECT_CLASS]),
            GROUP_OBJECT_CLASS: groups.GroupHandler(settings, self.client, self._schemas[GROUP_OBJECT_CLASS]),
        }

        if test_connection:
            try:
                self.test()
            except ConnectorError:
                self.client.close()
                raise

        logger.info(f"Connector session ready: instance={self.instance_name}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()

    # ==================== Error processing ====================

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        try:
            yield
        except AlreadyExistsError as e:
            logger.warning(
                f"Detected the object already exists. instance={self.instance_name} "
                f"operation={name} message={e.message}"
            )
            raise
        except ConnectorError as e:
            logger.error(
                f"Detected connector error. instance={self.instance_name} "
                f"operation={name} {type(e).__name__}: {e.message}"
            )
            raise
        except Exception as e:
            logger.exception(
                f"Detected unexpected error. instance={self.instance_name} operation={name}: {e}"
            )
            raise UpstreamFailure(f"Unexpected error in {name}: {e}") from e

    def _handler(self, object_class: str) -> ObjectHandler:
        handler = self._handlers.get(object_class)
        if handler is None:
            raise InvalidInput(f"Unsupported object class {object_class}")
        return handler

    # ==================== Operations ====================

    def schema(self) -> Dict[str, SchemaDefinition]:
        """Return the schema of every supported object class."""
        return dict(self._schemas)

    def test(self) -> None:
        with self._operation("test"):
            self.client.test()

    def dispose(self) -> None:
        """Release the HTTP connection pool."""
        self.client.close()

    def create(self, object_class: str, attributes: Iterable[Attribute]) -> Uid:
        with self._operation("create"):
            attributes = list(attributes or [])
            if not attributes:
                raise InvalidInput("attributes not provided or empty")
            return self._handler(object_class).create(attributes)

    def update_delta(self, object_class: str, uid: str, modifications: Iterable[AttributeDelta]) -> None:
        with self._operation("update_delta"):
            if not uid:
                raise InvalidInput("uid not provided")
            self._handler(object_class).update_delta(uid, list(modifications or []))

    def update(self, object_class: str, uid: str, attributes: Iterable[Attribute]) -> Uid:
        with self._operation("update"):
            if not uid:
                raise InvalidInput("uid not provided")
            attributes = list(attributes or [])
            if not attributes:
                raise InvalidInput("attributes not provided or empty")
            return self._handler(object_class).update(uid, attributes)

    def delete(self, object_class: str, uid: str) -> None:
        with self._operation("delete"):
            if not uid:
                raise InvalidInput("uid not provided")
            self._handler(object_class).delete(uid)

    def create_filter_translator(self, object_class: str) -> FilterTranslator:
        return FilterTranslator(object_class, self._handler(object_class).schema)

    def search(
        self,
        object_class: str,
        filter: Optional[ResourceFilter],
        handler: ResultsHandler,
        options: Optional[OperationOptions] = None,
    ) -> Optional[SearchResult]:
        """
        Deliver matching objects to ``handler``.

        Args:
            object_class: Object class to search
            filter: Translated filter, None for every object
            handler: Receives each ``ConnectorObject``; returning False stops
            options: Paging and attributes-to-get options

        Returns:
            ``SearchResult`` with the remaining count when a page offset was
            requested, otherwise None
        """
        with self._operation("search"):
            object_handler = self._handler(object_class)
            page_offset = resolve_page_offset(options)
            query = QueryContext(
                attributes_to_get=create_full_attributes_to_get(object_handler.schema, options),
                allow_partial=should_allow_partial_attribute_values(options),
                page_size=resolve_page_size(options, self.settings.DEFAULT_QUERY_PAGE_SIZE),
                page_offset=page_offset,
            )

            fetched = 0

            def _counting(obj: ConnectorObject) -> bool:
                nonlocal fetched
                fetched += 1
                return handler(obj)

            if filter is None:
                total = object_handler.get_all(_counting, query)
            elif filter.filter_type == FilterType.EXACT_MATCH_BY_UID:
                total = object_handler.get_by_uid(str(filter.value), _counting, query)
            elif filter.filter_type == FilterType.EXACT_MATCH_BY_NAME:
                total = object_handler.get_by_name(str(filter.value), _counting, query)
            else:
                total = object_handler.get_by_members(filter, _counting, query)

            if page_offset > 0:
                return SearchResult(remaining_paged_results=total - (page_offset - 1) - fetched)
            return None

    def get_object(
        self, object_class: str, uid: str, options: Optional[OperationOptions] = None
    ) -> Optional[ConnectorObject]:
        """Read one object by uid, or None when it does not exist."""
        found = []
        self.search(
            object_class,
            ResourceFilter(
                attribute_name=UID_NAME, filter_type=FilterType.EXACT_MATCH_BY_UID, value=uid
            ),
            lambda obj: found.append(obj) or True,
            options,
        )
        return found[0] if found else None
