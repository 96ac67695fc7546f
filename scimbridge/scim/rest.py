"""
Generic paginated resource client.

Implements create, read, read-by-name, replace, patch, delete and search once,
parameterised by a ``ResourceEndpoint`` (path and JSON model). Every call is
classified right after the response arrives:

    unauthenticated  -> ConnectionFailure (checked first, on every call)
    server error     -> UpstreamFailure carrying the body
    verb specific    -> None / UnknownTargetError / AlreadyExistsError / InvalidInput
    anything not ok  -> UpstreamFailure

Searches bridge the caller's 1-based page offset (0 = fetch everything) with
a list endpoint whose start index counts from 0 or from 1.
"""

from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from scimbridge.core.errors import (
    AlreadyExistsError,
    ConnectionFailure,
    InvalidInput,
    UnknownTargetError,
    UpstreamFailure,
)
from scimbridge.core.logging import get_logger
from scimbridge.core.utils import build_eq_filter
from scimbridge.models.patch import PatchOperations
from scimbridge.models.resources import ListResponse
from scimbridge.scim.classifier import Classification, ErrorClassifier

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

ItemHandler = Callable[[Any], bool]


class ResourceEndpoint(BaseModel):
    """Where a resource type lives and what its JSON looks like"""

    model_config = ConfigDict(frozen=True)

    object_class: str
    path: str
    model: Type[BaseModel]
    # Attribute used for the exact-match-by-name filter
    name_attribute: str
    # True when the list endpoint's first item is at start index 0
    start_offset_from_zero: bool = False


class ResourceClient:
    """
    Base REST client for one directory instance.

    The ``httpx.Client`` passed in is owned exclusively by this client and
    released by ``close()``. No locking is done here; concurrent calls rely
    on httpx's own thread safety.
    """

    def __init__(
        self,
        instance_name: str,
        base_url: str,
        http_client: httpx.Client,
        classifier: ErrorClassifier,
        offset_key: str = "startIndex",
        count_key: str = "count",
    ):
        self.instance_name = instance_name
        self.base_url = base_url.rstrip("/")
        self.classifier = classifier
        self.offset_key = offset_key
        self.count_key = count_key
        self._http_client = http_client

    def test(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Close the HTTP client, evicting every pooled connection."""
        logger.info(f"Close {self.instance_name} connection")
        self._http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ==================== Transport ====================

    def url_for(self, endpoint: ResourceEndpoint, uid: Optional[str] = None) -> str:
        url = f"{self.base_url}{endpoint.path}"
        if uid is not None:
            url = f"{url}/{uid}"
        return url

    def _send(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Tuple[httpx.Response, Classification]:
        """
        Issue one request and classify the response.

        Raises:
            ConnectionFailure: Transport failure or unauthenticated response
            UpstreamFailure: Response classified as a server error
        """
        logger.debug(f"Making {method} request to {url} params={params}")

        try:
            response = self._http_client.request(method, url, json=json, params=params)
        except httpx.TransportError as e:
            logger.error(f"{self.instance_name} transport error: {method} {url}: {e}")
            raise ConnectionFailure(
                f"Cannot connect to the {self.instance_name} REST API: {e}"
            ) from e

        classification = self.classifier.classify(response)

        if classification == Classification.UNAUTHENTICATED:
            raise ConnectionFailure(
                f"Cannot authenticate to the {self.instance_name} REST API: {response.reason_phrase}"
            )

        if classification == Classification.SERVER_ERROR:
            logger.error(
                f"{self.instance_name} API error: {method} {url} returned {response.status_code}"
            )
            raise UpstreamFailure(
                f"{self.instance_name} server error, statusCode: {response.status_code}, "
                f"response: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        return response, classification

    def _parse(self, model: Type[M], response: httpx.Response) -> M:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamFailure(
                f"Cannot parse {self.instance_name} REST API response",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def _not_ok(self, verb: str, endpoint: ResourceEndpoint, target: Any, response: httpx.Response) -> UpstreamFailure:
        return UpstreamFailure(
            f"Failed to {verb} {self.instance_name} {endpoint.object_class} '{target}', "
            f"statusCode: {response.status_code}, response: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    # ==================== Verbs ====================

    def create(self, endpoint: ResourceEndpoint, resource: BaseModel, name: str) -> BaseModel:
        """
        POST a new resource.

        Returns:
            The created resource as returned by the directory

        Raises:
            AlreadyExistsError: The directory reported a conflict
            InvalidInput: The directory rejected the request
        """
        response, classification = self._send(
            "POST", self.url_for(endpoint), json=resource.to_request()
        )

        if classification == Classification.ALREADY_EXISTS:
            raise AlreadyExistsError(
                f"{self.instance_name} {endpoint.object_class} '{name}' already exists."
            )
        if classification == Classification.INVALID_REQUEST:
            raise InvalidInput(
                f"Bad request in create operation {self.instance_name} "
                f"{endpoint.object_class} '{name}': {response.text}"
            )
        if classification != Classification.OK:
            raise self._not_ok("create", endpoint, name, response)

        return self._parse(endpoint.model, response)

    def get(self, endpoint: ResourceEndpoint, uid: str, params: Optional[Dict[str, str]] = None) -> Optional[BaseModel]:
        """GET one resource by identifier, or None when it does not exist."""
        response, classification = self._send("GET", self.url_for(endpoint, uid), params=params)

        if classification == Classification.NOT_FOUND:
            # A miss on read is "no result", not an error
            logger.info(f"The {self.instance_name} {endpoint.object_class} is not found. id={uid}")
            return None
        if classification == Classification.INVALID_REQUEST:
            raise InvalidInput(
                f"Bad request in read operation for {self.instance_name} "
                f"{endpoint.object_class}: {uid}, response: {response.text}"
            )
        if classification != Classification.OK:
            raise self._not_ok("read", endpoint, uid, response)

        return self._parse(endpoint.model, response)

    def get_by_name(self, endpoint: ResourceEndpoint, name: str, params: Optional[Dict[str, str]] = None) -> Optional[BaseModel]:
        """Find the single resource whose name attribute equals ``name``."""
        query = dict(params or {})
        query["filter"] = build_eq_filter(endpoint.name_attribute, name)

        page = self._call_search(endpoint, query)
        if len(page.resources) != 1:
            logger.info(
                f"The {self.instance_name} {endpoint.object_class} is not found. "
                f"{endpoint.name_attribute}={name}"
            )
            return None
        return page.resources[0]

    def replace(self, endpoint: ResourceEndpoint, uid: str, resource: BaseModel) -> None:
        """PUT a full replacement of an existing resource."""
        response, classification = self._send(
            "PUT", self.url_for(endpoint, uid), json=resource.to_request()
        )

        if classification == Classification.NOT_FOUND:
            raise UnknownTargetError(uid, endpoint.object_class)
        if classification == Classification.INVALID_REQUEST:
            raise InvalidInput(
                f"Bad request in replace operation {self.instance_name} "
                f"{endpoint.object_class}: {uid}, response: {response.text}"
            )
        if classification != Classification.OK:
            raise self._not_ok("update", endpoint, uid, response)

    def patch(self, endpoint: ResourceEndpoint, uid: str, operations: PatchOperations) -> None:
        """PATCH an existing resource with compiled operations."""
        response, classification = self._send(
            "PATCH", self.url_for(endpoint, uid), json=operations.to_request()
        )

        if classification == Classification.NOT_FOUND:
            raise UnknownTargetError(uid, endpoint.object_class)
        if classification == Classification.INVALID_REQUEST:
            raise InvalidInput(
                f"Bad request in update operation {self.instance_name} "
                f"{endpoint.object_class}: {uid}, response: {response.text}"
            )
        if classification != Classification.OK:
            raise self._not_ok("patch", endpoint, uid, response)

    def delete(self, endpoint: ResourceEndpoint, uid: str) -> None:
        response, classification = self._send("DELETE", self.url_for(endpoint, uid))

        if classification == Classification.NOT_FOUND:
            raise UnknownTargetError(uid, endpoint.object_class)
        if classification == Classification.INVALID_REQUEST:
            raise InvalidInput(
                f"Bad request in delete operation {self.instance_name} "
                f"{endpoint.object_class}: {uid}, response: {response.text}"
            )
        if classification != Classification.OK:
            raise self._not_ok("delete", endpoint, uid, response)

    # ==================== Search & pagination ====================

    def _call_search(self, endpoint: ResourceEndpoint, params: Dict[str, str]) -> ListResponse:
        response, classification = self._send("GET", self.url_for(endpoint), params=params)

        if classification == Classification.NOT_FOUND:
            return ListResponse[endpoint.model]()
        if classification == Classification.INVALID_REQUEST:
            raise InvalidInput(
                f"Bad request in search operation for {self.instance_name} "
                f"{endpoint.object_class}: {params}, response: {response.text}"
            )
        if classification != Classification.OK:
            raise self._not_ok("search", endpoint, params, response)

        return self._parse(ListResponse[endpoint.model], response)

    def _list_page(self, endpoint: ResourceEndpoint, start: int, count: int,
                   params: Optional[Dict[str, str]] = None) -> ListResponse:
        query = dict(params or {})
        query[self.offset_key] = str(start)
        query[self.count_key] = str(count)
        return self._call_search(endpoint, query)

    def resolve_offset(self, endpoint: ResourceEndpoint, page_offset: int) -> int:
        """Translate a 1-based page offset into the endpoint's own start index."""
        return page_offset - 1 if endpoint.start_offset_from_zero else page_offset

    def search(
        self,
        endpoint: ResourceEndpoint,
        handler: ItemHandler,
        page_size: int,
        page_offset: int,
        params: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        List resources, delivering each to ``handler`` until it returns False.

        Args:
            endpoint: Resource endpoint to list
            handler: Called once per resource; returning False stops the search
            page_size: Items requested per list call
            page_offset: 1-based offset, or 0 to stream the whole collection
            params: Extra query parameters (filter, attributes, ...)

        Returns:
            With page_offset 0, the number of items delivered.
            Otherwise the directory's reported total result count.
        """
        if page_offset < 1:
            return self._get_all(endpoint, handler, page_size, params)

        start = self.resolve_offset(endpoint, page_offset)
        page = self._list_page(endpoint, start, page_size, params)
        for item in page.resources:
            if not handler(item):
                break
        return page.total_results

    def _get_all(self, endpoint: ResourceEndpoint, handler: ItemHandler, page_size: int,
                 params: Optional[Dict[str, str]] = None) -> int:
        # The natural first index depends on the resource
        start = 0 if endpoint.start_offset_from_zero else 1
        count = 0

        while True:
            page = self._list_page(endpoint, start, page_size, params)
            if not page.resources:
                # End of the collection
                return count

            for item in page.resources:
                count += 1
                if not handler(item):
                    return count

            start += page_size
