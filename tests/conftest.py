import json
import re
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from scimbridge.core.config import ConnectorSettings
from scimbridge.scim.client import SCIMRESTClient

BASE_URL = "https://dir.example.com"
SCIM_URL = f"{BASE_URL}/scim/v2"

FILTER_PATTERN = re.compile(r'^(\w+) eq "((?:[^"\\]|\\.)*)"$')


class FakeDirectory:
    """
    In-memory SCIM directory served through ``httpx.MockTransport``.

    Keeps every request it receives so tests can assert on the wire traffic.
    """

    NAME_ATTRIBUTES = {"Users": "userName", "Groups": "displayName"}

    def __init__(self, zero_based: bool = False, report_total: bool = True):
        self.zero_based = zero_based
        self.report_total = report_total
        self.resources: Dict[str, Dict[str, Dict[str, Any]]] = {"Users": {}, "Groups": {}}
        self.requests: List[httpx.Request] = []
        self.overrides: Dict[str, httpx.Response] = {}
        self._sequence = 0

    def add(self, kind: str, resource: Dict[str, Any]) -> Dict[str, Any]:
        resource = dict(resource)
        if "id" not in resource:
            self._sequence += 1
            resource["id"] = f"{kind[0].lower()}{self._sequence}"
        self.resources[kind][resource["id"]] = resource
        return resource

    def fail(self, method: str, status_code: int, body: Optional[Dict[str, Any]] = None) -> None:
        """Answer every ``method`` request with ``status_code``."""
        self.overrides[method] = httpx.Response(status_code, json=body or {"detail": "failure"})

    def calls(self, method: str = "GET", path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (path is None or r.url.path == f"/scim/v2{path}")
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method in self.overrides:
            return self.overrides[request.method]

        parts = request.url.path[len("/scim/v2"):].strip("/").split("/")
        if parts == ["ServiceProviderConfig"]:
            return httpx.Response(200, json={"patch": {"supported": True}})

        kind = parts[0]
        store = self.resources[kind]
        if len(parts) == 1:
            if request.method == "GET":
                return self._list(kind, request)
            if request.method == "POST":
                return self._create(kind, json.loads(request.content))
            return httpx.Response(405)

        uid = parts[1]
        if uid not in store:
            return httpx.Response(404, json={"detail": "Resource not found"})
        if request.method == "GET":
            return httpx.Response(200, json=store[uid])
        if request.method == "PUT":
            body = json.loads(request.content)
            body["id"] = uid
            store[uid] = body
            return httpx.Response(200, json=body)
        if request.method == "PATCH":
            self._patch(store[uid], json.loads(request.content))
            return httpx.Response(204)
        if request.method == "DELETE":
            del store[uid]
            return httpx.Response(204)
        return httpx.Response(405)

    def _list(self, kind: str, request: httpx.Request) -> httpx.Response:
        items = list(self.resources[kind].values())

        filter = request.url.params.get("filter")
        if filter:
            match = FILTER_PATTERN.match(filter)
            if match is None:
                return httpx.Response(400, json={"detail": f"Unsupported filter {filter}"})
            attribute, value = match.group(1), match.group(2).replace('\\"', '"')
            items = [item for item in items if item.get(attribute) == value]

        start = int(request.url.params.get("startIndex", 0 if self.zero_based else 1))
        count = int(request.url.params.get("count", 100))
        index = start if self.zero_based else start - 1
        page = items[index:index + count]

        excluded = request.url.params.get("excludedAttributes")
        if excluded:
            page = [{k: v for k, v in item.items() if k not in excluded.split(",")} for item in page]

        body: Dict[str, Any] = {"startIndex": start, "itemsPerPage": len(page), "Resources": page}
        if self.report_total:
            body["totalResults"] = len(items)
        return httpx.Response(200, json=body)

    def _create(self, kind: str, body: Dict[str, Any]) -> httpx.Response:
        name_attribute = self.NAME_ATTRIBUTES[kind]
        if kind == "Users":
            for existing in self.resources[kind].values():
                if existing.get(name_attribute) == body.get(name_attribute):
                    return httpx.Response(409, json={"scimType": "uniqueness"})
        body["meta"] = {"created": "1700000000000", "lastModified": "2023-11-14T22:13:20Z"}
        created = self.add(kind, body)
        return httpx.Response(201, json=created)

    def _patch(self, resource: Dict[str, Any], body: Dict[str, Any]) -> None:
        for operation in body["Operations"]:
            path, value = operation["path"], operation.get("value")
            if path == "members":
                members = resource.setdefault("members", [])
                if operation["op"] == "add":
                    members.extend(value)
                elif operation["op"] == "remove":
                    removed = {m["value"] for m in value}
                    resource["members"] = [m for m in members if m["value"] not in removed]
            elif operation["op"] == "replace":
                resource[path] = value
            elif operation["op"] == "remove":
                resource.pop(path, None)


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> SCIMRESTClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return SCIMRESTClient("test", SCIM_URL, http_client, **kwargs)


@pytest.fixture
def settings() -> ConnectorSettings:
    return ConnectorSettings(_env_file=None, BASE_URL=BASE_URL, TOKEN="test-token")


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def client(directory: FakeDirectory) -> SCIMRESTClient:
    with make_client(directory.handle) as scim_client:
        yield scim_client
