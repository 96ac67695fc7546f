"""End-to-end tests of the connector session against an in-memory directory."""

import json

import httpx
import pytest

from conftest import FakeDirectory, make_client
from scimbridge.core.connector import SCIMConnector, create_http_client
from scimbridge.core.config import ConnectorSettings
from scimbridge.core.errors import (
    AlreadyExistsError,
    ConnectionFailure,
    InvalidAttributeValueError,
    InvalidInput,
    UnknownTargetError,
)
from scimbridge.models.objects import (
    NAME_NAME,
    UID_NAME,
    Attribute,
    AttributeDelta,
    ContainsAllValuesFilter,
    EqualsFilter,
    OperationOptions,
)
from scimbridge.models.patch import EmptyValuePolicy


@pytest.fixture
def connector(settings, directory):
    with SCIMConnector(settings, client=make_client(directory.handle)) as session:
        yield session


def _collect(connector, object_class, filter=None, options=None):
    results = []
    result = connector.search(object_class, filter, lambda obj: results.append(obj) or True, options)
    return results, result


def _translate(connector, object_class, filter):
    return connector.create_filter_translator(object_class).translate(filter)


# ==================== Session ====================


def test_session_runs_connection_test(settings, directory):
    SCIMConnector(settings, client=make_client(directory.handle))
    assert directory.calls("GET", "/ServiceProviderConfig")


def test_session_fails_on_rejected_credentials(settings):
    client = make_client(lambda request: httpx.Response(401))
    with pytest.raises(ConnectionFailure):
        SCIMConnector(settings, client=client)
    assert client._http_client.is_closed


def test_session_owns_schema(connector):
    schemas = connector.schema()
    assert set(schemas) == {"User", "Group"}
    assert schemas["User"].name.native_name == "userName"


def test_unknown_object_class(connector):
    with pytest.raises(InvalidInput):
        connector.create("Device", [Attribute.build(NAME_NAME, "x")])


def test_http_client_headers(settings):
    http_client = create_http_client(settings)
    try:
        assert http_client.headers["Authorization"] == "Bearer test-token"
        assert http_client.headers["Accept"] == "application/json"
        assert http_client.timeout.read == 10.0
    finally:
        http_client.close()


# ==================== Users ====================


def test_create_user(connector, directory):
    uid = connector.create(
        "User",
        [
            Attribute.build(NAME_NAME, "jdoe"),
            Attribute.build("name.givenName", "John"),
            Attribute.build("primaryEmail", "jdoe@example.com"),
        ],
    )

    assert uid.value in directory.resources["Users"]
    assert uid.name_hint == "jdoe"
    body = json.loads(directory.calls("POST", "/Users")[0].content)
    assert body["userName"] == "jdoe"
    assert body["emails"] == [{"value": "jdoe@example.com", "primary": True}]


def test_create_requires_attributes(connector):
    with pytest.raises(InvalidInput):
        connector.create("User", [])
    with pytest.raises(InvalidAttributeValueError):
        connector.create("User", [Attribute.build("displayName", "No Name")])


def test_create_duplicate_user(connector, directory):
    directory.add("Users", {"userName": "jdoe"})
    with pytest.raises(AlreadyExistsError):
        connector.create("User", [Attribute.build(NAME_NAME, "jdoe")])


def test_update_delta_sends_one_patch(connector, directory):
    user = directory.add("Users", {"userName": "jdoe", "displayName": "John"})

    connector.update_delta(
        "User",
        user["id"],
        [AttributeDelta.replace("displayName", "Johnny"), AttributeDelta.replace("active", False)],
    )

    patches = directory.calls("PATCH", f"/Users/{user['id']}")
    assert len(patches) == 1
    assert json.loads(patches[0].content)["Operations"] == [
        {"op": "replace", "path": "displayName", "value": "Johnny"},
        {"op": "replace", "path": "active", "value": False},
    ]
    assert directory.resources["Users"][user["id"]]["displayName"] == "Johnny"


def test_update_delta_without_change_sends_nothing(connector, directory):
    group = directory.add("Groups", {"displayName": "Admins"})

    connector.update_delta("Group", group["id"], [AttributeDelta.add_remove("members.User.value", add=[])])

    assert not directory.calls("PATCH")


def test_update_delta_empty_value_policy(directory):
    settings = ConnectorSettings(
        _env_file=None, BASE_URL="https://dir.example.com", TOKEN="t",
        EMPTY_VALUE_POLICY=EmptyValuePolicy.REMOVE,
    )
    user = directory.add("Users", {"userName": "jdoe", "displayName": "John"})

    with SCIMConnector(settings, client=make_client(directory.handle)) as connector:
        connector.update_delta("User", user["id"], [AttributeDelta.replace("displayName")])

    body = json.loads(directory.calls("PATCH")[0].content)
    assert body["Operations"] == [{"op": "remove", "path": "displayName"}]
    assert "displayName" not in directory.resources["Users"][user["id"]]


def test_update_delta_unknown_user(connector):
    with pytest.raises(UnknownTargetError):
        connector.update_delta("User", "missing", [AttributeDelta.replace("displayName", "x")])


def test_update_replaces_user(connector, directory):
    user = directory.add("Users", {"userName": "jdoe", "displayName": "John"})

    uid = connector.update("User", user["id"], [Attribute.build(NAME_NAME, "jdoe"), Attribute.build("active", True)])

    assert uid.value == user["id"]
    put = json.loads(directory.calls("PUT")[0].content)
    assert put["userName"] == "jdoe"
    assert put["active"] is True
    assert "displayName" not in put


def test_delete_user(connector, directory):
    user = directory.add("Users", {"userName": "jdoe"})

    connector.delete("User", user["id"])

    assert user["id"] not in directory.resources["Users"]
    with pytest.raises(UnknownTargetError):
        connector.delete("User", user["id"])


def test_search_user_by_uid(connector, directory):
    user = directory.add("Users", {"userName": "jdoe", "displayName": "John", "active": True})

    results, result = _collect(
        connector, "User", _translate(connector, "User", EqualsFilter(attribute=Attribute.build(UID_NAME, user["id"])))
    )

    assert result is None
    assert [r.uid for r in results] == [user["id"]]
    assert results[0].get("active").value == [True]
    assert directory.calls("GET", f"/Users/{user['id']}")


def test_search_missing_uid_is_empty(connector):
    results, _ = _collect(connector, "User", _translate(connector, "User", EqualsFilter(attribute=Attribute.build(UID_NAME, "nope"))))
    assert results == []
    assert connector.get_object("User", "nope") is None


def test_search_user_by_name(connector, directory):
    directory.add("Users", {"userName": "jdoe"})
    directory.add("Users", {"userName": "asmith"})

    results, _ = _collect(
        connector, "User", _translate(connector, "User", EqualsFilter(attribute=Attribute.build(NAME_NAME, "asmith")))
    )

    assert [r.name for r in results] == ["asmith"]


def test_search_all_users_with_remaining_count(connector, directory):
    for i in range(5):
        directory.add("Users", {"userName": f"user{i}"})

    results, result = _collect(connector, "User", options=OperationOptions(page_size=2, paged_results_offset=3))

    assert [r.name for r in results] == ["user2", "user3"]
    # total - (offset - 1) - delivered
    assert result.remaining_paged_results == 1


def test_search_all_users_streams_everything(connector, directory):
    for i in range(7):
        directory.add("Users", {"userName": f"user{i}"})

    results, result = _collect(connector, "User", options=OperationOptions(page_size=3))

    assert len(results) == 7
    assert result is None


def test_search_sends_fetch_fields(connector, directory):
    directory.add("Users", {"userName": "jdoe"})

    _collect(connector, "User", options=OperationOptions(attributes_to_get=["primaryEmail"]))

    assert directory.calls("GET", "/Users")[0].url.params["attributes"] == "emails,id,userName"


def test_get_object(connector, directory):
    user = directory.add("Users", {"userName": "jdoe", "meta": {"created": "1700000000000"}})

    obj = connector.get_object("User", user["id"])

    assert obj.name == "jdoe"
    assert obj.get("meta.created").value[0].year == 2023


# ==================== Groups ====================


def test_create_group_with_members(connector, directory):
    uid = connector.create(
        "Group", [Attribute.build(NAME_NAME, "Admins"), Attribute.build("members.User.value", ["u1", "u2"])]
    )

    assert directory.resources["Groups"][uid.value]["members"] == [{"value": "u1"}, {"value": "u2"}]


def test_create_group_unique_display_name(connector, directory):
    directory.add("Groups", {"displayName": "Admins"})

    with pytest.raises(AlreadyExistsError):
        connector.create("Group", [Attribute.build(NAME_NAME, "Admins")])
    assert not directory.calls("POST")


def test_create_group_unique_check_disabled(directory):
    settings = ConnectorSettings(
        _env_file=None, BASE_URL="https://dir.example.com", TOKEN="t",
        UNIQUE_CHECK_GROUP_DISPLAY_NAME_ENABLED=False,
    )
    directory.add("Groups", {"displayName": "Admins"})

    with SCIMConnector(settings, client=make_client(directory.handle)) as connector:
        connector.create("Group", [Attribute.build(NAME_NAME, "Admins")])

    assert len(directory.calls("POST", "/Groups")) == 1


def test_update_group_members(connector, directory):
    group = directory.add("Groups", {"displayName": "Admins", "members": [{"value": "u1"}]})

    connector.update_delta(
        "Group", group["id"], [AttributeDelta.add_remove("members.User.value", add=["u2"], remove=["u1"])]
    )

    assert directory.resources["Groups"][group["id"]]["members"] == [{"value": "u2"}]


def test_search_groups_by_members(directory):
    settings = ConnectorSettings(
        _env_file=None, BASE_URL="https://dir.example.com", TOKEN="t", IGNORE_GROUP="Everyone",
    )
    directory.add("Groups", {"displayName": "Admins", "members": [{"value": "a"}, {"value": "b"}, {"value": "c"}]})
    directory.add("Groups", {"displayName": "Readers", "members": [{"value": "a"}]})
    directory.add("Groups", {"displayName": "EVERYONE", "members": [{"value": "a"}, {"value": "b"}]})

    with SCIMConnector(settings, client=make_client(directory.handle)) as connector:
        filter = _translate(
            connector, "Group", ContainsAllValuesFilter(attribute=Attribute.build("members.User.value", ["a", "b"]))
        )
        results, _ = _collect(connector, "Group", filter)

    assert [r.name for r in results] == ["Admins"]
    assert "members" in directory.calls("GET", "/Groups")[0].url.params["attributes"]


def test_search_groups_partial_members(connector, directory):
    directory.add("Groups", {"displayName": "Admins", "members": [{"value": "a"}]})

    results, _ = _collect(
        connector,
        "Group",
        options=OperationOptions(attributes_to_get=["members.User.value"], allow_partial_attribute_values=True),
    )

    request = directory.calls("GET", "/Groups")[0]
    assert request.url.params["excludedAttributes"] == "members"
    members = results[0].get("members.User.value")
    assert members.incomplete is True
    assert members.value == []


def test_search_groups_members_when_requested(connector, directory):
    directory.add("Groups", {"displayName": "Admins", "members": [{"value": "a"}]})

    results, _ = _collect(connector, "Group", options=OperationOptions(attributes_to_get=["members.User.value"]))

    assert results[0].get("members.User.value").value == ["a"]
    assert results[0].get("members.User.value").incomplete is False


def test_search_group_without_display_name(connector, directory):
    group = directory.add("Groups", {"id": "g-42"})

    results, _ = _collect(connector, "Group")

    assert results[0].uid == group["id"]
    assert results[0].name == "g-42"
