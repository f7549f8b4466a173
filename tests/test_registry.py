from http import HTTPStatus

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from craftrest import CraftAPI, ConfigError, ResourceRegistry, build_route_options
from craftrest.config import normalize_config
from craftrest.registry import default_path

from conftest import FakeAccessor


def test_registry_lifecycle(fake_accessor):
    registry = ResourceRegistry()
    resource = registry.register("User", fake_accessor, {"excluded": ["remove"]})
    assert resource.name == "User"
    assert registry.get("User") is resource
    assert "User" in registry
    assert len(registry) == 1
    assert [item.name for item in registry] == ["User"]

    with pytest.raises(ConfigError):
        registry.register("User", fake_accessor)

    assert registry.unregister("User") is resource
    assert registry.get("User") is None
    assert registry.unregister("User") is None

    registry.register("A", fake_accessor)
    registry.register("B", fake_accessor)
    registry.clear()
    assert len(registry) == 0


@pytest.mark.parametrize("name, accessor", [("", FakeAccessor()), (None, FakeAccessor()), ("User", object())])
def test_invalid_registrations(name, accessor):
    with pytest.raises(ConfigError):
        ResourceRegistry().register(name, accessor)


def test_default_path():
    assert default_path("BlogPost") == "/blog-posts"
    assert default_path("user") == "/users"


def test_mount_registered_resources(fake_accessor):
    registry = ResourceRegistry()
    registry.register("BlogPost", fake_accessor)
    registry.register("Secret", FakeAccessor())
    app = FastAPI()
    config = normalize_config({"basePath": "/v1", "ignore": ["Secret"]})
    api = CraftAPI(app, registry, config=config)
    client = TestClient(app)

    assert set(api.routers) == {"BlogPost"}
    response = client.get("/v1/blog-posts")
    assert response.status_code == HTTPStatus.OK
    assert response.json()["meta"]["total"] == 2
    assert client.get("/v1/secrets").status_code == HTTPStatus.NOT_FOUND


def test_prefix_argument_overrides_the_config(fake_accessor):
    registry = ResourceRegistry()
    registry.register("User", fake_accessor)
    app = FastAPI()
    CraftAPI(app, registry, prefix="/api/v2", config=normalize_config({"basePath": "/v1"}))
    assert TestClient(app).get("/api/v2/users/1").json()["name"] == "alice"


def test_config_routes_are_merged(fake_accessor):
    registry = ResourceRegistry()
    registry.register("User", fake_accessor, {"hide": {"getById": ["password"]}})
    config = normalize_config({"routes": {"User": {"excluded": ["create"], "hide": {"getById": ["name"]}, "path": "people"}}})
    app = FastAPI()
    api = CraftAPI(app, registry, config=config)
    client = TestClient(app)

    assert "create" not in api.routers["User"].registered
    assert client.post("/api/people", json={"name": "x"}).status_code == HTTPStatus.METHOD_NOT_ALLOWED
    # options passed to register take precedence over the config file
    assert client.get("/api/people/1").json() == {"id": 1, "name": "alice"}


def test_route_options_instance_is_used_as_is(fake_accessor):
    registry = ResourceRegistry()
    registry.register("User", fake_accessor, build_route_options(excluded=["get_all"]))
    app = FastAPI()
    api = CraftAPI(app, registry, config=normalize_config({"routes": {"User": {"excluded": ["create"]}}}))
    assert api.routers["User"].registered == ["create", "update_bulk", "remove_bulk", "get_by_id", "update", "remove"]


def test_expose_after_construction(fake_accessor):
    app = FastAPI()
    api = CraftAPI(app)
    assert len(api.registry) == 0
    api.expose("Person", fake_accessor, {"envelope": False})
    client = TestClient(app)
    assert [item["id"] for item in client.get("/persons").json()] == [1, 2]
    assert "Person" in api.registry

    with pytest.raises(ConfigError):
        api.expose("Person", fake_accessor)


def test_middleware_errors_use_the_json_error_format(fake_accessor):
    def deny():
        raise ConfigError("No access")

    app = FastAPI()
    api = CraftAPI(app)
    api.expose("User", fake_accessor, {"middlewares": {"getAll": [deny]}})
    response = TestClient(app).get("/users")
    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "No access"}
