import pytest

from craftrest.errors import ConfigError
from craftrest.options import (
    OPERATIONS,
    RouteOptions,
    build_route_options,
    kebab_case,
    snake_case,
)


def test_name_normalization():
    assert snake_case("getById") == "get_by_id"
    assert snake_case("update_bulk") == "update_bulk"
    assert snake_case("beforeGetAll") == "before_get_all"
    assert kebab_case("BlogPost") == "blog-post"
    assert kebab_case("user") == "user"


def test_defaults():
    options = build_route_options()
    assert options == RouteOptions()
    assert all(options.is_enabled(operation) for operation in OPERATIONS)
    assert options.envelope is True
    assert options.blocklist("get_all") == frozenset()


def test_camel_case_options():
    options = build_route_options(
        {
            "excluded": ["getById", "removeBulk"],
            "hide": {"getAll": ["password"]},
            "isSafe": False,
            "hooks": {"beforeCreate": lambda request, body: body},
        }
    )
    assert options.excluded == frozenset(["get_by_id", "remove_bulk"])
    assert options.hide["get_all"] == frozenset(["password"])
    assert options.hook("before_create") is not None
    assert options.hook("after_create") is None


def test_legacy_names_exclude_bulk_routes():
    options = build_route_options(excluded=["update", "remove"])
    assert not options.is_enabled("update")
    assert not options.is_enabled("update_bulk")
    assert not options.is_enabled("remove")
    assert not options.is_enabled("remove_bulk")
    assert options.is_enabled("create")


def test_bulk_names_exclude_only_the_bulk_route():
    options = build_route_options(excluded=["update_bulk", "remove_bulk"])
    assert options.is_enabled("update")
    assert options.is_enabled("remove")
    assert not options.is_enabled("update_bulk")
    assert not options.is_enabled("remove_bulk")


def test_safe_mode():
    options = build_route_options(is_safe=True)
    enabled = [operation for operation in OPERATIONS if options.is_enabled(operation)]
    assert enabled == ["get_by_id", "create", "update", "remove"]


def test_blocklist_fallbacks():
    options = build_route_options(hide={"get_all": ["password"], "update": ["token"]})
    assert options.blocklist("get_by_id") == frozenset(["password"])
    assert options.blocklist("update_bulk") == frozenset(["token"])
    assert options.blocklist("create") == frozenset()

    options = build_route_options(hide={"get_all": ["password"], "get_by_id": ["email"]})
    assert options.blocklist("get_by_id") == frozenset(["email"])


def test_middleware_chains():
    def first():
        pass

    def second():
        pass

    options = build_route_options(middlewares={"update": [first, second], "remove": second, "removeBulk": [first]})
    assert options.middleware_chain("update") == (first, second)
    assert options.middleware_chain("update_bulk") == (first, second)
    assert options.middleware_chain("remove") == (second,)
    assert options.middleware_chain("remove_bulk") == (first,)
    assert options.middleware_chain("get_all") == ()


def test_overrides_take_precedence():
    options = build_route_options({"excluded": ["create"], "envelope": True}, envelope=False)
    assert options.excluded == frozenset(["create"])
    assert options.envelope is False
    assert build_route_options(options) == options


def test_options_are_read_only():
    options = build_route_options(hooks={"after_get_all": print})
    with pytest.raises(TypeError):
        options.hooks["before_get_all"] = print
    with pytest.raises(AttributeError):
        options.is_safe = True


@pytest.mark.parametrize(
    "options",
    [
        {"exclude": ["create"]},
        {"excluded": ["list"]},
        {"excluded": 5},
        {"hide": ["password"]},
        {"hide": {"getEverything": ["password"]}},
        {"hooks": {"beforeList": print}},
        {"hooks": {"beforeCreate": "not callable"}},
        {"middlewares": {"create": ["not callable"]}},
        {"path": 12},
        ["excluded"],
    ],
)
def test_invalid_options(options):
    with pytest.raises(ConfigError):
        build_route_options(options)
