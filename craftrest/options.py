# -*- coding: utf-8 -*-
"""
Per resource route options

RouteOptions are built once, when a resource is mounted, and are read-only afterwards.
Option, operation and hook names may be given in camelCase (as in craft.yml: "getAll",
"beforeUpdate", "isSafe") or snake_case, they're normalized to snake_case here.
"""

import re
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, NamedTuple, Optional, Tuple

from .errors import ConfigError

GET_ALL = "get_all"
GET_BY_ID = "get_by_id"
CREATE = "create"
UPDATE = "update"
UPDATE_BULK = "update_bulk"
REMOVE = "remove"
REMOVE_BULK = "remove_bulk"

OPERATIONS = (GET_ALL, GET_BY_ID, CREATE, UPDATE, UPDATE_BULK, REMOVE, REMOVE_BULK)
READ_OPERATIONS = frozenset([GET_ALL, GET_BY_ID])
# safe mode disables unrestricted collection reads and all bulk mutations
SAFE_MODE_DISABLED = frozenset([GET_ALL, UPDATE_BULK, REMOVE_BULK])
# "update" and "remove" are the legacy names that also cover the bulk variants
BULK_PARENTS = {UPDATE_BULK: UPDATE, REMOVE_BULK: REMOVE}

HOOKS = (
    "before_get_all",
    "after_get_all",
    "before_get_by_id",
    "after_get_by_id",
    "before_create",
    "after_create",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_EMPTY: Mapping[str, Any] = MappingProxyType({})


def snake_case(name: str) -> str:
    """getById -> get_by_id"""
    return _CAMEL_RE.sub(r"_\1", str(name).strip()).lower()


def kebab_case(name: str) -> str:
    """BlogPost -> blog-post"""
    return snake_case(name).replace("_", "-")


def _operation_name(name: str) -> str:
    operation = snake_case(name)
    if operation not in OPERATIONS:
        raise ConfigError(f"Unknown operation '{name}', expected one of: {', '.join(OPERATIONS)}")
    return operation


def _names(value: Any, option: str) -> Iterable[str]:
    if value is None:
        return ()
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return value
    raise ConfigError(f"'{option}' should be a list of names, got {type(value).__name__}")


def _mapping(value: Any, option: str) -> Mapping[str, Any]:
    if value is None:
        return _EMPTY
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{option}' should be a mapping, got {type(value).__name__}")
    return value


class RouteOptions(NamedTuple):
    """
    :param excluded: operations that won't be registered
    :param hide: operation -> blocklist of field names that are never returned
    :param middlewares: operation -> ordered route dependencies, run before the hooks
    :param hooks: hook name -> callback (sync or async)
    :param is_safe: safe mode, disables get_all, update_bulk and remove_bulk
    :param populate: relationship paths expanded when the client doesn't send `populate`
    :param envelope: wrap get_all results in a {data, meta} paging envelope
    :param path: mount path of the resource, relative to the api prefix
    :param tags: openapi tags of the routes
    """

    excluded: FrozenSet[str] = frozenset()
    hide: Mapping[str, FrozenSet[str]] = _EMPTY
    middlewares: Mapping[str, Tuple[Callable, ...]] = _EMPTY
    hooks: Mapping[str, Callable] = _EMPTY
    is_safe: bool = False
    populate: Tuple[str, ...] = ()
    envelope: bool = True
    path: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def is_enabled(self, operation: str) -> bool:
        """Mount time decision whether the route of `operation` is registered"""
        if operation in self.excluded:
            return False
        if BULK_PARENTS.get(operation) in self.excluded:
            return False
        if self.is_safe and operation in SAFE_MODE_DISABLED:
            return False
        return True

    def hook(self, name: str) -> Optional[Callable]:
        return self.hooks.get(name)

    def blocklist(self, operation: str) -> FrozenSet[str]:
        if operation in self.hide:
            return self.hide[operation]
        if operation == GET_BY_ID:
            return self.hide.get(GET_ALL, frozenset())
        if operation in BULK_PARENTS:
            return self.hide.get(BULK_PARENTS[operation], frozenset())
        return frozenset()

    def middleware_chain(self, operation: str) -> Tuple[Callable, ...]:
        if operation in self.middlewares:
            return self.middlewares[operation]
        return self.middlewares.get(BULK_PARENTS.get(operation, operation), ())


def build_route_options(options: Any = None, **overrides: Any) -> RouteOptions:
    """
    Normalize and validate route options

    :param options: RouteOptions, a dict (snake_case or camelCase keys) or None
    :param overrides: option values that take precedence over `options`
    :return: RouteOptions
    """
    if isinstance(options, RouteOptions):
        raw: Dict[str, Any] = options._asdict()
    else:
        raw = {snake_case(key): value for key, value in _mapping(options, "options").items()}
    raw.update({snake_case(key): value for key, value in overrides.items()})

    unknown = set(raw) - set(RouteOptions._fields)
    if unknown:
        raise ConfigError(f"Unknown route options: {', '.join(sorted(unknown))}")

    excluded = frozenset(_operation_name(name) for name in _names(raw.get("excluded"), "excluded"))

    hide = {
        _operation_name(operation): frozenset(_names(fields, f"hide.{operation}"))
        for operation, fields in _mapping(raw.get("hide"), "hide").items()
    }

    middlewares: Dict[str, Tuple[Callable, ...]] = {}
    for operation, chain in _mapping(raw.get("middlewares"), "middlewares").items():
        chain = tuple(_names(chain, f"middlewares.{operation}")) if not callable(chain) else (chain,)
        for middleware in chain:
            if not callable(middleware):
                raise ConfigError(f"middlewares.{operation}: {middleware!r} is not callable")
        middlewares[_operation_name(operation)] = chain

    hooks: Dict[str, Callable] = {}
    for hook_name, callback in _mapping(raw.get("hooks"), "hooks").items():
        name = snake_case(hook_name)
        if name not in HOOKS:
            raise ConfigError(f"Unknown hook '{hook_name}', expected one of: {', '.join(HOOKS)}")
        if callback is None:
            continue
        if not callable(callback):
            raise ConfigError(f"hooks.{hook_name}: {callback!r} is not callable")
        hooks[name] = callback

    populate = tuple(_names(raw.get("populate"), "populate"))
    path = raw.get("path")
    if path is not None and not isinstance(path, str):
        raise ConfigError(f"'path' should be a string, got {type(path).__name__}")

    return RouteOptions(
        excluded=excluded,
        hide=MappingProxyType(hide),
        middlewares=MappingProxyType(middlewares),
        hooks=MappingProxyType(hooks),
        is_safe=bool(raw.get("is_safe", False)),
        populate=populate,
        envelope=bool(raw.get("envelope", True)),
        path=path,
        tags=tuple(_names(raw.get("tags"), "tags")),
    )
