# -*- coding: utf-8 -*-
"""
Explicit resource registration

Resources are registered by the host application and mounted on a FastAPI app:

    registry = ResourceRegistry()
    registry.register("BlogPost", SQLAlchemyAccessor(BlogPost, Session), {"hide": {"get_all": ["secret"]}})
    api = CraftAPI(app, registry, config=load_craft_config())

    # GET /api/blog-posts, GET /api/blog-posts/{object_id}, ...
"""

from typing import Any, Dict, Iterator, NamedTuple, Optional

from fastapi import FastAPI

from .accessor import DataAccessor
from .config import CraftConfig
from .craft_init import log
from .errors import ConfigError
from .options import RouteOptions, build_route_options, kebab_case
from .router import CrudRouter, install_exception_handlers


class Resource(NamedTuple):
    name: str
    accessor: DataAccessor
    options: Any = None


class ResourceRegistry:
    """
    Name -> Resource mapping, owned by the host application
    """

    def __init__(self) -> None:
        self._resources: Dict[str, Resource] = {}

    def register(self, name: str, accessor: DataAccessor, options: Any = None) -> Resource:
        if not name or not isinstance(name, str):
            raise ConfigError(f"Invalid resource name {name!r}")
        if not isinstance(accessor, DataAccessor):
            raise ConfigError(f"{name}: {accessor!r} is not a DataAccessor")
        if name in self._resources:
            raise ConfigError(f"Resource '{name}' is already registered")
        resource = Resource(name, accessor, options)
        self._resources[name] = resource
        log.debug(f"Registered resource {name}")
        return resource

    def get(self, name: str) -> Optional[Resource]:
        return self._resources.get(name)

    def unregister(self, name: str) -> Optional[Resource]:
        return self._resources.pop(name, None)

    def clear(self) -> None:
        self._resources.clear()

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources.values()))

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, name: object) -> bool:
        return name in self._resources


def default_path(name: str) -> str:
    """BlogPost -> /blog-posts"""
    return "/" + kebab_case(name) + "s"


class CraftAPI:
    """
    Mount the registered resources on a FastAPI app

    :param app: FastAPI app
    :param registry: ResourceRegistry, resources registered later can be mounted with `expose`
    :param prefix: url prefix of all resources, defaults to the config base_path (or "" without config)
    :param config: CraftConfig, per resource `routes` options and `ignore` list
    """

    def __init__(
        self,
        app: FastAPI,
        registry: Optional[ResourceRegistry] = None,
        prefix: Optional[str] = None,
        config: Optional[CraftConfig] = None,
    ) -> None:
        self.app = app
        self.registry = registry if registry is not None else ResourceRegistry()
        self.config = config if config is not None else CraftConfig(base_path="")
        self.prefix = (prefix if prefix is not None else self.config.base_path or "").rstrip("/")
        self.routers: Dict[str, CrudRouter] = {}
        install_exception_handlers(app)
        for resource in self.registry:
            self._mount(resource)

    def _is_ignored(self, name: str) -> bool:
        return name in self.config.ignore or kebab_case(name) in self.config.ignore

    def _options(self, resource: Resource) -> RouteOptions:
        """Options from the config file, overridden by the options passed to `register`"""
        routes = self.config.routes
        file_options = routes.get(resource.name, routes.get(kebab_case(resource.name))) or {}
        if not isinstance(file_options, dict):
            raise ConfigError(f"routes.{resource.name} should be a mapping")
        if isinstance(resource.options, RouteOptions):
            return resource.options
        return build_route_options(file_options, **dict(resource.options or {}))

    def _mount(self, resource: Resource) -> Optional[CrudRouter]:
        if self._is_ignored(resource.name):
            log.info(f"Not exposing {resource.name}: ignored in config")
            return None
        if resource.name in self.routers:
            raise ConfigError(f"Resource '{resource.name}' is already exposed")

        options = self._options(resource)
        path = options.path or default_path(resource.name)
        if not path.startswith("/"):
            path = "/" + path
        crud = CrudRouter(resource.accessor, options, prefix=self.prefix + path, name=resource.name)
        self.app.include_router(crud.router)
        self.routers[resource.name] = crud
        log.info(f"Exposed {resource.name} at {self.prefix + path}: {', '.join(crud.registered)}")

        # openapi may have been generated before this resource was exposed
        self.app.openapi_schema = None
        return crud

    def expose(self, name: str, accessor: DataAccessor, options: Any = None) -> Optional[CrudRouter]:
        """Register and mount a resource"""
        return self._mount(self.registry.register(name, accessor, options))
