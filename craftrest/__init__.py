# flake8: noqa: F401
from .craft_init import Craft, log
from .config import CraftConfig, get_config, is_debug, load_craft_config
from .errors import CraftError, ConfigError, NotFoundError, OperationError, ValidationError
from .query import FilterOperator, NoMatch, Pagination, ParsedQuery, is_no_match, translate_query
from .projection import parse_projection
from .populate import resolve_populate
from .sanitize import sanitize_response
from .options import RouteOptions, build_route_options
from .accessor import DataAccessor, SQLAlchemyAccessor
from .router import CrudRouter, create_crud_router, install_exception_handlers
from .registry import CraftAPI, Resource, ResourceRegistry
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "Craft",
    "log",
    # config:
    "CraftConfig",
    "get_config",
    "is_debug",
    "load_craft_config",
    # query translation:
    "FilterOperator",
    "NoMatch",
    "Pagination",
    "ParsedQuery",
    "is_no_match",
    "translate_query",
    "parse_projection",
    "resolve_populate",
    "sanitize_response",
    # routes:
    "RouteOptions",
    "build_route_options",
    "CrudRouter",
    "create_crud_router",
    "install_exception_handlers",
    "CraftAPI",
    "Resource",
    "ResourceRegistry",
    # data access:
    "DataAccessor",
    "SQLAlchemyAccessor",
    # Errors:
    "CraftError",
    "ConfigError",
    "NotFoundError",
    "OperationError",
    "ValidationError",
)
