# -*- coding: utf-8 -*-
"""
CRUD route composition

For every resource the seven operations are mapped to routes:

    get_all      GET     /
    get_by_id    GET     /{object_id}
    create       POST    /
    update_bulk  PUT     /bulk
    update       PUT     /{object_id}
    remove_bulk  DELETE  /bulk
    remove       DELETE  /{object_id}

Whether a route is registered is decided once, when the router is built
(RouteOptions.excluded and safe mode). Excluded routes don't exist at all, so
requests for them get the application's default 404/405 response.
"""

import asyncio
import inspect
import math
from functools import wraps
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends as FastAPIDepends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.params import Depends as DependsParam
from fastapi.responses import JSONResponse

from .accessor import DataAccessor
from .config import get_config, is_debug
from .craft_init import log
from .errors import CraftError, NotFoundError, OperationError, ValidationError
from .options import (
    CREATE,
    GET_ALL,
    GET_BY_ID,
    READ_OPERATIONS,
    REMOVE,
    REMOVE_BULK,
    UPDATE,
    UPDATE_BULK,
    RouteOptions,
    build_route_options,
)
from .populate import resolve_populate
from .projection import parse_projection
from .query import query_to_dict, translate_query
from .sanitize import sanitize_response

BULK_PATH = "/bulk"
INSTANCE_PATH = "/{object_id}"


def error_response(exc: CraftError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status_code), content={"error": exc.message})


def install_exception_handlers(app: FastAPI) -> None:
    """
    Errors raised in route handlers are converted by the handlers themselves,
    this handler formats CraftErrors raised elsewhere, for example in middleware dependencies
    """

    @app.exception_handler(CraftError)
    async def _craft_error_handler(_request: Request, exc: CraftError):
        return error_response(exc)


def failure_status(operation: str) -> int:
    """reads fail with a server error, mutations with a client error"""
    if operation in READ_OPERATIONS:
        return HTTPStatus.INTERNAL_SERVER_ERROR.value
    return HTTPStatus.BAD_REQUEST.value


def paging_meta(total: int, skip: int, limit: int) -> Dict[str, Any]:
    current_page = skip // limit + 1
    total_pages = math.ceil(total / limit)
    return {
        "total": total,
        "limit": limit,
        "currentPage": current_page,
        "totalPages": total_pages,
        "hasNextPage": current_page < total_pages,
        "hasPrevPage": current_page > 1,
    }


async def call_hook(hook: Optional[Callable], *args: Any) -> Any:
    """Call a sync or async hook, return its result"""
    if hook is None:
        return None
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _is_update_pair(item: Any) -> bool:
    return isinstance(item, dict) and "filter" in item and "update" in item


def _effective_update(data: Any, body: Any) -> Any:
    """
    Extract the update payload from the value returned by the `before_update` hook:
    [{filter, update}] or {filter, update} -> update, other values are the payload itself
    """
    if data is None:
        return body
    if isinstance(data, list) and len(data) == 1 and _is_update_pair(data[0]):
        data = data[0]
    if _is_update_pair(data):
        return data["update"]
    return data


class CrudRouter:
    """
    Build the CRUD routes of a single resource

    :param accessor: DataAccessor of the resource
    :param options: RouteOptions or an options dict
    :param prefix: path of the resource (e.g. "/users"), defaults to `options.path`
    :param name: resource name, used in the openapi summaries and operation ids
    """

    def __init__(
        self,
        accessor: DataAccessor,
        options: Any = None,
        prefix: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        self.accessor = accessor
        self.options: RouteOptions = build_route_options(options)
        self.prefix = (prefix if prefix is not None else self.options.path or "").rstrip("/")
        self.name = name or self.prefix.strip("/").replace("/", "_") or "resource"
        tags: List[Any] = list(self.options.tags) or [self.name]
        self.router = APIRouter(prefix=self.prefix, tags=tags)
        self.registered: List[str] = []
        self._register_routes()

    def __repr__(self):
        return f"<CrudRouter {self.name} {self.registered}>"

    @staticmethod
    def _normalize_dependencies(middlewares: Any) -> List[DependsParam]:
        normalized: List[DependsParam] = []
        for dependency in middlewares or ():
            if isinstance(dependency, DependsParam):
                normalized.append(dependency)
                continue
            if callable(dependency):
                normalized.append(FastAPIDepends(dependency))
                continue
            raise TypeError("middlewares items must be callables or fastapi.Depends(...) instances")
        return normalized

    def _collection_paths(self) -> List[str]:
        # slash parity: /users and /users/
        if self.prefix:
            return ["", "/"]
        return ["/"]

    def _add_route(self, operation: str, paths: List[str], endpoint: Callable, method: str, summary: str, status_code: int = 200) -> None:
        dependencies = self._normalize_dependencies(self.options.middleware_chain(operation))
        for idx, path in enumerate(paths):
            self.router.add_api_route(
                path,
                endpoint,
                methods=[method],
                response_class=JSONResponse,
                summary=summary,
                dependencies=dependencies,
                operation_id=f"{operation}_{self.name}" if idx == 0 else None,
                include_in_schema=idx == 0,
                status_code=status_code,
                name=f"{self.name}.{operation}",
            )
        self.registered.append(operation)

    def _register_routes(self) -> None:
        options = self.options
        # bulk routes are registered before the instance routes so /bulk isn't captured as an object_id
        route_specs = [
            (GET_ALL, self._collection_paths(), self._get_all(), "GET", f"List {self.name}", 200),
            (CREATE, self._collection_paths(), self._create(), "POST", f"Create {self.name}", 201),
            (UPDATE_BULK, [BULK_PATH], self._update_bulk(), "PUT", f"Bulk update {self.name}", 200),
            (REMOVE_BULK, [BULK_PATH], self._remove_bulk(), "DELETE", f"Bulk delete {self.name}", 200),
            (GET_BY_ID, [INSTANCE_PATH], self._get_by_id(), "GET", f"Get {self.name} by id", 200),
            (UPDATE, [INSTANCE_PATH], self._update(), "PUT", f"Update {self.name}", 200),
            (REMOVE, [INSTANCE_PATH], self._remove(), "DELETE", f"Delete {self.name}", 200),
        ]
        for operation, paths, endpoint, method, summary, status_code in route_specs:
            if not options.is_enabled(operation):
                log.debug(f"{self.name}: {operation} route not registered")
                if operation in (UPDATE_BULK, REMOVE_BULK):
                    self._add_disabled_route(paths, method)
                continue
            self._add_route(operation, paths, endpoint, method, summary, status_code)

    def _add_disabled_route(self, paths: List[str], method: str) -> None:
        """
        Disabled bulk routes answer 405, otherwise "/bulk" would be handled
        (hooks included) by the instance route of the same method
        """

        async def method_not_allowed():
            return error_response(CraftError("Method Not Allowed", HTTPStatus.METHOD_NOT_ALLOWED.value))

        for path in paths:
            self.router.add_api_route(path, method_not_allowed, methods=[method], include_in_schema=False)

    #
    # request helpers
    #
    def _handles_errors(self, operation: str):
        """Convert the exceptions raised by a route handler to json error responses"""

        def decorator(handler):
            @wraps(handler)
            async def wrapper(*args, **kwargs):
                try:
                    return await handler(*args, **kwargs)
                except CraftError as exc:
                    return error_response(exc)
                except Exception as exc:
                    if is_debug():
                        log.exception(f"{self.name}.{operation} failed")
                    message = str(exc) or exc.__class__.__name__
                    return error_response(OperationError(message, failure_status(operation)))

            return wrapper

        return decorator

    @staticmethod
    async def _json_body(request: Request) -> Any:
        try:
            return await request.json()
        except ValueError:
            raise ValidationError("Invalid JSON body")

    def _hook(self, name: str) -> Optional[Callable]:
        return self.options.hook(name)

    def _projection(self, operation: str, query: Dict[str, Any]) -> Dict[str, int]:
        fields = query.get("fields", query.get("select"))
        return parse_projection(fields, self.options.blocklist(operation), self.accessor.field_names)

    def _populate(self, query: Dict[str, Any]) -> List[str]:
        return resolve_populate(query.get("populate"), self.options.populate)

    def _respond(self, content: Any, status_code: int = 200) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=jsonable_encoder(content))

    #
    # route handlers
    #
    def _get_all(self):
        @self._handles_errors(GET_ALL)
        async def handler(request: Request):
            await call_hook(self._hook("before_get_all"), request)

            query = query_to_dict(request.query_params)
            parsed = translate_query(query)
            projection = self._projection(GET_ALL, query)
            populate = self._populate(query)
            skip, limit = parsed.pagination.skip, parsed.pagination.limit

            def fetch():
                return self.accessor.find(parsed.filters, projection, skip, limit, populate, parsed.sort)

            if self.options.envelope:
                if get_config("CONCURRENT_COUNT"):
                    total, results = await asyncio.gather(self.accessor.count(parsed.filters), fetch())
                else:
                    total = await self.accessor.count(parsed.filters)
                    results = await fetch()
            else:
                results = await fetch()

            sanitize_response(results, self.options.blocklist(GET_ALL))
            await call_hook(self._hook("after_get_all"), results)
            if not self.options.envelope:
                return self._respond(results)
            return self._respond({"data": results, "meta": paging_meta(total, skip, limit)})

        return handler

    def _get_by_id(self):
        @self._handles_errors(GET_BY_ID)
        async def handler(object_id: str, request: Request):
            await call_hook(self._hook("before_get_by_id"), object_id)

            query = query_to_dict(request.query_params)
            projection = self._projection(GET_BY_ID, query)
            item = await self.accessor.get_by_id(object_id, projection, self._populate(query))
            if item is None:
                raise NotFoundError()

            sanitize_response(item, self.options.blocklist(GET_BY_ID))
            await call_hook(self._hook("after_get_by_id"), item)
            return self._respond(item)

        return handler

    def _create(self):
        @self._handles_errors(CREATE)
        async def handler(request: Request):
            data = await self._json_body(request)
            replaced = await call_hook(self._hook("before_create"), request, data)
            if replaced is not None:
                data = replaced

            if isinstance(data, list):
                created = await self.accessor.create_many(data)
            else:
                created = await self.accessor.create(data)

            sanitize_response(created, self.options.blocklist(CREATE))
            await call_hook(self._hook("after_create"), created)
            return self._respond(created, status_code=HTTPStatus.CREATED.value)

        return handler

    def _update(self):
        @self._handles_errors(UPDATE)
        async def handler(object_id: str, request: Request):
            body = await self._json_body(request)
            hook = self._hook("before_update")
            data = body
            if hook is not None:
                data = _effective_update(await call_hook(hook, request, [{"filter": {"id": object_id}, "update": body}]), body)

            updated = await self.accessor.update_by_id(object_id, data)
            if updated is None:
                raise NotFoundError()

            sanitize_response(updated, self.options.blocklist(UPDATE))
            await call_hook(self._hook("after_update"), updated)
            return self._respond(updated)

        return handler

    def _update_bulk(self):
        @self._handles_errors(UPDATE_BULK)
        async def handler(request: Request):
            updates = await self._json_body(request)
            if not isinstance(updates, list) or not all(_is_update_pair(item) for item in updates):
                raise ValidationError("Expected array of updates")

            replaced = await call_hook(self._hook("before_update"), request, updates)
            if replaced is not None:
                updates = replaced

            result = await self.accessor.bulk_update(updates)
            await call_hook(self._hook("after_update"), result)
            return self._respond(result)

        return handler

    def _remove(self):
        @self._handles_errors(REMOVE)
        async def handler(object_id: str, request: Request):
            await call_hook(self._hook("before_delete"), request, [{"id": object_id}])

            deleted = await self.accessor.delete_by_id(object_id)
            if deleted is None:
                raise NotFoundError()

            sanitize_response(deleted, self.options.blocklist(REMOVE))
            await call_hook(self._hook("after_delete"), deleted)
            return self._respond(deleted)

        return handler

    def _remove_bulk(self):
        @self._handles_errors(REMOVE_BULK)
        async def handler(request: Request):
            filters = await self._json_body(request)
            if not isinstance(filters, list) or not all(isinstance(item, dict) for item in filters):
                raise ValidationError("Expected array of filters")

            replaced = await call_hook(self._hook("before_delete"), request, filters)
            if replaced is not None:
                filters = replaced

            result = await self.accessor.bulk_delete(filters)
            await call_hook(self._hook("after_delete"), result)
            return self._respond(result)

        return handler


def create_crud_router(accessor: DataAccessor, options: Any = None, prefix: Optional[str] = None, name: Optional[str] = None) -> APIRouter:
    """
    Create the CRUD APIRouter of a resource

        app.include_router(create_crud_router(SQLAlchemyAccessor(User, Session), {"excluded": ["remove"]}, prefix="/users"))
    """
    return CrudRouter(accessor, options, prefix=prefix, name=name).router
