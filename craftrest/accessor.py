# -*- coding: utf-8 -*-
"""
Data accessors execute the query plans built by the route handlers.

`DataAccessor` defines the contract, `SQLAlchemyAccessor` implements it for
SQLAlchemy declarative models. Records are returned as plain dicts, populated
relationships are nested dicts (to-one) or lists of dicts (to-many).
"""

import abc
import datetime
import decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from sqlalchemy import false, func, or_, select
from sqlalchemy.orm import load_only, selectinload
from starlette.concurrency import run_in_threadpool

from .craft_init import log
from .query import FilterOperator, FilterSpec, is_no_match

Record = Dict[str, Any]
Projection = Mapping[str, int]
PopulateTree = Dict[str, Dict[str, Any]]


class DataAccessor(abc.ABC):
    """
    Everything the route handlers need from the persistence layer.
    All methods are coroutines: the handlers suspend on every accessor call.
    """

    @property
    def field_names(self) -> Optional[List[str]]:
        """All field names of the resource, None when unknown"""
        return None

    @abc.abstractmethod
    async def find(
        self,
        filters: FilterSpec,
        projection: Projection,
        skip: int,
        limit: int,
        populate: List[str],
        sort: Optional[List[Tuple[str, bool]]] = None,
    ) -> List[Record]:
        """Return one page of records matching `filters`"""

    @abc.abstractmethod
    async def get_by_id(self, object_id: str, projection: Projection, populate: List[str]) -> Optional[Record]:
        """Return the record with `object_id` or None"""

    @abc.abstractmethod
    async def count(self, filters: FilterSpec) -> int:
        """Return the number of records matching `filters`"""

    @abc.abstractmethod
    async def create(self, data: Mapping[str, Any]) -> Record:
        pass

    @abc.abstractmethod
    async def create_many(self, items: List[Mapping[str, Any]]) -> List[Record]:
        pass

    @abc.abstractmethod
    async def update_by_id(self, object_id: str, update: Mapping[str, Any]) -> Optional[Record]:
        """Apply `update` and return the updated record, None when there is no record with `object_id`"""

    @abc.abstractmethod
    async def bulk_update(self, pairs: List[Mapping[str, Any]]) -> Dict[str, int]:
        """Apply a list of {filter, update} pairs, return {"matched_count", "modified_count"}"""

    @abc.abstractmethod
    async def delete_by_id(self, object_id: str) -> Optional[Record]:
        """Delete and return the deleted record, None when there is no record with `object_id`"""

    @abc.abstractmethod
    async def bulk_delete(self, filters: List[FilterSpec]) -> Dict[str, int]:
        """Delete one record per filter, return {"deleted_count"}"""


def populate_tree(paths: Iterable[List[str]]) -> PopulateTree:
    """[["comments", "user"], ["author"]] -> {"comments": {"user": {}}, "author": {}}"""
    tree: PopulateTree = {}
    for path in paths:
        node = tree
        for segment in path:
            node = node.setdefault(segment, {})
    return tree


class SQLAlchemyAccessor(DataAccessor):
    """
    DataAccessor for a SQLAlchemy declarative model

    Every call uses its own session from `session_factory`, the (blocking) session
    work runs in the starlette threadpool.

    :param Model: declarative model class
    :param session_factory: a `sessionmaker` (or any callable returning a Session context manager)
    """

    def __init__(self, Model: Type[Any], session_factory: Callable[[], Any]) -> None:
        self.Model = Model
        self.session_factory = session_factory
        self.mapper = Model.__mapper__
        self.columns = {attr.key: attr for attr in self.mapper.column_attrs}
        self.relationships = {rel.key: rel for rel in self.mapper.relationships}
        pk_columns = list(self.mapper.primary_key)
        if len(pk_columns) > 1:
            log.warning(f"Composite primary key for {Model.__name__}, only '{pk_columns[0].key}' is used as id")
        self.pk_name = self.mapper.get_property_by_column(pk_columns[0]).key

    def __repr__(self):
        return f"<SQLAlchemyAccessor {self.Model.__name__}>"

    @property
    def field_names(self) -> Optional[List[str]]:
        return list(self.columns.keys()) + list(self.relationships.keys())

    #
    # value coercion and filter expressions
    #
    def _python_type(self, name: str) -> Optional[type]:
        column = self.columns[name].columns[0]
        try:
            return column.type.python_type
        except NotImplementedError:
            return None

    def _coerce(self, name: str, value: Any) -> Any:
        """
        Query string values are strings or numbers, convert them to the column type
        Values that can't be converted are returned unchanged
        """
        py_type = self._python_type(name)
        if value is None or py_type is None or isinstance(value, py_type):
            return value
        try:
            if py_type is bool:
                if isinstance(value, str):
                    return value.strip().lower() in ("1", "true", "yes", "on")
                return bool(value)
            if py_type in (int, float, str, decimal.Decimal):
                return py_type(value)
            if py_type in (datetime.date, datetime.datetime, datetime.time) and isinstance(value, str):
                return py_type.fromisoformat(value)
        except (ValueError, TypeError, decimal.InvalidOperation):
            log.debug(f"Can't convert {value!r} to {py_type.__name__} for {self.Model.__name__}.{name}")
        return value

    def _coerce_id(self, object_id: Any) -> Any:
        py_type = self._python_type(self.pk_name)
        if py_type in (int, float) and not isinstance(object_id, py_type):
            try:
                return py_type(object_id)
            except (ValueError, TypeError):
                raise ValueError(f"Invalid id '{object_id}' for {self.Model.__name__}")
        return object_id

    def _expression(self, name: str, value: Any) -> Any:
        if name not in self.columns:
            log.warning(f"Invalid filter field {self.Model.__name__}.{name}")
            return false()
        column = getattr(self.Model, name)
        if not isinstance(value, Mapping):
            value = self._coerce(name, value)
            return column.is_(None) if value is None else column == value

        # operator mappings that don't yield a condition match nothing
        if not value:
            log.warning(f"Empty filter for {self.Model.__name__}.{name}")
            return false()
        expressions = []
        for raw_operator, operand in value.items():
            try:
                operator = FilterOperator(raw_operator)
            except ValueError:
                log.warning(f"Invalid filter operator '{raw_operator}' for {self.Model.__name__}.{name}")
                return false()
            if operator is FilterOperator.IN:
                operands = operand if isinstance(operand, (list, tuple)) else [operand]
                expressions.append(column.in_([self._coerce(name, item) for item in operands]))
                continue
            operand = self._coerce(name, operand)
            if operator is FilterOperator.NE:
                expressions.append(or_(column != operand, column.is_(None)))
            elif operator is FilterOperator.GT:
                expressions.append(column > operand)
            elif operator is FilterOperator.GTE:
                expressions.append(column >= operand)
            elif operator is FilterOperator.LT:
                expressions.append(column < operand)
            elif operator is FilterOperator.LTE:
                expressions.append(column <= operand)
        return expressions[0] if len(expressions) == 1 else expressions

    def _where(self, filters: Optional[FilterSpec]) -> List[Any]:
        if is_no_match(filters):
            return [false()]
        if filters is not None and not isinstance(filters, Mapping):
            raise ValueError(f"Invalid filter {filters!r}")
        where = []
        for name, value in (filters or {}).items():
            expression = self._expression(name, value)
            if isinstance(expression, list):
                where.extend(expression)
            else:
                where.append(expression)
        return where

    #
    # projection, populate and serialization
    #
    def _loader_options(self, populate: List[str]) -> Tuple[List[Any], PopulateTree]:
        options = []
        valid_paths = []
        for path in populate:
            current, loader, valid = self.Model, None, []
            for segment in path.split("."):
                rels = {rel.key: rel for rel in current.__mapper__.relationships}
                if segment not in rels:
                    log.warning(f"Invalid relationship : {current.__name__}.{segment}")
                    break
                attr = getattr(current, segment)
                loader = loader.selectinload(attr) if loader is not None else selectinload(attr)
                current = rels[segment].mapper.class_
                valid.append(segment)
            if loader is not None:
                options.append(loader)
                valid_paths.append(valid)
        return options, populate_tree(valid_paths)

    def _selected_columns(self, projection: Optional[Projection]) -> List[str]:
        projection = projection or {}
        included = [name for name, flag in projection.items() if flag and name in self.columns]
        excluded = {name for name, flag in projection.items() if not flag}
        if included:
            names = included if self.pk_name in included or self.pk_name in excluded else [self.pk_name] + included
        else:
            names = list(self.columns)
        return [name for name in names if name not in excluded]

    def _serialize(self, obj: Any, columns: Optional[List[str]], tree: PopulateTree, projection: Optional[Projection] = None) -> Record:
        names = columns if columns is not None else list(type(obj).__mapper__.column_attrs.keys())
        record = {name: getattr(obj, name) for name in names}
        projection = projection or {}
        restricted = any(projection.values())
        for rel_name, sub_tree in tree.items():
            if projection.get(rel_name) == 0 or (restricted and not projection.get(rel_name)):
                continue
            related = getattr(obj, rel_name)
            if related is None:
                record[rel_name] = None
            elif isinstance(related, (list, tuple, set)):
                record[rel_name] = [self._serialize(item, None, sub_tree) for item in related]
            else:
                record[rel_name] = self._serialize(related, None, sub_tree)
        return record

    def _statement(self, projection: Optional[Projection], populate: List[str]) -> Tuple[Any, List[str], PopulateTree]:
        columns = self._selected_columns(projection)
        options, tree = self._loader_options(populate or [])
        stmt = select(self.Model)
        # populated relationships need their local (foreign key) columns
        loaded = list(columns)
        for rel_name in tree:
            for column in self.relationships[rel_name].local_columns:
                key = self.mapper.get_property_by_column(column).key
                if key not in loaded:
                    loaded.append(key)
        if loaded and len(loaded) < len(self.columns):
            stmt = stmt.options(load_only(*[getattr(self.Model, name) for name in loaded]))
        if options:
            stmt = stmt.options(*options)
        return stmt, columns, tree

    def _validate_fields(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected an object, got {type(data).__name__}")
        unknown = [name for name in data if name not in self.columns]
        if unknown:
            raise ValueError(f"Unknown field(s) for {self.Model.__name__}: {', '.join(unknown)}")
        return {name: self._coerce(name, value) for name, value in data.items()}

    #
    # blocking implementations
    #
    def _find(self, filters, projection, skip, limit, populate, sort):
        stmt, columns, tree = self._statement(projection, populate)
        stmt = stmt.where(*self._where(filters))
        for name, descending in sort or []:
            if name not in self.columns:
                log.warning(f"Invalid sort field {self.Model.__name__}.{name}")
                continue
            column = getattr(self.Model, name)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if not sort:
            stmt = stmt.order_by(getattr(self.Model, self.pk_name))
        stmt = stmt.offset(skip).limit(limit)
        with self.session_factory() as session:
            objs = session.scalars(stmt).all()
            return [self._serialize(obj, columns, tree, projection) for obj in objs]

    def _get_by_id(self, object_id, projection, populate):
        stmt, columns, tree = self._statement(projection, populate)
        stmt = stmt.where(getattr(self.Model, self.pk_name) == self._coerce_id(object_id))
        with self.session_factory() as session:
            obj = session.scalars(stmt).first()
            return None if obj is None else self._serialize(obj, columns, tree, projection)

    def _count(self, filters):
        stmt = select(func.count()).select_from(self.Model).where(*self._where(filters))
        with self.session_factory() as session:
            return session.scalar(stmt)

    def _create_many(self, items):
        with self.session_factory() as session:
            objs = [self.Model(**self._validate_fields(data)) for data in items]
            session.add_all(objs)
            session.flush()
            result = [self._serialize(obj, None, {}) for obj in objs]
            session.commit()
            return result

    def _update_by_id(self, object_id, update):
        values = self._validate_fields(update)
        with self.session_factory() as session:
            obj = session.get(self.Model, self._coerce_id(object_id))
            if obj is None:
                return None
            for name, value in values.items():
                setattr(obj, name, value)
            session.flush()
            result = self._serialize(obj, None, {})
            session.commit()
            return result

    def _first(self, session, filters):
        stmt = select(self.Model).where(*self._where(filters)).order_by(getattr(self.Model, self.pk_name)).limit(1)
        return session.scalars(stmt).first()

    def _bulk_update(self, pairs):
        matched = modified = 0
        with self.session_factory() as session:
            for pair in pairs:
                values = self._validate_fields(pair.get("update") or {})
                obj = self._first(session, pair.get("filter") or {})
                if obj is None:
                    continue
                matched += 1
                changed = False
                for name, value in values.items():
                    if getattr(obj, name) != value:
                        setattr(obj, name, value)
                        changed = True
                modified += int(changed)
            session.commit()
        return {"matched_count": matched, "modified_count": modified}

    def _delete_by_id(self, object_id):
        with self.session_factory() as session:
            obj = session.get(self.Model, self._coerce_id(object_id))
            if obj is None:
                return None
            result = self._serialize(obj, None, {})
            session.delete(obj)
            session.commit()
            return result

    def _bulk_delete(self, filters):
        deleted = 0
        with self.session_factory() as session:
            for item in filters:
                obj = self._first(session, item)
                if obj is None:
                    continue
                session.delete(obj)
                session.flush()
                deleted += 1
            session.commit()
        return {"deleted_count": deleted}

    #
    # DataAccessor interface
    #
    async def find(self, filters, projection, skip, limit, populate, sort=None):
        return await run_in_threadpool(self._find, filters, projection, skip, limit, populate, sort)

    async def get_by_id(self, object_id, projection, populate):
        return await run_in_threadpool(self._get_by_id, object_id, projection, populate)

    async def count(self, filters):
        return await run_in_threadpool(self._count, filters)

    async def create(self, data):
        result = await run_in_threadpool(self._create_many, [data])
        return result[0]

    async def create_many(self, items):
        return await run_in_threadpool(self._create_many, list(items))

    async def update_by_id(self, object_id, update):
        return await run_in_threadpool(self._update_by_id, object_id, update)

    async def bulk_update(self, pairs):
        return await run_in_threadpool(self._bulk_update, list(pairs))

    async def delete_by_id(self, object_id):
        return await run_in_threadpool(self._delete_by_id, object_id)

    async def bulk_delete(self, filters):
        return await run_in_threadpool(self._bulk_delete, list(filters))
