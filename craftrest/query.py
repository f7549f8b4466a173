"""
Query string translation

Turns the (untrusted) query string of a collection request into a filter
specification, pagination and sort information:

    ?price=gt-30&status=active&page=2&limit=5

    translate_query(request.query_params)

    ParsedQuery(
        filters={"price": {FilterOperator.GT: 30}, "status": "active"},
        pagination=Pagination(page=2, limit=5, skip=5),
        page=2,
        limit=5,
        sort=[],
    )

Operator filters use the `{operator}-{value}` syntax. The value is split at the
first dash only. An unknown operator makes the whole filter match nothing.
"""

import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

from .config import get_config
from .craft_init import log
from .errors import UnknownOperatorError

RESERVED_KEYS = frozenset(["limit", "page", "sort", "fields", "select", "populate"])

OPERATOR_SEPARATOR = "-"
LIST_SEPARATOR = ","

Scalar = Union[str, int, float]
FilterSpec = Dict[str, Any]


class FilterOperator(str, Enum):
    """
    Comparison operators that can be used in `{operator}-{value}` query filters

    NE: not equal to
    GT: greater than
    GTE: greater than or equal to
    LT: less than
    LTE: less than or equal to
    IN: in a comma separated list of values
    """

    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"


class NoMatch(dict):
    """
    Filter that matches no record at all.

    Returned instead of a (partial) filter when the query contained an unknown
    operator, so a malformed query never exposes the whole collection.
    Data accessors must check for it with `is_no_match`.
    """

    def __repr__(self):
        return "NoMatch()"


def is_no_match(filters: Optional[Mapping[str, Any]]) -> bool:
    return isinstance(filters, NoMatch)


class Pagination(NamedTuple):
    page: int
    limit: int
    skip: int


class ParsedQuery(NamedTuple):
    filters: FilterSpec
    pagination: Pagination
    page: int
    limit: int
    sort: List[Tuple[str, bool]]


def coerce_scalar(raw: str) -> Scalar:
    """Convert `raw` to a number when it is numeric, otherwise return it unchanged"""
    # python accepts "1_000" as a number literal, query values don't
    if not isinstance(raw, str) or not raw.strip() or "_" in raw:
        return raw
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        return raw
    if not math.isfinite(number):
        return raw
    return number


def parse_operator(token: str) -> FilterOperator:
    try:
        return FilterOperator(token)
    except ValueError:
        raise UnknownOperatorError(token)


def parse_filter_value(value: Any) -> Any:
    """
    Translate a single query argument value

    :param value: string or list of strings (repeated query keys)
    :return: scalar for equality or {operator: value} for comparisons
    :raises UnknownOperatorError: the `{operator}-` prefix is not a FilterOperator
    """
    if isinstance(value, (list, tuple)):
        return {FilterOperator.IN: _membership_values(value)}
    if not isinstance(value, str) or OPERATOR_SEPARATOR not in value:
        return coerce_scalar(value)

    token, raw = value.split(OPERATOR_SEPARATOR, 1)
    operator = parse_operator(token)
    if operator is FilterOperator.IN:
        return {operator: raw.split(LIST_SEPARATOR)}
    return {operator: coerce_scalar(raw)}


def _membership_values(values: Iterable[Any]) -> List[Any]:
    """
    Values of a repeated query key: plain values and `in-` lists are merged,
    any other operator can't be combined and is treated as unknown
    """
    result: List[Any] = []
    for item in values:
        if not isinstance(item, str) or OPERATOR_SEPARATOR not in item:
            result.append(coerce_scalar(item))
            continue
        token, raw = item.split(OPERATOR_SEPARATOR, 1)
        if parse_operator(token) is not FilterOperator.IN:
            raise UnknownOperatorError(f"{token} (repeated key)")
        result.extend(raw.split(LIST_SEPARATOR))
    return result


def _positive_int(raw: Any, default: int) -> int:
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else None
    if raw is None:
        return default
    try:
        result = int(str(raw).strip())
    except ValueError:
        return default
    return result if result >= 1 else default


def parse_pagination(query: Mapping[str, Any]) -> Pagination:
    """
    page and limit are always positive integers, malformed input falls back to the defaults.
    page is clamped so the offset never exceeds MAX_PAGE_OFFSET
    """
    limit = _positive_int(query.get("limit"), get_config("DEFAULT_PAGE_LIMIT"))
    max_limit = get_config("MAX_PAGE_LIMIT")
    if max_limit and limit > max_limit:
        limit = max_limit
    page = _positive_int(query.get("page"), get_config("DEFAULT_PAGE"))
    max_offset = get_config("MAX_PAGE_OFFSET")
    if max_offset is not None and (page - 1) * limit > max_offset:
        page = max_offset // limit + 1
    return Pagination(page=page, limit=limit, skip=(page - 1) * limit)


def parse_sort(sort_param: Any) -> List[Tuple[str, bool]]:
    """
    :param sort_param: csv of field names, a "-" prefix sorts descending (e.g. "-price,name")
    :return: list of (field name, descending) tuples
    """
    if isinstance(sort_param, (list, tuple)):
        sort_param = LIST_SEPARATOR.join(item for item in sort_param if isinstance(item, str))
    if not isinstance(sort_param, str):
        return []
    result = []
    for item in sort_param.split(LIST_SEPARATOR):
        item = item.strip()
        descending = item.startswith("-")
        name = item.lstrip("-").strip()
        if name:
            result.append((name, descending))
    return result


def query_to_dict(query: Any) -> Dict[str, Any]:
    """
    Flatten a starlette QueryParams (or any multidict with `getlist`) to a dict,
    repeated keys are returned as lists
    """
    getlist = getattr(query, "getlist", None)
    if not callable(getlist):
        return dict(query or {})
    result: Dict[str, Any] = {}
    for key in query.keys():
        if key in result:
            continue
        values = getlist(key)
        result[key] = values[0] if len(values) == 1 else list(values)
    return result


def translate_query(query: Any) -> ParsedQuery:
    """
    Parse the query arguments into filters, pagination and sort information

    :param query: mapping of query argument name to a string or a list of strings
    :return: ParsedQuery
    """
    query = query_to_dict(query)
    pagination = parse_pagination(query)
    sort = parse_sort(query.get("sort"))

    filters: FilterSpec = {}
    try:
        for key, value in _filter_items(query):
            filters[key] = parse_filter_value(value)
    except UnknownOperatorError as exc:
        log.debug(f"{exc}: query {query} will match nothing")
        filters = NoMatch()

    return ParsedQuery(
        filters=filters,
        pagination=pagination,
        page=pagination.page,
        limit=pagination.limit,
        sort=sort,
    )


def _filter_items(query: Mapping[str, Any]) -> Iterable[Tuple[str, Any]]:
    for key, value in query.items():
        if key in RESERVED_KEYS:
            continue
        yield key, value
