"""
Field projection (`?fields=name,email` / `?fields=-password`)
"""

from typing import Any, Dict, Iterable, List, Optional

NEGATION_MARKER = "-"


def _split_fields(select_param: Any) -> List[str]:
    if isinstance(select_param, (list, tuple)):
        select_param = ",".join(item for item in select_param if isinstance(item, str))
    if not isinstance(select_param, str):
        return []
    text = select_param.strip()
    # legacy "[name,email]" syntax
    if text.startswith("["):
        text = text[1:]
    if text.endswith("]"):
        text = text[:-1]
    return [token.strip() for token in text.split(",") if token.strip()]


def _default_projection(blocklist: frozenset, known_fields: Optional[Iterable[str]]) -> Dict[str, int]:
    if known_fields is None:
        return {}
    return {field: 1 for field in known_fields if field not in blocklist}


def parse_projection(
    select_param: Any,
    blocklist: Iterable[str] = (),
    known_fields: Optional[Iterable[str]] = None,
) -> Dict[str, int]:
    """
    Parse the `fields` query argument into a projection: field name -> 1 (include) or 0 (exclude)

    Example:
        parse_projection("name,email") -> {"name": 1, "email": 1}
        parse_projection("-age", ["password"]) -> {"age": 0}
        parse_projection(None, ["password"], ["name", "password"]) -> {"name": 1}

    :param select_param: csv of field names, names prefixed with "-" are excluded
    :param blocklist: field names that may never be returned, whatever the client asks for
    :param known_fields: all field names of the resource, when available
    :return: projection dict, an empty dict means "no restriction"
    """
    blocked = frozenset(blocklist or ())
    tokens = _split_fields(select_param)
    if not tokens:
        return _default_projection(blocked, known_fields)

    projection: Dict[str, int] = {}
    for token in tokens:
        if token.startswith(NEGATION_MARKER):
            name, flag = token[len(NEGATION_MARKER) :].strip(), 0
        else:
            name, flag = token, 1
        if not name or name in blocked:
            continue
        projection[name] = flag

    # the blocklist can't be overridden by the client
    return {name: flag for name, flag in projection.items() if name not in blocked}
