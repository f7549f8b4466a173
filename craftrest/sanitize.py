from typing import Any, Iterable


def sanitize_response(data: Any, blocklist: Iterable[str] = ()) -> Any:
    """
    Recursively delete the blocklisted keys from every dict in `data`

    `data` is modified in place and returned, callers that need the original
    have to copy it first.

    :param data: record, list of records or any nested structure of dicts and lists
    :param blocklist: keys to remove
    :return: `data`
    """
    blocked = frozenset(blocklist or ())
    if data is None or not blocked:
        return data

    seen = set()
    stack = [data]
    while stack:
        item = stack.pop()
        if not isinstance(item, (dict, list, tuple)) or id(item) in seen:
            continue
        seen.add(id(item))
        if isinstance(item, dict):
            for key in [key for key in item if key in blocked]:
                del item[key]
            stack.extend(item.values())
        elif isinstance(item, (list, tuple)):
            stack.extend(item)
    return data
