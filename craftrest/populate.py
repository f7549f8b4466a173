from typing import Any, Iterable, List, Optional


def _normalize(populate_param: Any) -> List[str]:
    if isinstance(populate_param, (list, tuple)):
        items = [item.strip() for item in populate_param if isinstance(item, str)]
        return [item for item in items if item]
    if isinstance(populate_param, str):
        text = populate_param.strip()
        if text.startswith("["):
            text = text[1:]
        if text.endswith("]"):
            text = text[:-1]
        return [item.strip() for item in text.split(",") if item.strip()]
    return []


def _dedupe(paths: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(paths))


def resolve_populate(populate_param: Any, default: Optional[Iterable[str]] = None) -> List[str]:
    """
    Resolve the `populate` query argument to the ordered list of relationship paths to expand

        resolve_populate("author,author,comments.user") -> ["author", "comments.user"]
        resolve_populate(None, ["profile", "posts"]) -> ["profile", "posts"]

    :param populate_param: csv string or list of (dot separated) relationship paths
    :param default: paths used when the client didn't request any
    """
    paths = _normalize(populate_param)
    if paths:
        return _dedupe(paths)
    return _dedupe(_normalize(list(default or [])))
