"""Property-path helpers and the mapping strategy used to shape query results.

Property paths select nested values in decoded data. Both dotted paths
(``data.items``) and bracketed paths (``[data][items]``) are accepted; numeric
segments index into lists.
"""
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from .exceptions import MapperError

_MISSING = object()
_BRACKETS = re.compile(r"\[([^\]]*)\]")

Source = Union[str, Sequence[str], Callable[[Any, str], Any]]


def split_path(path: str) -> List[str]:
    if path.startswith("["):
        return _BRACKETS.findall(path)
    return [p for p in path.split(".") if p]


def _step(data: Any, segment: str) -> Any:
    if isinstance(data, dict):
        return data.get(segment, _MISSING)
    if isinstance(data, (list, tuple)) and segment.lstrip("-").isdigit():
        index = int(segment)
        if -len(data) <= index < len(data):
            return data[index]
    return _MISSING


def _lookup(data: Any, path: str) -> Any:
    for segment in split_path(path):
        data = _step(data, segment)
        if data is _MISSING:
            break
    return data


def has_value(data: Any, path: str) -> bool:
    return _lookup(data, path) is not _MISSING


def get_value(data: Any, path: Optional[str], default: Any = None) -> Any:
    """Return the value at `path`, the whole of `data` for an empty path."""
    if not path:
        return data
    value = _lookup(data, path)
    return default if value is _MISSING else value


def set_value(target: Dict[str, Any], path: str, value: Any) -> None:
    segments = split_path(path)
    if not segments:
        raise MapperError("Cannot set a value with an empty property path")
    for segment in segments[:-1]:
        target = target.setdefault(segment, {})
        if not isinstance(target, dict):
            raise MapperError(f'Cannot set "{path}", "{segment}" is not a mapping')
    target[segments[-1]] = value


class MappingStrategy:
    """Map decoded data onto a new dict, destination path => source.

    A source is a property path, a list of property paths (first readable one
    wins) or a callable taking ``(data, destination)``. Transformers are
    callables applied in order to the mapped item.
    """

    def __init__(self, property_paths: Dict[str, Source], transformers: Iterable[Callable[[Any], Any]] = ()) -> None:
        self.property_paths = dict(property_paths)
        self.transformers = list(transformers)

    def map_item(self, data: Any, item: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        item = {} if item is None else item
        for destination, source in self.property_paths.items():
            if callable(source):
                set_value(item, destination, source(data, destination))
                continue

            if isinstance(source, str):
                candidates: Sequence[str] = [source]
            elif isinstance(source, (list, tuple)):
                candidates = source
            else:
                raise MapperError(
                    f'Source for destination "{destination}" not a valid type, must be a string, list, or callable'
                )

            for candidate in candidates:
                if has_value(data, candidate):
                    set_value(item, destination, get_value(data, candidate))
                    break

        for transform in self.transformers:
            item = transform(item)
        return item

    def map_collection(self, items: Iterable[Any]) -> List[Dict[str, Any]]:
        return [self.map_item(data) for data in items]
